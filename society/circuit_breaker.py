from pybreaker import CircuitBreaker

# Guards writes to the image file store: after repeated failures uploads
# fail fast until the reset timeout elapses.
file_store_breaker = CircuitBreaker(
    fail_max=3,
    reset_timeout=60,
    name="file_store_breaker",
)
