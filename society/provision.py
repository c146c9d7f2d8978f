"""
Create the administrator account if it does not exist yet.

Run once per deployment, never from the web server:

    python -m society.provision
    python -m society.provision --email admin@example.com --password s3cret

Running it again is a no-op when the account already exists.
"""
import argparse
import logging
import sys

from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import Base, SessionLocal, engine
from .deps import get_password_hash, get_user_by_email
from .policy import ADMIN_ROLE

logger = logging.getLogger(__name__)


def ensure_admin(
    db: Session,
    email: str,
    password: str,
    name: str = "Admin User",
    block: str | None = None,
    flat: str | None = None,
) -> tuple[models.User, bool]:
    """Return ``(admin, created)``; ``created`` is False when it already existed."""
    existing = get_user_by_email(db, email)
    if existing:
        if existing.role != ADMIN_ROLE:
            logger.warning("User %s exists but is not an admin; leaving it unchanged", email)
        return existing, False

    admin = models.User(
        name=name,
        email=email.lower(),
        hashed_password=get_password_hash(password),
        role=ADMIN_ROLE,
        block=block,
        flat=flat,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Provision the society administrator account")
    parser.add_argument("--email", default=settings.ADMIN_EMAIL)
    parser.add_argument("--password", default=settings.ADMIN_PASSWORD)
    parser.add_argument("--name", default=settings.ADMIN_NAME)
    parser.add_argument("--block", default="A")
    parser.add_argument("--flat", default="101")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(message)s")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin, created = ensure_admin(db, args.email, args.password, args.name, args.block, args.flat)
    finally:
        db.close()

    if created:
        logger.info("Admin user %s created", args.email)
    else:
        logger.info("Admin user %s already exists", args.email)
    return 0


if __name__ == "__main__":
    sys.exit(main())
