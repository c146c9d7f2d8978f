"""
Poll voting.

A user holds at most one vote per poll. The ``(poll_id, user_id)`` unique
constraint on ``poll_votes`` enforces this in the database, so two concurrent
votes from the same user cannot both be stored even if both pass the
"already voted" pre-check.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import Conflict, NotFound

logger = logging.getLogger(__name__)

# change_vote retries when a concurrent request from the same user
# inserted a vote between our delete and insert
MAX_ATTEMPTS = 3


def get_poll(db: Session, poll_id: int) -> models.Poll:
    poll = db.query(models.Poll).filter(models.Poll.id == poll_id).first()
    if not poll:
        raise NotFound("Poll not found")
    return poll


def is_open(poll: models.Poll, now: datetime | None = None) -> bool:
    return (now or datetime.utcnow()) <= poll.end_date


def ensure_open(poll: models.Poll) -> None:
    if not is_open(poll):
        raise Conflict("Poll has ended")


def find_option(poll: models.Poll, option_id: int) -> models.PollOption:
    for option in poll.options:
        if option.id == option_id:
            return option
    raise NotFound("Option not found")


def has_voted(db: Session, poll_id: int, user_id: int) -> bool:
    return (
        db.query(models.PollVote)
        .filter(models.PollVote.poll_id == poll_id, models.PollVote.user_id == user_id)
        .first()
        is not None
    )


def cast_vote(db: Session, poll_id: int, option_id: int, user_id: int) -> models.Poll:
    poll = get_poll(db, poll_id)
    ensure_open(poll)
    if has_voted(db, poll.id, user_id):
        raise Conflict("You have already voted in this poll")
    option = find_option(poll, option_id)

    db.add(models.PollVote(poll_id=poll.id, option_id=option.id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent duplicate vote rejected: poll %s user %s", poll_id, user_id)
        raise Conflict("You have already voted in this poll")

    logger.info("User %s voted for option %s in poll %s", user_id, option.id, poll.id)
    db.refresh(poll)
    return poll


def change_vote(db: Session, poll_id: int, option_id: int, user_id: int) -> models.Poll:
    """
    Replace the user's vote with one for ``option_id``.

    Works as a first vote too when the user has not voted yet.
    """
    poll = get_poll(db, poll_id)
    ensure_open(poll)
    option = find_option(poll, option_id)
    poll_pk, option_pk = poll.id, option.id

    for attempt in range(1, MAX_ATTEMPTS + 1):
        db.query(models.PollVote).filter(
            models.PollVote.poll_id == poll_pk,
            models.PollVote.user_id == user_id,
        ).delete(synchronize_session=False)
        db.add(models.PollVote(poll_id=poll_pk, option_id=option_pk, user_id=user_id))
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Vote change conflict on poll %s for user %s (attempt %d)", poll_pk, user_id, attempt
            )
    else:
        raise Conflict("Could not change vote, please try again")

    logger.info("User %s moved their vote to option %s in poll %s", user_id, option_pk, poll_pk)
    db.refresh(poll)
    return poll
