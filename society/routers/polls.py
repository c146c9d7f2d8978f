import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_roles
from ..errors import Conflict, NotFound
from ..policy import ADMIN_ROLE
from ..services import voting

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polls", tags=["polls"])


@router.get("/notice/{notice_id}", response_model=schemas.PollOut)
def get_poll_for_notice(
    notice_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """Poll attached to a notice, with the voters of every option."""
    poll = db.query(models.Poll).filter(models.Poll.notice_id == notice_id).first()
    if not poll:
        raise NotFound("Poll not found")
    return poll


@router.post("/", response_model=schemas.PollOut)
def create_poll(
    poll_in: schemas.PollCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Attach a poll to a notice. *(Admin-only)*

    Raises
    ------
    HTTPException
        - 404 if the notice does not exist.
        - 409 if the notice already has a poll.
    """
    notice = db.query(models.Notice).filter(models.Notice.id == poll_in.notice_id).first()
    if not notice:
        raise NotFound("Notice not found")
    if notice.poll is not None:
        raise Conflict("This notice already has a poll")

    poll = models.Poll(
        question=poll_in.question,
        end_date=poll_in.end_date,
        notice_id=notice.id,
        options=[models.PollOption(text=text) for text in poll_in.options],
    )
    notice.has_poll = True
    db.add(poll)
    db.commit()
    db.refresh(poll)
    logger.info("Poll %s created on notice %s by user %s", poll.id, notice.id, current_user.id)
    return poll


@router.post("/{poll_id}/vote", response_model=schemas.PollOut)
def vote(
    poll_id: int,
    vote_in: schemas.VoteRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cast the current user's single vote in a poll.

    Raises
    ------
    HTTPException
        - 404 if the poll or option does not exist.
        - 409 if the poll has ended or the user already voted.
    """
    return voting.cast_vote(db, poll_id, vote_in.option_id, current_user.id)


@router.put("/{poll_id}/change-vote", response_model=schemas.PollOut)
def change_vote(
    poll_id: int,
    vote_in: schemas.VoteRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Move the current user's vote to another option.

    Also records a first vote when the user has not voted yet.
    """
    return voting.change_vote(db, poll_id, vote_in.option_id, current_user.id)
