import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_roles
from ..errors import NotFound
from ..policy import ADMIN_ROLE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notices", tags=["notices"])


@router.get("/", response_model=List[schemas.NoticeOut])
def list_notices(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Notices visible to the current user.

    Broadcast notices (no recipient) plus those addressed to the user,
    pinned notices first, then most recent first.
    """
    return (
        db.query(models.Notice)
        .filter(or_(models.Notice.recipient_id.is_(None), models.Notice.recipient_id == current_user.id))
        .order_by(models.Notice.pinned.desc(), models.Notice.created_at.desc(), models.Notice.id.desc())
        .all()
    )


@router.post("/", response_model=schemas.NoticeOut)
def create_notice(
    notice_in: schemas.NoticeCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Post a notice, broadcast or addressed to one resident.

    Raises
    ------
    HTTPException
        - 404 if ``recipient_id`` does not match a user.
    """
    if notice_in.recipient_id is not None:
        recipient = db.query(models.User).filter(models.User.id == notice_in.recipient_id).first()
        if not recipient:
            raise NotFound("Recipient not found")

    notice = models.Notice(**notice_in.model_dump(), author_id=current_user.id)
    db.add(notice)
    db.commit()
    db.refresh(notice)
    return notice


@router.delete("/{notice_id}", response_model=schemas.Message)
def delete_notice(
    notice_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Delete a notice and its poll, if any. *(Admin-only)*
    """
    notice = db.query(models.Notice).filter(models.Notice.id == notice_id).first()
    if not notice:
        raise NotFound("Notice not found")

    db.delete(notice)
    db.commit()
    logger.info("Notice %s deleted by user %s", notice_id, current_user.id)
    return {"detail": "Notice deleted successfully"}
