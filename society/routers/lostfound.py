import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pybreaker import CircuitBreakerError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_roles
from ..errors import NotFound, ServiceUnavailable, SocietyError, ValidationFailed
from ..policy import ADMIN_ROLE
from ..schemas import LostFoundType, naive_utc
from ..services import storage
from ..transitions import LOST_FOUND, LostFoundStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lostfound", tags=["lost & found"])


def get_item(db: Session, item_id: int) -> models.LostFoundItem:
    item = db.query(models.LostFoundItem).filter(models.LostFoundItem.id == item_id).first()
    if not item:
        raise NotFound("Item not found")
    return item


@router.get("/", response_model=List[schemas.LostFoundOut])
def list_items(
    type: Optional[LostFoundType] = None,
    status: Optional[LostFoundStatus] = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """List lost and found postings, most recent first."""
    query = db.query(models.LostFoundItem)
    if type is not None:
        query = query.filter(models.LostFoundItem.type == type.value)
    if status is not None:
        query = query.filter(models.LostFoundItem.status == status.value)
    return query.order_by(models.LostFoundItem.created_at.desc(), models.LostFoundItem.id.desc()).all()


@router.post("/", response_model=schemas.LostFoundOut)
def create_item(
    type: Optional[LostFoundType] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    date: Optional[datetime] = Form(None),
    contact: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Post a lost or found item (multipart form).

    ``type``, ``title``, ``date``, ``location`` and ``contact`` are required.
    An optional ``image`` must be an image file of at most 5MB.

    Raises
    ------
    HTTPException
        - 400 if a required field is missing or the image is rejected.
        - 503 if the image store keeps failing (circuit open).
    """
    if not (type and title and title.strip() and date and location and contact):
        raise ValidationFailed("Missing required fields")

    image_path = None
    if image is not None and image.filename:
        try:
            image_path = storage.save_image(image)
        except CircuitBreakerError:
            raise ServiceUnavailable("Image storage temporarily unavailable. Please try again later.")
        except OSError:
            logger.exception("Failed to store image for new item")
            raise SocietyError("Failed to store image")

    item = models.LostFoundItem(
        type=type.value,
        title=title.strip(),
        description=description,
        location=location,
        date=naive_utc(date),
        image=image_path,
        status=LOST_FOUND.initial,
        user_id=current_user.id,
        contact=contact,
    )
    db.add(item)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # no record points at the file any more
        if image_path:
            storage.delete_image(image_path)
        raise
    db.refresh(item)
    logger.info("Lost & found item %s posted by user %s", item.id, current_user.id)
    return item


@router.patch("/{item_id}/status", response_model=schemas.LostFoundOut)
def update_item_status(
    item_id: int,
    status_in: schemas.LostFoundStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Mark an item resolved. Only the poster or an admin may do this, and a
    resolved item cannot be reopened.
    """
    item = get_item(db, item_id)
    LOST_FOUND.apply("set_status", item, status_in.status, current_user)
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}", response_model=schemas.Message)
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Remove an item, its chat and its image. *(Admin-only)*

    The record is deleted even when the image file cannot be removed.
    """
    item = get_item(db, item_id)
    if item.image:
        storage.delete_image(item.image)

    db.delete(item)
    db.commit()
    logger.info("Lost & found item %s deleted by user %s", item_id, current_user.id)
    return {"detail": "Item deleted successfully"}
