import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_roles
from ..errors import NotFound
from ..policy import ADMIN_ROLE
from ..transitions import BOOKING, BookingStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_booking(db: Session, booking_id: int) -> models.Booking:
    booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise NotFound("Booking not found")
    return booking


@router.get("/", response_model=List[schemas.BookingOut])
def list_bookings(
    status: Optional[BookingStatus] = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    List all facility bookings, most recent first.

    Everyone sees every booking so residents can tell when a facility is
    taken. Use ``status`` to filter, e.g. ``?status=approved``.
    """
    query = db.query(models.Booking)
    if status is not None:
        query = query.filter(models.Booking.status == status.value)
    return query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()


@router.get("/mine", response_model=List[schemas.BookingOut])
def list_my_bookings(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Bookings made by the current user."""
    return (
        db.query(models.Booking)
        .filter(models.Booking.user_id == current_user.id)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
        .all()
    )


@router.post("/", response_model=schemas.BookingOut)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Request a facility for a date and time slot.

    New bookings start as ``pending`` until an administrator approves or
    rejects them.
    """
    booking = models.Booking(
        facility=booking_in.facility,
        user_id=current_user.id,
        date=booking_in.date,
        from_time=booking_in.from_time,
        to_time=booking_in.to_time,
        status=BOOKING.initial,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created by user %s", booking.id, current_user.id)
    return booking


@router.patch("/{booking_id}/status", response_model=schemas.BookingOut)
def update_booking_status(
    booking_id: int,
    status_in: schemas.BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Set a booking's status. *(Admin-only)*

    Administrators may set any status from any status here, unlike the
    narrower cancel endpoint.
    """
    booking = get_booking(db, booking_id)
    BOOKING.apply("set_status", booking, status_in.status, current_user)
    db.commit()
    db.refresh(booking)
    return booking


@router.delete("/{booking_id}", response_model=schemas.Message)
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Permanently remove a booking. *(Admin-only)*
    """
    booking = get_booking(db, booking_id)
    db.delete(booking)
    db.commit()
    logger.info("Booking %s deleted by user %s", booking_id, current_user.id)
    return {"detail": "Booking deleted successfully"}


@router.post("/{booking_id}/cancel", response_model=schemas.BookingOut)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cancel a booking.

    - Residents can cancel their own bookings.
    - Admins can cancel any booking.

    Only ``pending`` and ``approved`` bookings can be cancelled.

    Raises
    ------
    HTTPException
        - 403 if the user neither owns the booking nor is an admin.
        - 404 if the booking does not exist.
        - 409 if the booking is already rejected or cancelled.
    """
    booking = get_booking(db, booking_id)
    BOOKING.apply("cancel", booking, BookingStatus.CANCELLED, current_user)
    db.commit()
    db.refresh(booking)
    return booking
