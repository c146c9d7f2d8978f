import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_roles
from ..errors import NotFound
from ..policy import ADMIN_ROLE, is_admin
from ..schemas import MaintenanceType, naive_utc
from ..services import reports
from ..transitions import MAINTENANCE, MaintenanceStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


def get_request(db: Session, request_id: int) -> models.MaintenanceRequest:
    request = db.query(models.MaintenanceRequest).filter(models.MaintenanceRequest.id == request_id).first()
    if not request:
        raise NotFound("Request not found")
    return request


@router.get("/", response_model=List[schemas.MaintenanceOut])
def list_requests(
    status: Optional[MaintenanceStatus] = None,
    type: Optional[MaintenanceType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List maintenance requests and complaints, most recent first.

    - Admins see **all** requests.
    - Residents see **only their own** requests.

    ``start_date`` and ``end_date`` filter on creation time and only apply
    when both are given.
    """
    query = db.query(models.MaintenanceRequest)
    if not is_admin(current_user.role):
        query = query.filter(models.MaintenanceRequest.user_id == current_user.id)
    if status is not None:
        query = query.filter(models.MaintenanceRequest.status == status.value)
    if type is not None:
        query = query.filter(models.MaintenanceRequest.type == type.value)
    if start_date is not None and end_date is not None:
        query = query.filter(
            models.MaintenanceRequest.created_at >= naive_utc(start_date),
            models.MaintenanceRequest.created_at <= naive_utc(end_date),
        )
    return query.order_by(models.MaintenanceRequest.created_at.desc(), models.MaintenanceRequest.id.desc()).all()


@router.post("/", response_model=schemas.MaintenanceOut, status_code=status.HTTP_201_CREATED)
def create_request(
    request_in: schemas.MaintenanceCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """File a maintenance request or a complaint. It starts as ``pending``."""
    request = models.MaintenanceRequest(
        title=request_in.title,
        description=request_in.description,
        type=request_in.type.value,
        category=request_in.category.value,
        priority=request_in.priority.value,
        location=request_in.location,
        status=MAINTENANCE.initial,
        user_id=current_user.id,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Maintenance request %s filed by user %s", request.id, current_user.id)
    return request


@router.get("/stats/monthly", response_model=List[schemas.MonthlyStat])
def monthly_stats(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Requests created in the given month grouped by type, category and status.
    *(Admin-only)*

    ``avg_resolution_hours`` averages creation-to-resolution time over the
    resolved requests of each group and is ``null`` when there are none.
    """
    return reports.monthly_stats(db, year, month)


@router.patch("/{request_id}/status", response_model=schemas.MaintenanceOut)
def update_request_status(
    request_id: int,
    update_in: schemas.MaintenanceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(ADMIN_ROLE)),
):
    """
    Advance a request and optionally comment on or assign it. *(Admin-only)*

    ``pending -> in_progress -> resolved``; moving to ``resolved`` stamps
    ``resolved_at``. Cancelling goes through ``POST /{id}/cancel``.

    Raises
    ------
    HTTPException
        - 400 if the status cannot be set through this endpoint.
        - 404 if the request or the assignee does not exist.
        - 409 if the request is already resolved or cancelled.
    """
    request = get_request(db, request_id)

    assignee = None
    if update_in.assigned_to is not None:
        assignee = db.query(models.User).filter(models.User.id == update_in.assigned_to).first()
        if not assignee:
            raise NotFound("Assignee not found")

    MAINTENANCE.apply("set_status", request, update_in.status, current_user)
    if update_in.admin_comments:
        request.admin_comments = update_in.admin_comments
    if assignee is not None:
        request.assigned_to_id = assignee.id

    db.commit()
    db.refresh(request)
    return request


@router.post("/{request_id}/cancel", response_model=schemas.MaintenanceOut)
def cancel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cancel a ``pending`` or ``in_progress`` request. Owner or admin only.
    """
    request = get_request(db, request_id)
    MAINTENANCE.apply("cancel", request, MaintenanceStatus.CANCELLED, current_user)
    db.commit()
    db.refresh(request)
    return request
