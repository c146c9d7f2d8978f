from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, get_user_by_email
from ..errors import Forbidden, NotFound, ValidationFailed
from ..policy import is_admin, is_self_or_admin

router = APIRouter(prefix="/residents", tags=["residents"])


@router.get("/", response_model=List[schemas.UserOut])
def list_residents(
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """List every registered account (passwords are never returned)."""
    return db.query(models.User).order_by(models.User.block, models.User.flat, models.User.name).all()


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_resident(
    user_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("Resident not found")
    return user


@router.put("/{user_id}", response_model=schemas.UserOut)
def update_resident(
    user_id: int,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update a resident profile.

    - Residents may update **only their own** profile.
    - Administrators may update **any** profile, including the role.

    The password cannot be changed through this endpoint.

    Raises
    ------
    HTTPException
        - 403 if a resident edits someone else or tries to change a role.
        - 404 if the target user does not exist.
        - 400 if the new email is already taken.
    """
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("Resident not found")

    is_self_or_admin(current_user.id, current_user.role, user.id).enforce(
        "Not allowed to update this resident"
    )

    data = user_update.model_dump(exclude_unset=True)

    if "role" in data and not is_admin(current_user.role):
        raise Forbidden("Not allowed to change role")

    if data.get("email"):
        data["email"] = data["email"].lower()
        existing = get_user_by_email(db, data["email"])
        if existing and existing.id != user.id:
            raise ValidationFailed("Email already registered")

    for field, value in data.items():
        if value is None and field in ("name", "email", "role"):
            continue
        setattr(user, field, getattr(value, "value", value))

    db.commit()
    db.refresh(user)
    return user
