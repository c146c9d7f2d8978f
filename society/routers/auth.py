import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import (
    get_db,
    get_password_hash,
    get_user_by_email,
    authenticate_user,
    create_access_token,
    get_current_user,
)
from ..errors import Unauthenticated, ValidationFailed
from ..policy import RESIDENT_ROLE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new resident account and sign it in.

    Self-registered accounts always get the ``resident`` role; administrators
    are provisioned with ``python -m society.provision``.

    Raises
    ------
    HTTPException
        - 400 if the email is already registered.
    """
    if get_user_by_email(db, user_in.email):
        raise ValidationFailed("Email already registered")

    user = models.User(
        name=user_in.name,
        email=user_in.email.lower(),
        hashed_password=get_password_hash(user_in.password),
        role=RESIDENT_ROLE,
        block=user_in.block,
        flat=user_in.flat,
        phone=user_in.phone,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return {"token": create_access_token(user), "user": user}


@router.post("/login", response_model=schemas.AuthResponse)
def login(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate with email and password and return a JWT.

    Raises
    ------
    HTTPException
        - 401 if credentials are invalid.
    """
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise Unauthenticated("Incorrect email or password")
    return {"token": create_access_token(user), "user": user}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """Profile of the user the bearer token belongs to."""
    return current_user
