from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user
from ..services import chat as chat_service

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/item/{item_id}", response_model=schemas.ChatOut)
def get_item_chat(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Open the chat about a lost & found item, creating it on first access.

    Raises
    ------
    HTTPException
        - 403 if the chat already belongs to the owner and another resident.
        - 404 if the item does not exist.
    """
    item = chat_service.get_item(db, item_id)
    return chat_service.get_or_create_chat(db, item, current_user)


@router.post("/item/{item_id}/message", response_model=schemas.ChatOut)
def send_message(
    item_id: int,
    message_in: schemas.MessageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Append a message and return the whole conversation."""
    return chat_service.append_message(db, item_id, current_user, message_in.content)
