"""
Two-party chat attached to a lost & found item.

A chat is created lazily the first time someone opens or writes to it, with
the requester and the item owner as participants. The owner is always
admitted; if the owner opened the chat first, the first other user to arrive
becomes the second participant.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def get_item(db: Session, item_id: int) -> models.LostFoundItem:
    item = db.query(models.LostFoundItem).filter(models.LostFoundItem.id == item_id).first()
    if not item:
        raise NotFound("Item not found")
    return item


def _find_chat(db: Session, item_id: int) -> models.Chat | None:
    return db.query(models.Chat).filter(models.Chat.item_id == item_id).first()


def _admit(db: Session, chat: models.Chat, item: models.LostFoundItem, user: models.User) -> models.Chat:
    participant_ids = {p.id for p in chat.participants}
    if user.id == item.user_id or user.id in participant_ids:
        return chat

    if participant_ids <= {item.user_id}:
        chat.participants.append(user)
        db.commit()
        db.refresh(chat)
        logger.info("User %s joined chat %s for item %s", user.id, chat.id, item.id)
        return chat

    raise Forbidden("Not a participant in this chat")


def get_or_create_chat(db: Session, item: models.LostFoundItem, user: models.User) -> models.Chat:
    chat = _find_chat(db, item.id)
    if chat is not None:
        return _admit(db, chat, item, user)

    chat = models.Chat(item_id=item.id)
    chat.participants = [user] if user.id == item.user_id else [user, item.user]
    db.add(chat)
    try:
        db.commit()
    except IntegrityError:
        # another request created the chat for this item first
        db.rollback()
        return _admit(db, _find_chat(db, item.id), item, user)

    logger.info("Created chat %s for item %s", chat.id, item.id)
    db.refresh(chat)
    return chat


def append_message(db: Session, item_id: int, user: models.User, content: str) -> models.Chat:
    if not content or not content.strip():
        raise ValidationFailed("Message content is required")

    item = get_item(db, item_id)
    chat = get_or_create_chat(db, item, user)

    chat.messages.append(models.ChatMessage(sender_id=user.id, content=content))
    chat.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(chat)
    return chat
