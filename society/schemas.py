from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .transitions import BookingStatus, LostFoundStatus, MaintenanceStatus


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store every timestamp as naive UTC, whatever offset the client sent."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ----- Enums -----
class Role(str, Enum):
    RESIDENT = "resident"
    ADMIN = "admin"


class LostFoundType(str, Enum):
    LOST = "lost"
    FOUND = "found"


class MaintenanceType(str, Enum):
    MAINTENANCE = "maintenance"
    COMPLAINT = "complaint"


class MaintenanceCategory(str, Enum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    HOUSEKEEPING = "housekeeping"
    SECURITY = "security"
    ELEVATOR = "elevator"
    PARKING = "parking"
    GYM = "gym"
    SWIMMING_POOL = "swimming_pool"
    COMMON_AREA = "common_area"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# ----- Users -----
class UserSummary(ORMModel):
    id: int
    name: str
    email: EmailStr


class UserBase(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    block: Optional[str] = None
    flat: Optional[str] = None
    phone: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    block: Optional[str] = None
    flat: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Role] = None


class UserOut(UserBase, ORMModel):
    id: int
    role: str
    created_at: datetime


# ----- Auth -----
class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


class TokenData(BaseModel):
    user_id: int
    role: Optional[str] = None


# ----- Notices -----
class NoticeCreate(BaseModel):
    title: str = Field(min_length=1)
    body: Optional[str] = None
    recipient_id: Optional[int] = None
    pinned: bool = False


class NoticeOut(ORMModel):
    id: int
    title: str
    body: Optional[str] = None
    author: Optional[UserSummary] = None
    recipient_id: Optional[int] = None
    pinned: bool
    has_poll: bool
    created_at: datetime


# ----- Polls -----
class PollCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notice_id: int = Field(alias="noticeId")
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=1)
    end_date: datetime = Field(alias="endDate")

    @field_validator("options")
    @classmethod
    def options_not_blank(cls, value: List[str]) -> List[str]:
        cleaned = [option.strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("Poll options must not be blank")
        return cleaned

    @field_validator("end_date")
    @classmethod
    def end_date_utc(cls, value: datetime) -> datetime:
        return naive_utc(value)


class PollOptionOut(ORMModel):
    id: int
    text: str
    votes: List[UserSummary] = Field(default_factory=list, validation_alias="voters")


class PollOut(ORMModel):
    id: int
    question: str
    end_date: datetime
    notice_id: int
    options: List[PollOptionOut]
    created_at: datetime


class VoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    option_id: int = Field(alias="optionId")


# ----- Bookings -----
class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    facility: str = Field(min_length=1)
    date: datetime
    from_time: Optional[str] = Field(None, alias="from")
    to_time: Optional[str] = Field(None, alias="to")

    @field_validator("date")
    @classmethod
    def date_utc(cls, value: datetime) -> datetime:
        return naive_utc(value)


class BookingOut(ORMModel):
    id: int
    facility: str
    user: UserSummary
    date: datetime
    from_time: Optional[str] = Field(None, serialization_alias="from")
    to_time: Optional[str] = Field(None, serialization_alias="to")
    status: BookingStatus
    created_at: datetime


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


# ----- Lost & found -----
class LostFoundOut(ORMModel):
    id: int
    type: LostFoundType
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    date: datetime
    image: Optional[str] = None
    status: LostFoundStatus
    user: UserSummary
    contact: Optional[str] = None
    created_at: datetime


class LostFoundStatusUpdate(BaseModel):
    status: LostFoundStatus


# ----- Chat -----
class MessageCreate(BaseModel):
    content: str


class ChatMessageOut(ORMModel):
    id: int
    sender: UserSummary
    content: str
    created_at: datetime


class ChatOut(ORMModel):
    id: int
    item_id: int
    participants: List[UserSummary]
    messages: List[ChatMessageOut]
    created_at: datetime
    updated_at: datetime


# ----- Maintenance -----
class MaintenanceCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: MaintenanceType
    category: MaintenanceCategory
    priority: Priority = Priority.MEDIUM
    location: str = Field(min_length=1)


class MaintenanceOut(ORMModel):
    id: int
    title: str
    description: str
    type: MaintenanceType
    category: MaintenanceCategory
    priority: Priority
    status: MaintenanceStatus
    location: str
    user: UserSummary
    assigned_to: Optional[UserSummary] = None
    admin_comments: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


class MaintenanceStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: MaintenanceStatus
    admin_comments: Optional[str] = Field(None, alias="adminComments")
    assigned_to: Optional[int] = Field(None, alias="assignedTo")


class MonthlyStat(BaseModel):
    type: str
    category: str
    status: str
    count: int
    avg_resolution_hours: Optional[float] = None


# ----- Generic responses -----
class Message(BaseModel):
    detail: str
