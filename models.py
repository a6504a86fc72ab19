from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    HELP_SEEKER = "help_seeker"
    VOLUNTEER = "volunteer"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})


class Category(str, Enum):
    GROCERIES = "Groceries"
    TRANSPORT = "Transport"
    EMOTIONAL_SUPPORT = "Emotional Support"
    ERRANDS = "Errands"
    OTHER = "Other"


class ComplaintStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    contact_number: Optional[str] = None
    password_hash: str
    role: Role = Role.HELP_SEEKER
    created_at: datetime = Field(default_factory=utcnow)


class HelpRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="user.id", index=True)

    title: str = Field(max_length=100)
    description: str = Field(max_length=1000)
    category: Category = Category.OTHER
    status: RequestStatus = Field(default=RequestStatus.PENDING, index=True)
    assigned_volunteer_id: Optional[int] = Field(
        default=None, foreign_key="user.id", index=True
    )
    has_review: bool = False
    created_at: datetime = Field(default_factory=utcnow, index=True)


class Review(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    help_request_id: int = Field(foreign_key="helprequest.id", unique=True)
    reviewer_id: int = Field(foreign_key="user.id")
    reviewed_volunteer_id: int = Field(foreign_key="user.id", index=True)

    rating: int
    comment: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class Complaint(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    filed_by_id: int = Field(foreign_key="user.id", index=True)
    against_volunteer_id: int = Field(foreign_key="user.id", index=True)

    title: str
    description: str
    status: ComplaintStatus = ComplaintStatus.PENDING
    filed_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None


class VolunteerProfile(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True)

    bio: str = Field(max_length=500)
    skills: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    availability: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)
