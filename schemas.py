from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models import Category, ComplaintStatus, RequestStatus, Role


class HelpRequestCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: Category = Category.OTHER


class AdminStatusUpdate(BaseModel):
    status: RequestStatus
    volunteer_id: Optional[int] = None


class PersonSummary(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class HelpRequestRead(BaseModel):
    id: int
    title: str
    description: str
    category: Category
    status: RequestStatus
    has_review: bool
    created_at: datetime
    requester_id: int
    assigned_volunteer_id: Optional[int] = None
    requester: Optional[PersonSummary] = None
    assigned_volunteer: Optional[PersonSummary] = None


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.HELP_SEEKER
    contact_number: Optional[str] = None


class UserRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: Role
    contact_number: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    email: EmailStr
    password: str


class RoleUpdate(BaseModel):
    role: Role


class ReviewCreate(BaseModel):
    help_request_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)


class ComplaintCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    against_volunteer_id: int
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus


class Location(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class VolunteerProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    bio: str = Field(min_length=1, max_length=500)
    skills: List[str] = Field(min_length=1)
    availability: List[str] = Field(min_length=1)
    location: Optional[Location] = None


class RoleCount(BaseModel):
    role: Role
    count: int


class StatusCount(BaseModel):
    status: RequestStatus
    count: int

