from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


# Responses use the camelCase keys the browser client reads
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


NormalizedEmail = Annotated[EmailStr, BeforeValidator(_normalize_email)]


def _iso_timestamp(value):
    # Unix timestamps and other non-string input are not ISO-8601 dates
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and not value.strip().lstrip("-").replace(".", "", 1).isdigit():
        return value
    raise ValueError("Deadline must be a valid ISO-8601 date")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Deadlines are stored in UTC; naive values are taken to already be UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Users ---

# Schema for a new user registration
class UserCreate(BaseModel):
    email: NormalizedEmail
    password: str = Field(..., min_length=6)
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v


# Schema for a user login
class UserLogin(BaseModel):
    email: NormalizedEmail
    password: str = Field(..., min_length=1)


class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str


# Schema for the signup/login response
class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


# --- Tasks ---

class TaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field("", max_length=1000)
    status: TaskStatus = TaskStatus.PENDING
    deadline: datetime

    @field_validator("description")
    @classmethod
    def empty_description(cls, v):
        return v or ""

    @field_validator("deadline", mode="before")
    @classmethod
    def deadline_is_iso(cls, v):
        return _iso_timestamp(v)

    @field_validator("deadline")
    @classmethod
    def deadline_utc(cls, v):
        return _as_utc(v)


# Every field is optional; only the ones sent are applied
class TaskUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[TaskStatus] = None
    deadline: Optional[datetime] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def deadline_is_iso(cls, v):
        return _iso_timestamp(v)

    @field_validator("deadline")
    @classmethod
    def deadline_utc(cls, v):
        return _as_utc(v)

    @model_validator(mode="after")
    def required_fields_not_null(self):
        for field in ("title", "status", "deadline"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self

    def changes(self) -> dict:
        values = self.model_dump(exclude_unset=True)
        if "description" in values and values["description"] is None:
            values["description"] = ""
        if "status" in values:
            values["status"] = values["status"].value
        return values


class Task(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str = ""
    status: TaskStatus
    deadline: datetime
    user: str
    created_at: datetime
    updated_at: datetime


class TaskResponse(BaseModel):
    message: str
    task: Task


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_tasks: int
    limit: int


class TaskPage(BaseModel):
    tasks: List[Task]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
