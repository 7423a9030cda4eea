"""
Request payloads accepted by the API.

Routes validate request.get_json() through these models; a pydantic
ValidationError is answered with 400 by the handler in app.py.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import ROLE_STUDENT
from scheduling import to_minutes

Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
Priority = Literal["low", "medium", "high", "urgent"]
State = Literal["pending", "in_progress", "completed", "cancelled"]
Role = Literal["Admin", "Student"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class RegisterPayload(Payload):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=200)
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class LoginPayload(Payload):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class UserCreatePayload(RegisterPayload):
    role: Role = ROLE_STUDENT


class UserUpdatePayload(Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=200)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[Role] = None
    active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v is not None else v


class ScheduleSlot(Payload):
    day: Weekday
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        to_minutes(v)
        return v

    @model_validator(mode="after")
    def _start_before_end(self) -> "ScheduleSlot":
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError(f"start {self.start} must be before end {self.end}")
        return self


class SubjectCreatePayload(Payload):
    name: str = Field(min_length=1, max_length=200)
    assigned_teacher: str = Field(alias="assignedTeacher", min_length=1, max_length=200)
    color: str = Field(min_length=1, max_length=20)
    schedule: List[ScheduleSlot] = Field(default_factory=list)


class SubjectUpdatePayload(Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    assigned_teacher: Optional[str] = Field(default=None, alias="assignedTeacher", min_length=1, max_length=200)
    color: Optional[str] = Field(default=None, min_length=1, max_length=20)
    schedule: Optional[List[ScheduleSlot]] = None


class TaskCreatePayload(Payload):
    subject_id: UUID = Field(alias="subjectId")
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    notes: Optional[str] = None
    start_date: date
    delivery_date: date
    priority: Priority
    state: State


class TaskUpdatePayload(Payload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    start_date: Optional[date] = None
    delivery_date: Optional[date] = None
    priority: Optional[Priority] = None
    state: Optional[State] = None


class SessionCreatePayload(Payload):
    task_id: UUID = Field(alias="taskId")
    duration_min: int = Field(default=25, ge=1, le=120)
    break_time: int = Field(default=5, ge=1, le=30)
    breaks_taken: int = Field(default=0, ge=0)
    completed: bool = False


class SessionUpdatePayload(Payload):
    duration_min: Optional[int] = Field(default=None, ge=1, le=120)
    breaks_taken: Optional[int] = Field(default=None, ge=0)
    completed: Optional[bool] = None
    end_session: Optional[datetime] = None


class AttachmentUpdatePayload(Payload):
    original_name: str = Field(alias="originalName", min_length=1, max_length=300)

