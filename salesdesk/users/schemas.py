from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


Role = Literal["SUPER_ADMIN", "MANAGER", "EMPLOYEE"]


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: Role | str


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str | None = None
    role: Role = "EMPLOYEE"
    branch_id: UUID | None = None
    manager_id: UUID | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=6)
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    phone: str | None = None
    role: Role | None = None
    branch_id: UUID | None = None


class AssignManagerRequest(BaseModel):
    manager_id: UUID


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    role: Role | str
    is_active: bool
    branch_id: UUID | None
    manager_id: UUID | None
    created_at: datetime
    updated_at: datetime


class UserDetailRead(UserRead):
    manager: UserSummary | None = None
    employees: list[UserSummary] = Field(default_factory=list)
