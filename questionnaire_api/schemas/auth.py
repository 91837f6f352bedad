# questionnaire_api/schemas/auth.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

from questionnaire_api.models.enums import Role
from questionnaire_api.schemas.common import ORMModel


class UserOut(ORMModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthPayloadOut(BaseModel):
    user: UserOut
    token: str
    refresh_token: str


class UpdateProfileIn(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr


class UpdateProfileOut(BaseModel):
    success: bool
    message: str
    user: Optional[UserOut] = None


# -------- Admins --------
class CreateAdminIn(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str


class AdminListOut(BaseModel):
    admins: List[UserOut]
    total: int


class AdminEnvelopeOut(BaseModel):
    success: bool
    message: str
    admin: Optional[UserOut] = None
