# questionnaire_api/schemas/questionnaire.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from questionnaire_api.models.enums import AssignmentType, QuestionType
from questionnaire_api.schemas.common import ORMModel, RefOut


# ---------- Inputs ----------

class OptionIn(BaseModel):
    id: Optional[UUID] = None
    text: str
    order_index: Optional[int] = None


class QuestionIn(BaseModel):
    id: Optional[UUID] = None
    text: str
    type: QuestionType
    required: bool = False
    order_index: Optional[int] = None
    options: Optional[List[OptionIn]] = None


class QuestionnaireCreateIn(BaseModel):
    group_id: UUID
    title: str
    description: Optional[str] = None
    is_anonymous: bool = False
    assignment_type: AssignmentType = AssignmentType.ALL_STUDENTS
    assignment_ids: List[UUID] = Field(default_factory=list)  # triple ids
    questions: List[QuestionIn] = Field(default_factory=list)


class QuestionnaireUpdateIn(BaseModel):
    """Only the fields explicitly set (model_fields_set) are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    is_anonymous: Optional[bool] = None
    assignment_type: Optional[AssignmentType] = None
    assignment_ids: Optional[List[UUID]] = None
    questions: Optional[List[QuestionIn]] = None


class GroupIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


# ---------- Outputs ----------

class GroupOut(ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GroupListOut(BaseModel):
    data: List[GroupOut]
    total: int
    has_more: bool


class GroupEnvelopeOut(BaseModel):
    success: bool
    message: str
    group: Optional[GroupOut] = None


class OptionOut(ORMModel):
    id: UUID
    question_id: UUID
    text: str
    order_index: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuestionOut(ORMModel):
    id: UUID
    questionnaire_id: UUID
    text: str
    type: QuestionType
    required: bool
    order_index: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    options: List[OptionOut] = Field(default_factory=list)


class StudentRefOut(ORMModel):
    id: UUID
    name: str
    email: Optional[str] = None


class TripleOut(BaseModel):
    """An active student/teacher/subject triple with its rows expanded."""

    id: UUID
    student: StudentRefOut
    teacher: Optional[RefOut] = None
    subject: RefOut


class QuestionnaireOut(ORMModel):
    id: UUID
    group_id: UUID
    title: str
    description: Optional[str] = None
    is_active: bool
    is_anonymous: bool = False
    assignment_type: AssignmentType = AssignmentType.ALL_STUDENTS
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    questions: List[QuestionOut] = Field(default_factory=list)
    assignments: List[TripleOut] = Field(default_factory=list)


class QuestionnaireListOut(BaseModel):
    data: List[QuestionnaireOut]
    total: int
    has_more: bool


class QuestionnaireEnvelopeOut(BaseModel):
    success: bool
    message: str
    questionnaire: Optional[QuestionnaireOut] = None


class StudentQuestionnaireOut(BaseModel):
    """One (questionnaire, triple) pair a student may answer."""

    id: UUID
    title: str
    description: Optional[str] = None
    is_anonymous: bool = False
    is_submitted: bool = False
    created_at: Optional[datetime] = None
    questions: List[QuestionOut] = Field(default_factory=list)
    subject: RefOut
    teacher: Optional[RefOut] = None


class QuestionnaireAssignmentDataOut(BaseModel):
    subjects: List[RefOut]
    teachers: List[RefOut]
    students: List[StudentRefOut]
    assignments: List[TripleOut]
