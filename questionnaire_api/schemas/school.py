# questionnaire_api/schemas/school.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from questionnaire_api.schemas.common import ORMModel, RefOut


# ---------- Inputs ----------

class TeacherAssignmentIn(BaseModel):
    subject_id: UUID
    # empty list = teacher teaches the subject without any student yet
    student_ids: List[UUID] = Field(default_factory=list)


class StudentAssignmentIn(BaseModel):
    subject_id: UUID
    teacher_id: Optional[UUID] = None


# ---------- Outputs ----------

class SubjectOut(ORMModel):
    id: UUID
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TeacherSubjectOut(BaseModel):
    subject: RefOut
    student_count: int


class TeacherOut(ORMModel):
    id: UUID
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subjects: List[TeacherSubjectOut] = Field(default_factory=list)


class StudentSubjectOut(BaseModel):
    subject: RefOut
    teacher: Optional[RefOut] = None


class StudentOut(ORMModel):
    id: UUID
    name: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subjects: List[StudentSubjectOut] = Field(default_factory=list)


class SubjectListOut(BaseModel):
    subjects: List[SubjectOut]
    total: int
    has_more: bool


class TeacherListOut(BaseModel):
    teachers: List[TeacherOut]
    total: int
    has_more: bool


class StudentListOut(BaseModel):
    students: List[StudentOut]
    total: int
    has_more: bool


class SubjectEnvelopeOut(BaseModel):
    success: bool
    message: str
    subject: Optional[SubjectOut] = None


class TeacherEnvelopeOut(BaseModel):
    success: bool
    message: str
    teacher: Optional[TeacherOut] = None


class StudentEnvelopeOut(BaseModel):
    success: bool
    message: str
    student: Optional[StudentOut] = None


class StudentWithSubjectsOut(BaseModel):
    id: UUID
    name: str
    subjects: List[SubjectOut]


class AssignmentDataOut(BaseModel):
    subjects: List[SubjectOut]
    students: List[StudentWithSubjectsOut]


class SubjectWithTeachersOut(BaseModel):
    id: UUID
    name: str
    teachers: List[RefOut]


class StudentAssignmentDataOut(BaseModel):
    subjects: List[SubjectWithTeachersOut]
