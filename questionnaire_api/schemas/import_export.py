# questionnaire_api/schemas/import_export.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ImportRecord(BaseModel):
    student: str
    email: str
    password: str
    teacher: str
    subject: str


class ImportResultOut(BaseModel):
    success: bool
    message: str
    total_records: int = 0
    new_students: int = 0
    new_teachers: int = 0
    new_subjects: int = 0
    updated_records: int = 0
    duplicates_skipped: int = 0
    errors: List[str] = Field(default_factory=list)
