# questionnaire_api/services/triples.py
"""Write helpers for student/teacher/subject triples (deactivate, then reactivate or recreate)."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from questionnaire_api.models.school import StudentTeacherSubject


def _eq_or_null(column, value):
    return column.is_(None) if value is None else column == value


def deactivate(db: Session, *, student_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None) -> int:
    q = db.query(StudentTeacherSubject).filter(StudentTeacherSubject.is_active.is_(True))
    if student_id is not None:
        q = q.filter(StudentTeacherSubject.student_id == student_id)
    if teacher_id is not None:
        q = q.filter(StudentTeacherSubject.teacher_id == teacher_id)
    return q.update({StudentTeacherSubject.is_active: False}, synchronize_session="fetch")


def activate(db: Session, student_id: Optional[UUID], teacher_id: Optional[UUID], subject_id: UUID) -> StudentTeacherSubject:
    """Reactivates the newest matching row, or inserts a new active one. Caller commits."""
    row = (
        db.query(StudentTeacherSubject)
        .filter(
            _eq_or_null(StudentTeacherSubject.student_id, student_id),
            _eq_or_null(StudentTeacherSubject.teacher_id, teacher_id),
            StudentTeacherSubject.subject_id == subject_id,
        )
        .order_by(StudentTeacherSubject.is_active.desc(), StudentTeacherSubject.created_at.desc())
        .first()
    )
    if row is None:
        row = StudentTeacherSubject(student_id=student_id, teacher_id=teacher_id, subject_id=subject_id, is_active=True)
        db.add(row)
    else:
        row.is_active = True
    # flush so a repeated triple in the same request finds this row
    db.flush()
    return row
