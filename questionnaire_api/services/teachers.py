# questionnaire_api/services/teachers.py
from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import handle_database_error
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.pagination import ilike_pattern, paginate, slice_page
from questionnaire_api.core.saga import Saga
from questionnaire_api.models.school import StudentTeacherSubject, Teacher
from questionnaire_api.schemas.common import RefOut
from questionnaire_api.schemas.school import (
    TeacherAssignmentIn,
    TeacherEnvelopeOut,
    TeacherListOut,
    TeacherOut,
    TeacherSubjectOut,
)
from questionnaire_api.services import triples

log = get_logger("teachers")


def teacher_out(teacher: Teacher) -> TeacherOut:
    """Active relationships grouped by subject, counting distinct (non-null) students."""
    by_subject: Dict[UUID, tuple] = {}
    for rel in teacher.relationships:
        if not rel.is_active or rel.subject is None:
            continue
        subject, students = by_subject.setdefault(rel.subject_id, (rel.subject, set()))
        if rel.student_id is not None:
            students.add(rel.student_id)
    return TeacherOut(
        id=teacher.id,
        name=teacher.name,
        created_at=teacher.created_at,
        updated_at=teacher.updated_at,
        subjects=[
            TeacherSubjectOut(subject=RefOut.model_validate(subject), student_count=len(students))
            for subject, students in by_subject.values()
        ],
    )


class TeacherService:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, operation)

    def _query(self):
        return self.db.query(Teacher).options(
            selectinload(Teacher.relationships).selectinload(StudentTeacherSubject.subject)
        )

    def _name_taken(self, name: str, exclude_id: Optional[UUID] = None) -> bool:
        q = self.db.query(Teacher.id).filter(Teacher.name == name)
        if exclude_id is not None:
            q = q.filter(Teacher.id != exclude_id)
        return q.first() is not None

    def get(self, teacher_id: UUID) -> Optional[TeacherOut]:
        teacher = self._query().populate_existing().filter(Teacher.id == teacher_id).first()
        return teacher_out(teacher) if teacher else None

    def list(self, index: int = 0, name_filter: Optional[str] = None, subject_filter: Optional[str] = None) -> TeacherListOut:
        q = self._query()
        if name_filter:
            q = q.filter(Teacher.name.ilike(ilike_pattern(name_filter)))
        q = q.order_by(Teacher.name.asc())

        if subject_filter:
            # matched against subject names of active relationships, then paged in memory
            needle = subject_filter.lower()
            matching = [
                t for t in q.all()
                if any(r.is_active and r.subject and needle in r.subject.name.lower() for r in t.relationships)
            ]
            page = slice_page(matching, index)
        else:
            page = paginate(q, index)

        return TeacherListOut(
            teachers=[teacher_out(t) for t in page.items], total=page.total, has_more=page.has_more
        )

    @staticmethod
    def _rows_for(teacher_id: UUID, assignments: List[TeacherAssignmentIn]) -> List[dict]:
        rows = []
        for a in assignments:
            # no students = the teacher teaches the subject, nobody enrolled yet
            for student_id in a.student_ids or [None]:
                rows.append({"teacher_id": teacher_id, "subject_id": a.subject_id, "student_id": student_id})
        return rows

    def create(self, name: str, assignments: Optional[List[TeacherAssignmentIn]] = None) -> TeacherEnvelopeOut:
        if self._name_taken(name):
            return TeacherEnvelopeOut(success=False, message=f'Učitel se jménem "{name}" již existuje')

        def insert_teacher() -> UUID:
            teacher = Teacher(name=name)
            self.db.add(teacher)
            self._commit("create teacher")
            return teacher.id

        def insert_relationships() -> int:
            rows = self._rows_for(saga.results["teacher"], assignments or [])
            if rows:
                self.db.add_all([StudentTeacherSubject(is_active=True, **r) for r in rows])
                self._commit("create assignments")
            return len(rows)

        saga = Saga("create teacher")
        saga.step("teacher", insert_teacher, self._delete_row)
        saga.step("relationships", insert_relationships)
        teacher_id = saga.run()["teacher"]

        return TeacherEnvelopeOut(success=True, message="Učitel byl úspěšně vytvořen", teacher=self.get(teacher_id))

    def update(
        self, teacher_id: UUID, name: str, assignments: Optional[List[TeacherAssignmentIn]] = None
    ) -> TeacherEnvelopeOut:
        teacher = self.db.get(Teacher, teacher_id)
        if teacher is None:
            return TeacherEnvelopeOut(success=False, message="Učitel nenalezen")
        if self._name_taken(name, exclude_id=teacher_id):
            return TeacherEnvelopeOut(success=False, message=f'Učitel se jménem "{name}" již existuje')

        teacher.name = name
        self._commit("update teacher")

        if assignments is not None:
            triples.deactivate(self.db, teacher_id=teacher_id)
            self._commit("deactivate assignments")
            for row in self._rows_for(teacher_id, assignments):
                triples.activate(self.db, row["student_id"], teacher_id, row["subject_id"])
            self._commit("update assignments")

        return TeacherEnvelopeOut(success=True, message="Učitel byl úspěšně aktualizován", teacher=self.get(teacher_id))

    def _delete_row(self, teacher_id: UUID) -> None:
        self.db.query(Teacher).filter(Teacher.id == teacher_id).delete(synchronize_session=False)
        self.db.commit()
        self.db.expire_all()

    def delete(self, teacher_id: UUID) -> TeacherEnvelopeOut:
        teacher = self.db.get(Teacher, teacher_id)
        if teacher is None:
            return TeacherEnvelopeOut(success=False, message="Učitel nenalezen")
        snapshot = TeacherOut(
            id=teacher.id, name=teacher.name, created_at=teacher.created_at, updated_at=teacher.updated_at
        )
        try:
            self._delete_row(teacher_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, "delete teacher")
        return TeacherEnvelopeOut(success=True, message="Učitel byl úspěšně smazán", teacher=snapshot)

    def delete_many(self, ids: List[UUID]) -> TeacherEnvelopeOut:
        if ids:
            self.db.query(Teacher).filter(Teacher.id.in_(ids)).delete(synchronize_session=False)
            self._commit("delete teachers")
            self.db.expire_all()
        return TeacherEnvelopeOut(success=True, message=f"{len(ids)} učitelů bylo úspěšně smazáno")
