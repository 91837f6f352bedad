# questionnaire_api/services/subjects.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from questionnaire_api.core.errors import handle_database_error
from questionnaire_api.core.pagination import ilike_pattern, paginate
from questionnaire_api.models.school import Subject
from questionnaire_api.schemas.school import SubjectEnvelopeOut, SubjectListOut, SubjectOut


class SubjectService:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, operation)

    def _name_taken(self, name: str, exclude_id: Optional[UUID] = None) -> bool:
        q = self.db.query(Subject.id).filter(Subject.name == name)
        if exclude_id is not None:
            q = q.filter(Subject.id != exclude_id)
        return q.first() is not None

    def list(self, index: int = 0, name_filter: Optional[str] = None) -> SubjectListOut:
        q = self.db.query(Subject)
        if name_filter:
            q = q.filter(Subject.name.ilike(ilike_pattern(name_filter)))
        page = paginate(q.order_by(Subject.name.asc()), index)
        return SubjectListOut(
            subjects=[SubjectOut.model_validate(s) for s in page.items], total=page.total, has_more=page.has_more
        )

    def create(self, name: str) -> SubjectEnvelopeOut:
        if self._name_taken(name):
            return SubjectEnvelopeOut(success=False, message=f'Předmět s názvem "{name}" již existuje')
        subject = Subject(name=name)
        self.db.add(subject)
        self._commit("create subject")
        return SubjectEnvelopeOut(
            success=True, message="Předmět byl úspěšně vytvořen", subject=SubjectOut.model_validate(subject)
        )

    def update(self, subject_id: UUID, name: str) -> SubjectEnvelopeOut:
        subject = self.db.get(Subject, subject_id)
        if subject is None:
            return SubjectEnvelopeOut(success=False, message="Předmět nenalezen")
        if self._name_taken(name, exclude_id=subject_id):
            return SubjectEnvelopeOut(success=False, message=f'Předmět s názvem "{name}" již existuje')
        subject.name = name
        self._commit("update subject")
        return SubjectEnvelopeOut(
            success=True, message="Předmět byl úspěšně aktualizován", subject=SubjectOut.model_validate(subject)
        )

    def delete(self, subject_id: UUID) -> SubjectEnvelopeOut:
        subject = self.db.get(Subject, subject_id)
        if subject is None:
            return SubjectEnvelopeOut(success=False, message="Předmět nenalezen")
        snapshot = SubjectOut.model_validate(subject)
        # triples of the subject go with it (ON DELETE CASCADE)
        self.db.query(Subject).filter(Subject.id == subject_id).delete(synchronize_session=False)
        self._commit("delete subject")
        self.db.expire_all()
        return SubjectEnvelopeOut(success=True, message="Předmět byl úspěšně smazán", subject=snapshot)

    def delete_many(self, ids: List[UUID]) -> SubjectEnvelopeOut:
        if ids:
            self.db.query(Subject).filter(Subject.id.in_(ids)).delete(synchronize_session=False)
            self._commit("delete subjects")
            self.db.expire_all()
        return SubjectEnvelopeOut(success=True, message=f"{len(ids)} předmětů bylo úspěšně smazáno")
