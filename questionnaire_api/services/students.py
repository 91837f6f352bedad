# questionnaire_api/services/students.py
"""
Students, their triples and their optional login accounts.

A student can own an account at the identity provider (same email). Account
problems are reported through the envelope and undo the student row change
that preceded them.
"""
from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import Conflict, ValidationFailed, handle_database_error
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.pagination import ilike_pattern, paginate, slice_page
from questionnaire_api.core.saga import Saga
from questionnaire_api.models.enums import Role
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.school import Student, StudentTeacherSubject, Subject
from questionnaire_api.schemas.common import RefOut
from questionnaire_api.schemas.school import (
    AssignmentDataOut,
    StudentAssignmentDataOut,
    StudentAssignmentIn,
    StudentEnvelopeOut,
    StudentListOut,
    StudentOut,
    StudentSubjectOut,
    StudentWithSubjectsOut,
    SubjectOut,
    SubjectWithTeachersOut,
)
from questionnaire_api.services import triples
from questionnaire_api.services.identity import IdentityError, IdentityProvider

log = get_logger("students")


def split_name(name: str) -> tuple[str, str]:
    parts = name.split(" ")
    return parts[0] or name, " ".join(parts[1:])


def student_out(student: Student) -> StudentOut:
    return StudentOut(
        id=student.id,
        name=student.name,
        email=student.email,
        created_at=student.created_at,
        updated_at=student.updated_at,
        subjects=[
            StudentSubjectOut(
                subject=RefOut.model_validate(rel.subject),
                teacher=RefOut.model_validate(rel.teacher) if rel.teacher is not None else None,
            )
            for rel in student.relationships
            if rel.is_active and rel.subject is not None
        ],
    )


class StudentService:
    def __init__(self, db: Session, identity: Optional[IdentityProvider] = None):
        self.db = db
        self.identity = identity

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, operation)

    def _query(self):
        return self.db.query(Student).options(
            selectinload(Student.relationships).selectinload(StudentTeacherSubject.subject),
            selectinload(Student.relationships).selectinload(StudentTeacherSubject.teacher),
        )

    def _can_manage_accounts(self) -> bool:
        return self.identity is not None and self.identity.has_admin

    def get(self, student_id: UUID) -> Optional[StudentOut]:
        student = self._query().populate_existing().filter(Student.id == student_id).first()
        return student_out(student) if student else None

    def _taken(self, column, value, exclude_id: Optional[UUID] = None) -> bool:
        q = self.db.query(Student.id).filter(column == value)
        if exclude_id is not None:
            q = q.filter(Student.id != exclude_id)
        return q.first() is not None

    # -------- list --------
    def list(
        self,
        index: int = 0,
        name_filter: Optional[str] = None,
        teacher_filter: Optional[str] = None,
        subject_filter: Optional[str] = None,
    ) -> StudentListOut:
        q = self._query()
        if name_filter:
            q = q.filter(Student.name.ilike(ilike_pattern(name_filter)))
        q = q.order_by(Student.name.asc())

        if teacher_filter or subject_filter:
            teacher_needle = (teacher_filter or "").lower()
            subject_needle = (subject_filter or "").lower()

            def matches(student: Student) -> bool:
                active = [r for r in student.relationships if r.is_active]
                if not active:
                    return False
                by_teacher = not teacher_filter or any(
                    r.teacher is not None and teacher_needle in r.teacher.name.lower() for r in active
                )
                by_subject = not subject_filter or any(
                    r.subject is not None and subject_needle in r.subject.name.lower() for r in active
                )
                return by_teacher and by_subject

            page = slice_page([s for s in q.all() if matches(s)], index)
        else:
            page = paginate(q, index)

        return StudentListOut(
            students=[student_out(s) for s in page.items], total=page.total, has_more=page.has_more
        )

    # -------- accounts --------
    def _upsert_profile(self, user_id: UUID, email: str, name: str) -> None:
        """Best effort: a missing profile name must not fail the student operation."""
        first, last = split_name(name)
        try:
            self.db.merge(Profile(id=user_id, email=email, role=Role.STUDENT.value, first_name=first, last_name=last))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("Failed to update profile %s: %s", user_id, e)

    def _create_account(self, name: str, email: str, password: str) -> UUID:
        try:
            existing = self.identity.find_user_by_email(email)
        except IdentityError as e:
            raise ValidationFailed(f"Nepodařilo se vytvořit autentizační účet: {e.message}") from e
        if existing is not None:
            raise Conflict(f"Uživatel s emailem {email} již existuje v systému")
        try:
            user = self.identity.admin_create_user(email, password, {"role": Role.STUDENT.value})
        except IdentityError as e:
            raise ValidationFailed(f"Nepodařilo se vytvořit autentizační účet: {e.message}") from e
        self._upsert_profile(user.id, email, name)
        return user.id

    # -------- create / update --------
    def create(
        self,
        name: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        assignments: Optional[List[StudentAssignmentIn]] = None,
    ) -> StudentEnvelopeOut:
        if email and self._taken(Student.email, email):
            return StudentEnvelopeOut(success=False, message=f'Student s emailem "{email}" již existuje')
        if self._taken(Student.name, name):
            return StudentEnvelopeOut(success=False, message=f'Student se jménem "{name}" již existuje')

        def insert_student() -> UUID:
            student = Student(name=name, email=email or None)
            self.db.add(student)
            self._commit("create student")
            return student.id

        def insert_relationships() -> int:
            rows = [
                StudentTeacherSubject(
                    student_id=saga.results["student"], subject_id=a.subject_id, teacher_id=a.teacher_id, is_active=True
                )
                for a in assignments or []
            ]
            if rows:
                self.db.add_all(rows)
                self._commit("create assignments")
            return len(rows)

        saga = Saga("create student")
        saga.step("student", insert_student, self._delete_row)
        saga.step("relationships", insert_relationships)
        if email and password and self._can_manage_accounts():
            saga.step("account", lambda: self._create_account(name, email, password))

        try:
            student_id = saga.run()["student"]
        except (Conflict, ValidationFailed) as e:
            return StudentEnvelopeOut(success=False, message=e.message)

        return StudentEnvelopeOut(success=True, message="Student byl úspěšně vytvořen", student=self.get(student_id))

    def update(
        self,
        student_id: UUID,
        name: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        assignments: Optional[List[StudentAssignmentIn]] = None,
    ) -> StudentEnvelopeOut:
        student = self.db.get(Student, student_id)
        if student is None:
            return StudentEnvelopeOut(success=False, message="Student nenalezen")
        if self._taken(Student.name, name, exclude_id=student_id):
            return StudentEnvelopeOut(success=False, message=f'Student se jménem "{name}" již existuje')
        if email and self._taken(Student.email, email, exclude_id=student_id):
            return StudentEnvelopeOut(success=False, message=f'Student s emailem "{email}" již existuje')

        old_name, old_email = student.name, student.email

        def write_student() -> tuple:
            student.name = name
            if email is not None:
                student.email = email or None
            self._commit("update student")
            return old_name, old_email

        def restore_student(previous: tuple) -> None:
            student.name, student.email = previous
            self.db.commit()

        def sync_account() -> None:
            auth_user = self.identity.find_user_by_email(old_email) if old_email else None
            if auth_user is not None:
                new_email = email if email is not None and email != old_email else None
                if new_email is None and password is None:
                    return
                try:
                    self.identity.admin_update_user(auth_user.id, email=new_email, password=password)
                except IdentityError as e:
                    raise ValidationFailed(f"Nepodařilo se aktualizovat autentizační účet: {e.message}") from e
                if new_email:
                    self.db.query(Profile).filter(Profile.id == auth_user.id).update({Profile.email: new_email})
                    self._commit("update profile email")
            elif email and password:
                try:
                    created = self.identity.admin_create_user(email, password, {"role": Role.STUDENT.value})
                except IdentityError as e:
                    raise ValidationFailed(f"Nepodařilo se vytvořit autentizační účet: {e.message}") from e
                self._upsert_profile(created.id, email, name)

        saga = Saga("update student")
        saga.step("student", write_student, restore_student)
        if (email is not None or password is not None) and self._can_manage_accounts():
            saga.step("account", sync_account)
        try:
            saga.run()
        except (Conflict, ValidationFailed) as e:
            return StudentEnvelopeOut(success=False, message=e.message)
        except IdentityError as e:
            # lookup failures; the student row was already restored
            return StudentEnvelopeOut(success=False, message=f"Chyba při aktualizaci účtu: {e.message}")

        if assignments is not None:
            triples.deactivate(self.db, student_id=student_id)
            self._commit("deactivate assignments")
            for a in assignments:
                triples.activate(self.db, student_id, a.teacher_id, a.subject_id)
            self._commit("update assignments")

        return StudentEnvelopeOut(success=True, message="Student byl úspěšně aktualizován", student=self.get(student_id))

    # -------- delete --------
    def _delete_row(self, student_id: UUID) -> None:
        self.db.query(Student).filter(Student.id == student_id).delete(synchronize_session=False)
        self.db.commit()
        self.db.expire_all()

    def _remove_account(self, email: str) -> None:
        """Best effort: the student is deleted even when the account cannot be."""
        try:
            user = self.identity.find_user_by_email(email)
            if user is None:
                return
            self.db.query(Profile).filter(Profile.id == user.id).delete(synchronize_session=False)
            self.db.commit()
            self.identity.admin_delete_user(user.id)
        except (IdentityError, SQLAlchemyError) as e:
            self.db.rollback()
            log.error("Failed to delete auth account for student %s: %s", email, e)

    def delete(self, student_id: UUID) -> StudentEnvelopeOut:
        student = self.db.get(Student, student_id)
        if student is None:
            return StudentEnvelopeOut(success=False, message="Student nenalezen")
        snapshot = StudentOut(
            id=student.id,
            name=student.name,
            email=student.email,
            created_at=student.created_at,
            updated_at=student.updated_at,
        )
        if student.email and self._can_manage_accounts():
            self._remove_account(student.email)
        try:
            self._delete_row(student_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, "delete student")
        return StudentEnvelopeOut(success=True, message="Student byl úspěšně smazán", student=snapshot)

    def delete_many(self, ids: List[UUID]) -> StudentEnvelopeOut:
        if ids:
            self.db.query(Student).filter(Student.id.in_(ids)).delete(synchronize_session=False)
            self._commit("delete students")
            self.db.expire_all()
        return StudentEnvelopeOut(success=True, message=f"{len(ids)} studentů bylo úspěšně smazáno")

    # -------- picker data --------
    def assignment_data(self) -> AssignmentDataOut:
        subjects = self.db.query(Subject).order_by(Subject.name).all()
        subject_out = {s.id: SubjectOut.model_validate(s) for s in subjects}
        students = (
            self.db.query(Student).options(selectinload(Student.relationships)).order_by(Student.name).all()
        )
        out = []
        for st in students:
            own = {r.subject_id for r in st.relationships}
            out.append(
                StudentWithSubjectsOut(
                    id=st.id, name=st.name, subjects=[subject_out[s.id] for s in subjects if s.id in own]
                )
            )
        return AssignmentDataOut(subjects=list(subject_out.values()), students=out)

    def student_assignment_data(self) -> StudentAssignmentDataOut:
        subjects = (
            self.db.query(Subject)
            .options(selectinload(Subject.relationships).selectinload(StudentTeacherSubject.teacher))
            .order_by(Subject.name)
            .all()
        )
        out = []
        for s in subjects:
            teachers: Dict[UUID, RefOut] = {}
            for rel in s.relationships:
                if rel.teacher is not None and rel.teacher.id not in teachers:
                    teachers[rel.teacher.id] = RefOut.model_validate(rel.teacher)
            out.append(SubjectWithTeachersOut(id=s.id, name=s.name, teachers=list(teachers.values())))
        return StudentAssignmentDataOut(subjects=out)
