# questionnaire_api/api/resolvers/entities.py
"""Subjects, teachers and students. Mutations answer with {success, message, <entity>} envelopes."""
from typing import List, Optional
from uuid import UUID

import strawberry

from questionnaire_api.api.context import Info
from questionnaire_api.api.resolvers import as_envelope, graphql_boundary
from questionnaire_api.api.types import (
    AssignmentData,
    StudentAssignmentData,
    StudentAssignmentInput,
    StudentList,
    StudentResponse,
    SubjectList,
    SubjectResponse,
    TeacherAssignmentInput,
    TeacherList,
    TeacherResponse,
    input_to_dict,
)
from questionnaire_api.core.security import require_admin
from questionnaire_api.schemas.school import (
    StudentAssignmentIn,
    StudentEnvelopeOut,
    SubjectEnvelopeOut,
    TeacherAssignmentIn,
    TeacherEnvelopeOut,
)
from questionnaire_api.services.students import StudentService
from questionnaire_api.services.subjects import SubjectService
from questionnaire_api.services.teachers import TeacherService


def _teacher_assignments(items: Optional[List[TeacherAssignmentInput]]) -> Optional[List[TeacherAssignmentIn]]:
    if items is None:
        return None
    return [TeacherAssignmentIn.model_validate(input_to_dict(a)) for a in items]


def _student_assignments(items: Optional[List[StudentAssignmentInput]]) -> Optional[List[StudentAssignmentIn]]:
    if items is None:
        return None
    return [StudentAssignmentIn.model_validate(input_to_dict(a)) for a in items]


def _students(info: Info) -> StudentService:
    return StudentService(info.context.db, info.context.identity)


@strawberry.type
class EntityQuery:
    @strawberry.field
    @graphql_boundary("Failed to list subjects")
    def list_subjects(self, info: Info, index: int = 0, name_filter: Optional[str] = None) -> SubjectList:
        require_admin(info.context.user)
        return SubjectService(info.context.db).list(index, name_filter)

    @strawberry.field
    @graphql_boundary("Failed to list teachers")
    def list_teachers(
        self, info: Info, index: int = 0, name_filter: Optional[str] = None, subject_filter: Optional[str] = None
    ) -> TeacherList:
        require_admin(info.context.user)
        return TeacherService(info.context.db).list(index, name_filter, subject_filter)

    @strawberry.field
    @graphql_boundary("Failed to list students")
    def list_students(
        self,
        info: Info,
        index: int = 0,
        name_filter: Optional[str] = None,
        teacher_filter: Optional[str] = None,
        subject_filter: Optional[str] = None,
    ) -> StudentList:
        require_admin(info.context.user)
        return _students(info).list(index, name_filter, teacher_filter, subject_filter)

    @strawberry.field
    @graphql_boundary("Failed to load assignment data")
    def get_assignment_data(self, info: Info) -> AssignmentData:
        require_admin(info.context.user)
        return _students(info).assignment_data()

    @strawberry.field
    @graphql_boundary("Failed to load student assignment data")
    def get_student_assignment_data(self, info: Info) -> StudentAssignmentData:
        require_admin(info.context.user)
        return _students(info).student_assignment_data()


@strawberry.type
class EntityMutation:
    # -------- subjects --------
    @strawberry.mutation
    @graphql_boundary("Failed to create subject")
    def create_subject(self, info: Info, name: str) -> SubjectResponse:
        require_admin(info.context.user)
        svc = SubjectService(info.context.db)
        return as_envelope(SubjectEnvelopeOut, lambda: svc.create(name), "Nepodařilo se vytvořit předmět")

    @strawberry.mutation
    @graphql_boundary("Failed to update subject")
    def update_subject(self, info: Info, id: UUID, name: str) -> SubjectResponse:
        require_admin(info.context.user)
        svc = SubjectService(info.context.db)
        return as_envelope(SubjectEnvelopeOut, lambda: svc.update(id, name), "Nepodařilo se aktualizovat předmět")

    @strawberry.mutation
    @graphql_boundary("Failed to delete subject")
    def delete_subject(self, info: Info, id: UUID) -> SubjectResponse:
        require_admin(info.context.user)
        svc = SubjectService(info.context.db)
        return as_envelope(SubjectEnvelopeOut, lambda: svc.delete(id), "Nepodařilo se smazat předmět")

    @strawberry.mutation
    @graphql_boundary("Failed to delete subjects")
    def delete_subjects(self, info: Info, ids: List[UUID]) -> SubjectResponse:
        require_admin(info.context.user)
        svc = SubjectService(info.context.db)
        return as_envelope(SubjectEnvelopeOut, lambda: svc.delete_many(ids), "Nepodařilo se smazat předměty")

    # -------- teachers --------
    @strawberry.mutation
    @graphql_boundary("Failed to create teacher")
    def create_teacher(
        self, info: Info, name: str, assignments: Optional[List[TeacherAssignmentInput]] = None
    ) -> TeacherResponse:
        require_admin(info.context.user)
        svc = TeacherService(info.context.db)
        return as_envelope(
            TeacherEnvelopeOut,
            lambda: svc.create(name, _teacher_assignments(assignments)),
            "Nepodařilo se vytvořit učitele",
        )

    @strawberry.mutation
    @graphql_boundary("Failed to update teacher")
    def update_teacher(
        self, info: Info, id: UUID, name: str, assignments: Optional[List[TeacherAssignmentInput]] = None
    ) -> TeacherResponse:
        require_admin(info.context.user)
        svc = TeacherService(info.context.db)
        return as_envelope(
            TeacherEnvelopeOut,
            lambda: svc.update(id, name, _teacher_assignments(assignments)),
            "Nepodařilo se aktualizovat učitele",
        )

    @strawberry.mutation
    @graphql_boundary("Failed to delete teacher")
    def delete_teacher(self, info: Info, id: UUID) -> TeacherResponse:
        require_admin(info.context.user)
        svc = TeacherService(info.context.db)
        return as_envelope(TeacherEnvelopeOut, lambda: svc.delete(id), "Nepodařilo se smazat učitele")

    @strawberry.mutation
    @graphql_boundary("Failed to delete teachers")
    def delete_teachers(self, info: Info, ids: List[UUID]) -> TeacherResponse:
        require_admin(info.context.user)
        svc = TeacherService(info.context.db)
        return as_envelope(TeacherEnvelopeOut, lambda: svc.delete_many(ids), "Nepodařilo se smazat učitele")

    # -------- students --------
    @strawberry.mutation
    @graphql_boundary("Failed to create student")
    def create_student(
        self,
        info: Info,
        name: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        assignments: Optional[List[StudentAssignmentInput]] = None,
    ) -> StudentResponse:
        require_admin(info.context.user)
        svc = _students(info)
        return as_envelope(
            StudentEnvelopeOut,
            lambda: svc.create(name, email, password, _student_assignments(assignments)),
            "Nepodařilo se vytvořit studenta",
        )

    @strawberry.mutation
    @graphql_boundary("Failed to update student")
    def update_student(
        self,
        info: Info,
        id: UUID,
        name: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        assignments: Optional[List[StudentAssignmentInput]] = None,
    ) -> StudentResponse:
        require_admin(info.context.user)
        svc = _students(info)
        return as_envelope(
            StudentEnvelopeOut,
            lambda: svc.update(id, name, email, password, _student_assignments(assignments)),
            "Nepodařilo se aktualizovat studenta",
        )

    @strawberry.mutation
    @graphql_boundary("Failed to delete student")
    def delete_student(self, info: Info, id: UUID) -> StudentResponse:
        require_admin(info.context.user)
        svc = _students(info)
        return as_envelope(StudentEnvelopeOut, lambda: svc.delete(id), "Nepodařilo se smazat studenta")

    @strawberry.mutation
    @graphql_boundary("Failed to delete students")
    def delete_students(self, info: Info, ids: List[UUID]) -> StudentResponse:
        require_admin(info.context.user)
        svc = _students(info)
        return as_envelope(StudentEnvelopeOut, lambda: svc.delete_many(ids), "Nepodařilo se smazat studenty")
