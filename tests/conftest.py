# tests/conftest.py
"""
In-memory SQLite database, a fake identity provider and small factories.

DATABASE_URL must point at SQLite before questionnaire_api is imported,
since the engine is built at import time.
"""
from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from questionnaire_api.api.context import GraphQLContext
from questionnaire_api.core.security import CurrentUser, create_access_token
from questionnaire_api.db.base import Base
from questionnaire_api.db.session import enable_sqlite_foreign_keys
from questionnaire_api.models.enums import AssignmentType, QuestionType, Role
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.questionnaire import (
    Question,
    Questionnaire,
    QuestionnaireAssignment,
    QuestionnaireGroup,
    QuestionOption,
)
from questionnaire_api.models.school import Student, StudentTeacherSubject, Subject, Teacher
from questionnaire_api.services.identity import AuthSession, AuthUser, IdentityError

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
enable_sqlite_foreign_keys(engine)
TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


class FakeIdentityProvider:
    """In-memory stand-in for the GoTrue client with the same method surface."""

    def __init__(self, has_admin: bool = True):
        self.has_admin = has_admin
        self.users: Dict[str, dict] = {}  # email -> {"user": AuthUser, "password": str}
        self.refresh_tokens: Dict[str, str] = {}
        self.signed_out: List[str] = []
        self.fail_create: Optional[str] = None
        self.fail_update: Optional[str] = None
        self.fail_delete: Optional[str] = None

    def add_user(self, email: str, password: str, user_id: Optional[uuid.UUID] = None) -> AuthUser:
        user = AuthUser(id=user_id or uuid.uuid4(), email=email)
        self.users[email.lower()] = {"user": user, "password": password}
        return user

    def _session(self, user: AuthUser) -> AuthSession:
        refresh = f"refresh-{uuid.uuid4()}"
        self.refresh_tokens[refresh] = user.email
        return AuthSession(user=user, access_token=create_access_token(user.id, user.email), refresh_token=refresh)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        entry = self.users.get(email.lower())
        if entry is None or entry["password"] != password:
            raise IdentityError("Invalid login credentials", status_code=400)
        return self._session(entry["user"])

    def refresh_session(self, refresh_token: str) -> AuthSession:
        email = self.refresh_tokens.pop(refresh_token, None)
        if email is None or email.lower() not in self.users:
            raise IdentityError("Invalid Refresh Token: Refresh Token Not Found", status_code=400)
        return self._session(self.users[email.lower()]["user"])

    def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)

    def admin_create_user(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthUser:
        if self.fail_create:
            raise IdentityError(self.fail_create, status_code=500)
        if email.lower() in self.users:
            raise IdentityError("A user with this email address has already been registered", status_code=422)
        return self.add_user(email, password)

    def admin_delete_user(self, user_id: uuid.UUID) -> None:
        if self.fail_delete:
            raise IdentityError(self.fail_delete, status_code=500)
        for email, entry in list(self.users.items()):
            if entry["user"].id == user_id:
                del self.users[email]
                return
        raise IdentityError("User not found", status_code=404)

    def admin_update_user(self, user_id: uuid.UUID, *, email: Optional[str] = None, password: Optional[str] = None) -> AuthUser:
        if self.fail_update:
            raise IdentityError(self.fail_update, status_code=500)
        for key, entry in list(self.users.items()):
            if entry["user"].id == user_id:
                if password is not None:
                    entry["password"] = password
                if email is not None:
                    entry["user"].email = email
                    del self.users[key]
                    self.users[email.lower()] = entry
                return entry["user"]
        raise IdentityError("User not found", status_code=404)

    def admin_list_users(self, email: Optional[str] = None, per_page: int = 1000) -> List[AuthUser]:
        users = [e["user"] for e in self.users.values()]
        if email:
            users = [u for u in users if (u.email or "").lower() == email.lower()]
        return users

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        found = self.admin_list_users(email=email)
        return found[0] if found else None


@pytest.fixture
def identity():
    return FakeIdentityProvider()


class Factory:
    def __init__(self, db):
        self.db = db
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def subject(self, name: str = "Math") -> Subject:
        return self._save(Subject(name=name))

    def teacher(self, name: str = "Ms. Lee") -> Teacher:
        return self._save(Teacher(name=name))

    def student(self, name: str = "Alice", email: Optional[str] = "alice@school.cz") -> Student:
        return self._save(Student(name=name, email=email))

    def triple(self, student=None, teacher=None, subject=None, is_active: bool = True) -> StudentTeacherSubject:
        return self._save(
            StudentTeacherSubject(
                student_id=student.id if student else None,
                teacher_id=teacher.id if teacher else None,
                subject_id=subject.id,
                is_active=is_active,
                created_at=self._tick(),
            )
        )

    def profile(self, email: str, role: Role = Role.STUDENT, user_id: Optional[uuid.UUID] = None, **names) -> Profile:
        return self._save(Profile(id=user_id or uuid.uuid4(), email=email, role=role.value, **names))

    def group(self, name: str = "Spring term") -> QuestionnaireGroup:
        return self._save(QuestionnaireGroup(name=name, created_at=self._tick()))

    def questionnaire(
        self,
        group=None,
        title: str = "Course feedback",
        assignment_type: AssignmentType = AssignmentType.ALL_STUDENTS,
        is_active: bool = True,
        is_anonymous: bool = False,
    ) -> Questionnaire:
        group = group or self.group()
        return self._save(
            Questionnaire(
                group_id=group.id,
                title=title,
                is_active=is_active,
                is_anonymous=is_anonymous,
                assignment_type=assignment_type.value,
                created_at=self._tick(),
            )
        )

    def question(
        self,
        questionnaire,
        qtype: QuestionType,
        text: str = "Question",
        required: bool = False,
        order_index: int = 0,
        options: Optional[List[str]] = None,
    ) -> Question:
        q = self._save(
            Question(
                questionnaire_id=questionnaire.id,
                text=text,
                type=qtype.value,
                required=required,
                order_index=order_index,
            )
        )
        for i, o in enumerate(options or []):
            self.db.add(QuestionOption(question_id=q.id, text=o, order_index=i))
        self.db.commit()
        return q

    def assign(self, questionnaire, triple) -> QuestionnaireAssignment:
        return self._save(
            QuestionnaireAssignment(questionnaire_id=questionnaire.id, student_teacher_subject_id=triple.id)
        )


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def student_user(make):
    """Alice as a logged-in student: Student row plus a STUDENT profile with the same email."""
    student = make.student("Alice", "alice@school.cz")
    profile = make.profile("alice@school.cz", Role.STUDENT)
    return profile, student


@pytest.fixture
def admin_user(make):
    profile = make.profile("admin@school.cz", Role.ADMIN, first_name="Ada", last_name="Admin")
    return CurrentUser(id=profile.id, email=profile.email, role=Role.ADMIN)


@pytest.fixture
def gql_context(db, identity):
    def build(user: Optional[CurrentUser] = None, token: Optional[str] = None) -> GraphQLContext:
        return GraphQLContext(db=db, user=user, token=token, identity=identity)

    return build
