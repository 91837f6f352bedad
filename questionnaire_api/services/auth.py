# questionnaire_api/services/auth.py
"""
Sign-in flows on top of the identity provider, plus the caller's own profile.

Admins must already have a profile with role ADMIN. Students are matched by
the email on their Student row; the first successful login creates the auth
account with the password given.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from questionnaire_api.core.errors import (
    Forbidden,
    Internal,
    NotFound,
    Unauthenticated,
    ValidationFailed,
    handle_database_error,
)
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.saga import Saga
from questionnaire_api.core.security import CurrentUser
from questionnaire_api.models.enums import Role
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.school import Student
from questionnaire_api.schemas.auth import AuthPayloadOut, UpdateProfileIn, UpdateProfileOut, UserOut
from questionnaire_api.services.identity import AuthSession, IdentityError, IdentityProvider
from questionnaire_api.services.students import split_name

log = get_logger("auth")

INVALID_STUDENT_LOGIN = "Nesprávný email nebo heslo"


class AuthService:
    def __init__(self, db: Session, identity: IdentityProvider):
        self.db = db
        self.identity = identity

    def _payload(self, session: AuthSession, profile: Profile) -> AuthPayloadOut:
        return AuthPayloadOut(
            user=UserOut.model_validate(profile),
            token=session.access_token,
            refresh_token=session.refresh_token,
        )

    def _admin_profile(self, user_id: UUID) -> Profile:
        profile = self.db.get(Profile, user_id)
        if profile is None:
            raise NotFound("User profile not found")
        if profile.role != Role.ADMIN.value:
            raise Forbidden("Unauthorized: Admin access required")
        return profile

    # -------- admins --------
    def admin_login(self, email: str, password: str) -> AuthPayloadOut:
        try:
            session = self.identity.sign_in_with_password(email, password)
        except IdentityError as e:
            log.info("Admin login failed for %s: %s", email, e.message)
            raise Unauthenticated("Invalid email or password") from e
        return self._payload(session, self._admin_profile(session.user.id))

    def refresh(self, refresh_token: str) -> AuthPayloadOut:
        try:
            session = self.identity.refresh_session(refresh_token)
        except IdentityError as e:
            raise Unauthenticated("Invalid or expired refresh token") from e
        return self._payload(session, self._admin_profile(session.user.id))

    def logout(self, access_token: Optional[str]) -> bool:
        if access_token:
            try:
                self.identity.sign_out(access_token)
            except IdentityError as e:
                log.warning("Sign-out failed: %s", e.message)
        return True

    # -------- students --------
    def _create_student_account(self, student: Student, email: str, password: str) -> None:
        def create_auth_user() -> UUID:
            return self.identity.admin_create_user(email, password, {"role": Role.STUDENT.value}).id

        def insert_profile() -> None:
            first, last = split_name(student.name)
            self.db.add(
                Profile(
                    id=saga.results["auth_user"],
                    email=email,
                    first_name=first,
                    last_name=last,
                    role=Role.STUDENT.value,
                )
            )
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                handle_database_error(e, "create student profile")

        saga = Saga("student first login")
        saga.step("auth_user", create_auth_user, self.identity.admin_delete_user)
        saga.step("profile", insert_profile)
        saga.run()

    def student_login(self, email: str, password: str) -> AuthPayloadOut:
        student = self.db.query(Student).filter(Student.email == email).first()
        if student is None:
            raise Unauthenticated(INVALID_STUDENT_LOGIN)

        try:
            try:
                session = self.identity.sign_in_with_password(email, password)
            except IdentityError as e:
                if not e.is_invalid_login:
                    raise
                self._create_student_account(student, email, password)
                session = self.identity.sign_in_with_password(email, password)
            profile = self.db.get(Profile, session.user.id)
        except (IdentityError, ValidationFailed, Internal) as e:
            log.info("Student login failed for %s: %s", email, e)
            raise Unauthenticated(INVALID_STUDENT_LOGIN) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("Student login failed for %s: %s", email, e)
            raise Unauthenticated(INVALID_STUDENT_LOGIN) from e

        if profile is None or profile.role != Role.STUDENT.value:
            raise Unauthenticated(INVALID_STUDENT_LOGIN)
        return self._payload(session, profile)

    # -------- current user --------
    def current_user(self, user: Optional[CurrentUser]) -> Optional[UserOut]:
        if user is None:
            return None
        profile = self.db.get(Profile, user.id)
        return UserOut.model_validate(profile) if profile else None

    def update_profile(self, user: CurrentUser, data: UpdateProfileIn) -> UpdateProfileOut:
        profile = self.db.get(Profile, user.id)
        if profile is None:
            return UpdateProfileOut(success=False, message="User profile not found")
        previous = (profile.first_name, profile.last_name, profile.email)
        email_changed = data.email != profile.email

        def write_profile() -> tuple:
            profile.first_name = data.first_name
            profile.last_name = data.last_name
            profile.email = data.email
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                handle_database_error(e, "update profile")
            return previous

        def restore_profile(old: tuple) -> None:
            profile.first_name, profile.last_name, profile.email = old
            self.db.commit()

        def update_auth_email() -> None:
            self.identity.admin_update_user(user.id, email=data.email)

        saga = Saga("update profile")
        saga.step("profile", write_profile, restore_profile)
        if email_changed:
            saga.step("auth_email", update_auth_email)
        try:
            saga.run()
        except IdentityError as e:
            return UpdateProfileOut(success=False, message=f"Failed to update email: {e.message}")

        return UpdateProfileOut(
            success=True, message="Profile updated successfully", user=UserOut.model_validate(profile)
        )
