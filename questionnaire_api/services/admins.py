# questionnaire_api/services/admins.py
from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from questionnaire_api.core.errors import NotFound, ValidationFailed, handle_database_error
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.saga import Saga
from questionnaire_api.core.security import CurrentUser, prevent_self_deletion
from questionnaire_api.models.enums import Role
from questionnaire_api.models.profile import Profile
from questionnaire_api.schemas.auth import AdminEnvelopeOut, AdminListOut, CreateAdminIn, UserOut
from questionnaire_api.services.identity import IdentityError, IdentityProvider

log = get_logger("admins")


class AdminService:
    def __init__(self, db: Session, identity: IdentityProvider):
        self.db = db
        self.identity = identity

    def list_admins(self) -> AdminListOut:
        rows = (
            self.db.query(Profile)
            .filter(Profile.role == Role.ADMIN.value)
            .order_by(Profile.created_at.desc())
            .all()
        )
        return AdminListOut(admins=[UserOut.model_validate(p) for p in rows], total=len(rows))

    def create_admin(self, data: CreateAdminIn) -> AdminEnvelopeOut:
        def create_auth_user() -> UUID:
            try:
                user = self.identity.admin_create_user(
                    data.email, data.password, {"first_name": data.first_name, "last_name": data.last_name}
                )
            except IdentityError as e:
                raise ValidationFailed(f"Failed to create user: {e.message}") from e
            return user.id

        def delete_auth_user(user_id: UUID) -> None:
            self.identity.admin_delete_user(user_id)

        def upsert_profile() -> Profile:
            profile = Profile(
                id=saga.results["auth_user"],
                email=data.email,
                first_name=data.first_name,
                last_name=data.last_name,
                role=Role.ADMIN.value,
            )
            try:
                profile = self.db.merge(profile)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                handle_database_error(e, "create admin profile")
            return profile

        saga = Saga("create admin")
        saga.step("auth_user", create_auth_user, delete_auth_user)
        saga.step("profile", upsert_profile)
        profile = saga.run()["profile"]
        log.info("Admin %s created", data.email)
        return AdminEnvelopeOut(success=True, message="Admin created successfully", admin=UserOut.model_validate(profile))

    def delete_admin(self, actor: CurrentUser, admin_id: UUID) -> AdminEnvelopeOut:
        prevent_self_deletion(actor, admin_id)
        profile = (
            self.db.query(Profile).filter(Profile.id == admin_id, Profile.role == Role.ADMIN.value).first()
        )
        if profile is None:
            raise NotFound("Admin not found")
        snapshot = UserOut.model_validate(profile)

        message = "Admin deleted successfully"
        try:
            self.identity.admin_delete_user(admin_id)
        except IdentityError as e:
            log.warning("Auth deletion failed for admin %s, deleting profile only: %s", admin_id, e.message)
            message = "Admin profile deleted, but auth credentials may still exist. Contact support if issues persist."

        try:
            self.db.query(Profile).filter(Profile.id == admin_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, "delete admin profile")
        self.db.expire_all()
        return AdminEnvelopeOut(success=True, message=message, admin=snapshot)
