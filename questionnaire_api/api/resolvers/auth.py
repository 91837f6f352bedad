# questionnaire_api/api/resolvers/auth.py
from typing import Optional

import strawberry

from questionnaire_api.api.context import Info
from questionnaire_api.api.resolvers import graphql_boundary
from questionnaire_api.api.types import AuthPayload, UpdateProfileResponse, User
from questionnaire_api.core.security import require_admin, require_auth
from questionnaire_api.schemas.auth import UpdateProfileIn
from questionnaire_api.services.auth import AuthService


def _service(info: Info) -> AuthService:
    return AuthService(info.context.db, info.context.identity)


@strawberry.type
class AuthQuery:
    @strawberry.field
    @graphql_boundary("Failed to load current user")
    def me(self, info: Info) -> Optional[User]:
        return _service(info).current_user(info.context.user)


@strawberry.type
class AuthMutation:
    @strawberry.mutation
    @graphql_boundary("Login failed")
    def admin_login(self, info: Info, email: str, password: str) -> AuthPayload:
        return _service(info).admin_login(email, password)

    @strawberry.mutation
    @graphql_boundary("Student login failed")
    def student_login(self, info: Info, email: str, password: str) -> AuthPayload:
        return _service(info).student_login(email, password)

    @strawberry.mutation
    @graphql_boundary("Token refresh failed")
    def refresh_token(self, info: Info, refresh_token: str) -> AuthPayload:
        return _service(info).refresh(refresh_token)

    @strawberry.mutation
    @graphql_boundary("Logout failed")
    def logout(self, info: Info) -> bool:
        require_auth(info.context.user)
        return _service(info).logout(info.context.token)

    @strawberry.mutation
    @graphql_boundary("Failed to update profile")
    def update_admin_profile(self, info: Info, first_name: str, last_name: str, email: str) -> UpdateProfileResponse:
        user = require_admin(info.context.user)
        data = UpdateProfileIn(first_name=first_name, last_name=last_name, email=email)
        return _service(info).update_profile(user, data)
