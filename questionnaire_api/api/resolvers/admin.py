# questionnaire_api/api/resolvers/admin.py
from uuid import UUID

import strawberry

from questionnaire_api.api.context import Info
from questionnaire_api.api.resolvers import graphql_boundary
from questionnaire_api.api.types import AdminList, AdminResponse
from questionnaire_api.core.security import require_admin
from questionnaire_api.schemas.auth import CreateAdminIn
from questionnaire_api.services.admins import AdminService


@strawberry.type
class AdminQuery:
    @strawberry.field
    @graphql_boundary("Failed to list admins")
    def list_admins(self, info: Info) -> AdminList:
        require_admin(info.context.user)
        return AdminService(info.context.db, info.context.identity).list_admins()


@strawberry.type
class AdminMutation:
    @strawberry.mutation
    @graphql_boundary("Failed to create admin")
    def create_admin(self, info: Info, email: str, password: str, first_name: str, last_name: str) -> AdminResponse:
        require_admin(info.context.user)
        data = CreateAdminIn(email=email, password=password, first_name=first_name, last_name=last_name)
        return AdminService(info.context.db, info.context.identity).create_admin(data)

    @strawberry.mutation
    @graphql_boundary("Failed to delete admin")
    def delete_admin(self, info: Info, id: UUID) -> AdminResponse:
        user = require_admin(info.context.user)
        return AdminService(info.context.db, info.context.identity).delete_admin(user, id)
