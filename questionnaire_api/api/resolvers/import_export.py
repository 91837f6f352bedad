# questionnaire_api/api/resolvers/import_export.py
import strawberry

from questionnaire_api.api.context import Info
from questionnaire_api.api.resolvers import graphql_boundary
from questionnaire_api.api.types import ImportResult
from questionnaire_api.core.security import require_admin
from questionnaire_api.models.enums import ImportMode
from questionnaire_api.services.imports import ImportService


@strawberry.type
class ImportExportQuery:
    @strawberry.field
    @graphql_boundary("Failed to export data")
    def export_data(self, info: Info) -> str:
        require_admin(info.context.user)
        return ImportService(info.context.db, info.context.identity).export()


@strawberry.type
class ImportExportMutation:
    @strawberry.mutation
    @graphql_boundary("Import failed")
    def import_data(self, info: Info, data: str, mode: ImportMode) -> ImportResult:
        user = require_admin(info.context.user)
        return ImportService(info.context.db, info.context.identity).import_data(data, mode, user.id)

    @strawberry.mutation
    @graphql_boundary("Delete all data failed")
    def delete_all_data(self, info: Info) -> ImportResult:
        user = require_admin(info.context.user)
        return ImportService(info.context.db, info.context.identity).delete_all_data(user.id)
