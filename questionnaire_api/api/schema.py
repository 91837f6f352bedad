# questionnaire_api/api/schema.py
import strawberry
from strawberry.fastapi import GraphQLRouter

from questionnaire_api.api.context import get_context
from questionnaire_api.api.resolvers.admin import AdminMutation, AdminQuery
from questionnaire_api.api.resolvers.auth import AuthMutation, AuthQuery
from questionnaire_api.api.resolvers.entities import EntityMutation, EntityQuery
from questionnaire_api.api.resolvers.import_export import ImportExportMutation, ImportExportQuery
from questionnaire_api.api.resolvers.questionnaires import QuestionnaireMutation, QuestionnaireQuery


@strawberry.type
class Query(AuthQuery, AdminQuery, EntityQuery, QuestionnaireQuery, ImportExportQuery):
    pass


@strawberry.type
class Mutation(AuthMutation, AdminMutation, EntityMutation, QuestionnaireMutation, ImportExportMutation):
    pass


schema = strawberry.Schema(query=Query, mutation=Mutation)


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, context_getter=get_context)
