# questionnaire_api/api/resolvers/questionnaires.py
from typing import List, Optional
from uuid import UUID

import strawberry

from questionnaire_api.api.context import Info
from questionnaire_api.api.resolvers import as_envelope, graphql_boundary
from questionnaire_api.api.types import (
    CreateQuestionnaireInput,
    Questionnaire,
    QuestionnaireAssignmentData,
    QuestionnaireGroup,
    QuestionnaireGroupList,
    QuestionnaireGroupResponse,
    QuestionnaireList,
    QuestionnaireMutationResponse,
    QuestionnaireResults,
    StudentQuestionnaire,
    SubmitResponseInput,
    SubmitResponseResult,
    UpdateQuestionnaireInput,
    input_to_dict,
)
from questionnaire_api.core.errors import Forbidden
from questionnaire_api.core.security import require_admin, require_auth, require_student
from questionnaire_api.models.enums import Role
from questionnaire_api.schemas.questionnaire import (
    GroupEnvelopeOut,
    GroupIn,
    QuestionnaireCreateIn,
    QuestionnaireEnvelopeOut,
    QuestionnaireUpdateIn,
)
from questionnaire_api.services.questionnaires import QuestionnaireService
from questionnaire_api.services.responses import ResponseService
from questionnaire_api.services.results import ResultsService


def _service(info: Info) -> QuestionnaireService:
    return QuestionnaireService(info.context.db)


@strawberry.type
class QuestionnaireQuery:
    @strawberry.field
    @graphql_boundary("Failed to list questionnaire groups")
    def list_questionnaire_groups(
        self, info: Info, index: int = 0, name_filter: Optional[str] = None
    ) -> QuestionnaireGroupList:
        require_admin(info.context.user)
        return _service(info).list_groups(index, name_filter)

    @strawberry.field
    @graphql_boundary("Failed to load questionnaire group")
    def get_questionnaire_group(self, info: Info, id: UUID) -> Optional[QuestionnaireGroup]:
        require_admin(info.context.user)
        return _service(info).get_group(id)

    @strawberry.field
    @graphql_boundary("Failed to list questionnaires")
    def list_questionnaires(
        self,
        info: Info,
        group_id: UUID,
        index: int = 0,
        title_filter: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> QuestionnaireList:
        require_admin(info.context.user)
        return _service(info).list_questionnaires(group_id, index, title_filter, is_active)

    @strawberry.field
    @graphql_boundary("Failed to load questionnaire")
    def get_questionnaire(self, info: Info, id: UUID) -> Optional[Questionnaire]:
        user = require_auth(info.context.user)
        svc = _service(info)
        if user.role is Role.STUDENT and not svc.student_can_open(user.id, id):
            raise Forbidden("You do not have access to this questionnaire")
        return svc.get(id)

    @strawberry.field
    @graphql_boundary("Failed to load assignment data")
    def get_questionnaire_assignment_data(
        self, info: Info, subject_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None
    ) -> QuestionnaireAssignmentData:
        require_admin(info.context.user)
        return _service(info).assignment_data(subject_id, teacher_id)

    @strawberry.field
    @graphql_boundary("Failed to load student questionnaires")
    def get_student_questionnaires(self, info: Info) -> List[StudentQuestionnaire]:
        user = require_student(info.context.user)
        return _service(info).student_questionnaires(user.id)

    @strawberry.field
    @graphql_boundary("Failed to load questionnaire results")
    def get_questionnaire_results(self, info: Info, questionnaire_id: UUID) -> QuestionnaireResults:
        require_admin(info.context.user)
        return ResultsService(info.context.db).get_results(questionnaire_id)


@strawberry.type
class QuestionnaireMutation:
    # -------- groups --------
    @strawberry.mutation
    @graphql_boundary("Failed to create questionnaire group")
    def create_questionnaire_group(
        self, info: Info, name: str, description: Optional[str] = None
    ) -> QuestionnaireGroupResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def create() -> GroupEnvelopeOut:
            group = svc.create_group(name, description)
            return GroupEnvelopeOut(success=True, message="Skupina dotazníků byla úspěšně vytvořena", group=group)

        return as_envelope(GroupEnvelopeOut, create, "Nepodařilo se vytvořit skupinu dotazníků")

    @strawberry.mutation
    @graphql_boundary("Failed to update questionnaire group")
    def update_questionnaire_group(
        self,
        info: Info,
        id: UUID,
        name: Optional[str] = strawberry.UNSET,
        description: Optional[str] = strawberry.UNSET,
    ) -> QuestionnaireGroupResponse:
        require_admin(info.context.user)
        svc = _service(info)
        patch = {k: v for k, v in (("name", name), ("description", description)) if v is not strawberry.UNSET}

        def update() -> GroupEnvelopeOut:
            group = svc.update_group(id, GroupIn(**patch))
            return GroupEnvelopeOut(success=True, message="Skupina dotazníků byla úspěšně aktualizována", group=group)

        return as_envelope(GroupEnvelopeOut, update, "Nepodařilo se aktualizovat skupinu dotazníků")

    @strawberry.mutation
    @graphql_boundary("Failed to delete questionnaire group")
    def delete_questionnaire_group(self, info: Info, id: UUID) -> QuestionnaireGroupResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def delete() -> GroupEnvelopeOut:
            svc.delete_group(id)
            return GroupEnvelopeOut(success=True, message="Skupina dotazníků byla úspěšně smazána")

        return as_envelope(GroupEnvelopeOut, delete, "Nepodařilo se smazat skupinu dotazníků")

    # -------- questionnaires --------
    @strawberry.mutation
    @graphql_boundary("Failed to create questionnaire")
    def create_questionnaire(self, info: Info, input: CreateQuestionnaireInput) -> QuestionnaireMutationResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def create() -> QuestionnaireEnvelopeOut:
            out = svc.create(QuestionnaireCreateIn.model_validate(input_to_dict(input)))
            return QuestionnaireEnvelopeOut(success=True, message="Dotazník byl úspěšně vytvořen", questionnaire=out)

        return as_envelope(QuestionnaireEnvelopeOut, create, "Nepodařilo se vytvořit dotazník")

    @strawberry.mutation
    @graphql_boundary("Failed to update questionnaire")
    def update_questionnaire(
        self, info: Info, id: UUID, input: UpdateQuestionnaireInput
    ) -> QuestionnaireMutationResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def update() -> QuestionnaireEnvelopeOut:
            out = svc.update(id, QuestionnaireUpdateIn.model_validate(input_to_dict(input)))
            return QuestionnaireEnvelopeOut(success=True, message="Dotazník byl úspěšně aktualizován", questionnaire=out)

        return as_envelope(QuestionnaireEnvelopeOut, update, "Nepodařilo se aktualizovat dotazník")

    @strawberry.mutation
    @graphql_boundary("Failed to delete questionnaire")
    def delete_questionnaire(self, info: Info, id: UUID) -> QuestionnaireMutationResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def delete() -> QuestionnaireEnvelopeOut:
            svc.delete(id)
            return QuestionnaireEnvelopeOut(success=True, message="Dotazník byl úspěšně smazán")

        return as_envelope(QuestionnaireEnvelopeOut, delete, "Nepodařilo se smazat dotazník")

    @strawberry.mutation
    @graphql_boundary("Failed to delete questionnaires")
    def delete_questionnaires(self, info: Info, ids: List[UUID]) -> QuestionnaireMutationResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def delete() -> QuestionnaireEnvelopeOut:
            svc.delete_many(ids)
            return QuestionnaireEnvelopeOut(success=True, message=f"{len(ids)} dotazníků bylo úspěšně smazáno")

        return as_envelope(QuestionnaireEnvelopeOut, delete, "Nepodařilo se smazat dotazníky")

    @strawberry.mutation
    @graphql_boundary("Failed to duplicate questionnaire")
    def duplicate_questionnaire(self, info: Info, id: UUID) -> QuestionnaireMutationResponse:
        require_admin(info.context.user)
        svc = _service(info)

        def duplicate() -> QuestionnaireEnvelopeOut:
            out = svc.duplicate(id)
            return QuestionnaireEnvelopeOut(success=True, message="Dotazník byl úspěšně zduplikován", questionnaire=out)

        return as_envelope(QuestionnaireEnvelopeOut, duplicate, "Nepodařilo se zduplikovat dotazník")

    # -------- responses --------
    @strawberry.mutation
    @graphql_boundary("Nepodařilo se odeslat odpovědi")
    def submit_questionnaire_response(self, info: Info, input: SubmitResponseInput) -> SubmitResponseResult:
        user = require_student(info.context.user, "Only students can submit questionnaire responses")
        return ResponseService(info.context.db).submit(user.id, input_to_dict(input))
