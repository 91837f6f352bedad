"""Schema-level tests: resolvers, envelopes and error codes as a client sees them."""
import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from questionnaire_api.api.context import GraphQLContext, bearer_token
from questionnaire_api.api.schema import schema
from questionnaire_api.core.security import CurrentUser
from questionnaire_api.models.enums import AssignmentType, QuestionType, Role


def run(query, context, **variables):
    return asyncio.run(schema.execute(query, variable_values=variables or None, context_value=context))


def error_code(result):
    assert result.errors, "expected an error"
    return result.errors[0].extensions["code"]


@pytest.fixture
def student_ctx(gql_context, student_user):
    profile, _ = student_user
    return gql_context(CurrentUser(id=profile.id, email=profile.email, role=Role.STUDENT))


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_admin_query_requires_login(gql_context):
    result = run("{ listSubjects { total } }", gql_context())
    assert error_code(result) == "UNAUTHENTICATED"


def test_admin_query_rejects_students(student_ctx):
    result = run("{ listSubjects { total } }", student_ctx)
    assert error_code(result) == "FORBIDDEN"
    assert result.errors[0].message == "Unauthorized: Admin access required"


def test_create_subject_envelope(gql_context, admin_user):
    ctx = gql_context(admin_user)
    mutation = 'mutation { createSubject(name: "Math") { success message subject { name } } }'

    created = run(mutation, ctx)
    assert created.errors is None
    assert created.data["createSubject"] == {
        "success": True,
        "message": "Předmět byl úspěšně vytvořen",
        "subject": {"name": "Math"},
    }

    again = run(mutation, ctx).data["createSubject"]
    assert again["success"] is False
    assert again["subject"] is None

    listed = run("{ listSubjects(nameFilter: \"ma\") { total hasMore subjects { name } } }", ctx)
    assert listed.data["listSubjects"] == {"total": 1, "hasMore": False, "subjects": [{"name": "Math"}]}


def test_me_is_null_for_anonymous_callers(gql_context, admin_user):
    assert run("{ me { email } }", gql_context()).data == {"me": None}
    me = run("{ me { email firstName role } }", gql_context(admin_user)).data["me"]
    assert me == {"email": "admin@school.cz", "firstName": "Ada", "role": "ADMIN"}


def test_questionnaire_lifecycle_through_graphql(gql_context, admin_user, make):
    ctx = gql_context(admin_user)
    group = make.group()
    created = run(
        """
        mutation Create($input: CreateQuestionnaireInput!) {
          createQuestionnaire(input: $input) {
            success message
            questionnaire { id title isActive assignmentType questions { text type options { text } } }
          }
        }
        """,
        ctx,
        input={
            "groupId": str(group.id),
            "title": "Feedback",
            "questions": [
                {"text": "Pace", "type": "MULTIPLE_CHOICE", "options": [{"text": "Slow"}, {"text": "Fast"}]},
                {"text": "Clarity", "type": "RATING", "required": True},
            ],
        },
    )
    assert created.errors is None
    payload = created.data["createQuestionnaire"]
    assert payload["success"] is True
    q = payload["questionnaire"]
    assert q["isActive"] is True
    assert q["assignmentType"] == "ALL_STUDENTS"
    assert [x["type"] for x in q["questions"]] == ["MULTIPLE_CHOICE", "RATING"]

    dup = run("mutation($id: UUID!) { duplicateQuestionnaire(id: $id) { questionnaire { title isActive } } }", ctx, id=q["id"])
    assert dup.data["duplicateQuestionnaire"]["questionnaire"] == {"title": "Feedback (kopie)", "isActive": False}

    updated = run(
        "mutation($id: UUID!, $input: UpdateQuestionnaireInput!) "
        "{ updateQuestionnaire(id: $id, input: $input) { questionnaire { title isActive questions { text } } } }",
        ctx,
        id=q["id"],
        input={"isActive": False},
    )
    out = updated.data["updateQuestionnaire"]["questionnaire"]
    assert out == {"title": "Feedback", "isActive": False, "questions": [{"text": "Pace"}, {"text": "Clarity"}]}


def test_missing_questionnaire_is_envelope_failure(gql_context, admin_user):
    result = run(
        'mutation { deleteQuestionnaire(id: "00000000-0000-0000-0000-000000000001") { success message } }',
        gql_context(admin_user),
    )
    assert result.data["deleteQuestionnaire"] == {"success": False, "message": "Questionnaire not found"}


SUBMIT = """
mutation Submit($input: SubmitResponseInput!) {
  submitQuestionnaireResponse(input: $input) { success message responseId }
}
"""


@pytest.fixture
def open_questionnaire(make, student_user):
    _, alice = student_user
    math = make.subject()
    make.triple(alice, None, math)
    q = make.questionnaire()
    rating = make.question(q, QuestionType.RATING, "Clarity", required=True)
    return q, math, rating


def test_student_flow(student_ctx, open_questionnaire):
    q, math, rating = open_questionnaire

    listed = run("{ getStudentQuestionnaires { id isSubmitted subject { name } teacher { name } } }", student_ctx)
    assert listed.data["getStudentQuestionnaires"] == [
        {"id": str(q.id), "isSubmitted": False, "subject": {"name": "Math"}, "teacher": None}
    ]

    answer = {"questionnaireId": str(q.id), "subjectId": str(math.id), "answers": [{"questionId": str(rating.id), "answerRating": 4}]}
    first = run(SUBMIT, student_ctx, input=answer)
    assert first.errors is None
    assert first.data["submitQuestionnaireResponse"]["success"] is True

    second = run(SUBMIT, student_ctx, input=answer)
    assert error_code(second) == "BAD_REQUEST"

    relisted = run("{ getStudentQuestionnaires { isSubmitted } }", student_ctx)
    assert relisted.data["getStudentQuestionnaires"] == [{"isSubmitted": True}]


def test_fractional_rating_is_rejected(student_ctx, open_questionnaire):
    q, math, rating = open_questionnaire
    answer = {"questionnaireId": str(q.id), "subjectId": str(math.id), "answers": [{"questionId": str(rating.id), "answerRating": 3.5}]}
    assert error_code(run(SUBMIT, student_ctx, input=answer)) == "BAD_REQUEST"


def test_admins_cannot_submit(gql_context, admin_user, open_questionnaire):
    q, math, _ = open_questionnaire
    result = run(SUBMIT, gql_context(admin_user), input={"questionnaireId": str(q.id), "subjectId": str(math.id)})
    assert error_code(result) == "FORBIDDEN"
    assert result.errors[0].message == "Only students can submit questionnaire responses"


def test_student_cannot_open_unassigned_questionnaire(student_ctx, make):
    hidden = make.questionnaire(title="hidden")
    result = run("query($id: UUID!) { getQuestionnaire(id: $id) { title } }", student_ctx, id=str(hidden.id))
    assert error_code(result) == "FORBIDDEN"


def test_results_query(gql_context, admin_user, open_questionnaire):
    q, _, _ = open_questionnaire
    result = run(
        "query($id: UUID!) { getQuestionnaireResults(questionnaireId: $id) "
        "{ totalAssigned totalResponded responseRate questionResults { averageRating ratingDistribution { rating count } } } }",
        gql_context(admin_user),
        id=str(q.id),
    )
    assert result.errors is None
    data = result.data["getQuestionnaireResults"]
    assert (data["totalAssigned"], data["totalResponded"], data["responseRate"]) == (1, 0, 0.0)
    assert data["questionResults"][0]["averageRating"] == 0.0
    assert len(data["questionResults"][0]["ratingDistribution"]) == 5


def test_export_requires_admin(gql_context, admin_user):
    assert error_code(run("{ exportData }", gql_context())) == "UNAUTHENTICATED"
    assert run("{ exportData }", gql_context(admin_user)).data["exportData"].startswith("ZAK;EMAIL;UCITEL;PREDMET")


def test_http_routes():
    from questionnaire_api.main import app

    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok", "message": "API is running"}
    assert client.get("/api/v1/health/db").json() == {"db": "ok"}
    root = client.get("/").json()
    assert root["graphql"] == "/graphql"


def test_invalid_admin_email_is_bad_request(gql_context, admin_user):
    result = run(
        'mutation { createAdmin(email: "not-an-email", password: "pw", firstName: "A", lastName: "B") { success } }',
        gql_context(admin_user),
    )
    assert error_code(result) == "BAD_REQUEST"
    assert result.errors[0].message.startswith("email:")


def test_specific_assignment_end_to_end(gql_context, admin_user, student_ctx, student_user, make):
    _, alice = student_user
    math = make.subject("Math")
    lee = make.teacher("Ms. Lee")
    triple = make.triple(alice, lee, math)
    make.triple(make.student("Bob", "bob@school.cz"), lee, math)
    q = make.questionnaire(title="Math with Ms. Lee", assignment_type=AssignmentType.SPECIFIC_STUDENTS)
    rating = make.question(q, QuestionType.RATING, "Clarity", required=True)
    make.assign(q, triple)

    listed = run("{ getStudentQuestionnaires { id subject { name } teacher { name } } }", student_ctx)
    assert listed.data["getStudentQuestionnaires"] == [
        {"id": str(q.id), "subject": {"name": "Math"}, "teacher": {"name": "Ms. Lee"}}
    ]

    answer = {
        "questionnaireId": str(q.id),
        "subjectId": str(math.id),
        "teacherId": str(lee.id),
        "answers": [{"questionId": str(rating.id), "answerRating": 4}],
    }
    submitted = run(SUBMIT, student_ctx, input=answer)
    assert submitted.errors is None
    assert submitted.data["submitQuestionnaireResponse"]["success"] is True

    result = run(
        "query($id: UUID!) { getQuestionnaireResults(questionnaireId: $id) "
        "{ totalAssigned totalResponded responseRate questionResults { averageRating } } }",
        gql_context(admin_user),
        id=str(q.id),
    )
    assert result.errors is None
    data = result.data["getQuestionnaireResults"]
    assert (data["totalAssigned"], data["totalResponded"], data["responseRate"]) == (1, 1, 100.0)
    assert data["questionResults"][0]["averageRating"] == 4.0


class SlowSignOut:
    def __init__(self, delay: float):
        self.delay = delay

    def sign_out(self, access_token: str) -> None:
        time.sleep(self.delay)


def test_requests_do_not_block_each_other(db, admin_user):
    identity = SlowSignOut(0.4)

    async def both():
        contexts = [GraphQLContext(db=db, user=admin_user, token=f"t{i}", identity=identity) for i in range(2)]
        return await asyncio.gather(*(schema.execute("mutation { logout }", context_value=c) for c in contexts))

    started = time.perf_counter()
    results = asyncio.run(both())
    elapsed = time.perf_counter() - started

    assert [r.data for r in results] == [{"logout": True}, {"logout": True}]
    assert elapsed < 0.7
