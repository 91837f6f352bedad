import uuid

import pytest

from questionnaire_api.core.errors import Conflict, Forbidden, Internal, InvalidState, NotFound, ValidationFailed
from questionnaire_api.models.enums import AssignmentType, QuestionType
from questionnaire_api.models.response import QuestionnaireResponse, QuestionResponse
from questionnaire_api.services.responses import SUBMITTED_MESSAGE, ResponseService


@pytest.fixture
def setup(db, make, student_user):
    profile, alice = student_user
    math = make.subject("Math")
    lee = make.teacher("Ms. Lee")
    make.triple(alice, lee, math)
    q = make.questionnaire()
    rating = make.question(q, QuestionType.RATING, "How clear?", required=True, order_index=0)
    text = make.question(q, QuestionType.FREE_TEXT, "Comments", order_index=1)
    return {"profile": profile, "student": alice, "math": math, "lee": lee, "q": q, "rating": rating, "text": text}


def _payload(s, teacher=True, **rating_answer):
    answer = {"question_id": s["rating"].id, "answer_rating": 4}
    answer.update(rating_answer)
    return {
        "questionnaire_id": s["q"].id,
        "subject_id": s["math"].id,
        "teacher_id": s["lee"].id if teacher else None,
        "answers": [answer],
    }


def test_submit_stores_response_and_answers(db, setup):
    out = ResponseService(db).submit(setup["profile"].id, _payload(setup))

    assert out.success is True
    assert out.message == SUBMITTED_MESSAGE
    stored = db.get(QuestionnaireResponse, out.response_id)
    assert stored.student_email == "alice@school.cz"
    assert [a.answer_rating for a in db.query(QuestionResponse).all()] == [4]


def test_second_submission_for_same_pair_conflicts(db, setup):
    svc = ResponseService(db)
    svc.submit(setup["profile"].id, _payload(setup))
    with pytest.raises(Conflict, match="already submitted"):
        svc.submit(setup["profile"].id, _payload(setup))


def test_null_teacher_is_part_of_the_duplicate_key(db, setup):
    svc = ResponseService(db)
    svc.submit(setup["profile"].id, _payload(setup, teacher=False))
    # the same subject with a teacher is a different pair
    svc.submit(setup["profile"].id, _payload(setup, teacher=True))
    with pytest.raises(Conflict):
        svc.submit(setup["profile"].id, _payload(setup, teacher=False))
    assert db.query(QuestionnaireResponse).count() == 2


@pytest.mark.parametrize("rating", [0, 6, 4.5])
def test_out_of_range_or_fractional_rating_is_rejected(db, setup, rating):
    with pytest.raises(ValidationFailed):
        ResponseService(db).submit(setup["profile"].id, _payload(setup, answer_rating=rating))
    assert db.query(QuestionnaireResponse).count() == 0


def test_integral_float_rating_is_accepted(db, setup):
    ResponseService(db).submit(setup["profile"].id, _payload(setup, answer_rating=5.0))
    assert db.query(QuestionResponse).one().answer_rating == 5


def test_missing_required_answer_is_rejected(db, setup):
    payload = _payload(setup)
    payload["answers"] = [{"question_id": setup["text"].id, "answer_text": "great"}]
    with pytest.raises(ValidationFailed, match="Required question"):
        ResponseService(db).submit(setup["profile"].id, payload)


def test_unknown_question_is_rejected(db, setup):
    payload = _payload(setup)
    payload["answers"].append({"question_id": uuid.uuid4(), "answer_text": "?"})
    with pytest.raises(ValidationFailed, match="Invalid question ID"):
        ResponseService(db).submit(setup["profile"].id, payload)


def test_empty_text_is_a_valid_optional_answer(db, setup):
    payload = _payload(setup)
    payload["answers"].append({"question_id": setup["text"].id, "answer_text": ""})
    ResponseService(db).submit(setup["profile"].id, payload)
    assert db.query(QuestionResponse).count() == 2


def test_option_must_belong_to_the_question(db, make, setup):
    mc = make.question(setup["q"], QuestionType.MULTIPLE_CHOICE, "Pick", options=["A", "B"])
    other = make.question(make.questionnaire(title="other"), QuestionType.MULTIPLE_CHOICE, options=["X"])
    payload = _payload(setup)
    payload["answers"].append({"question_id": mc.id, "answer_option_id": other.options[0].id})
    with pytest.raises(ValidationFailed, match="does not belong"):
        ResponseService(db).submit(setup["profile"].id, payload)


def test_closed_questionnaire_is_rejected(db, setup):
    setup["q"].is_active = False
    db.commit()
    with pytest.raises(InvalidState, match="not active"):
        ResponseService(db).submit(setup["profile"].id, _payload(setup))


def test_unknown_questionnaire_is_not_found(db, setup):
    payload = _payload(setup)
    payload["questionnaire_id"] = uuid.uuid4()
    with pytest.raises(NotFound):
        ResponseService(db).submit(setup["profile"].id, payload)


def test_specific_questionnaire_requires_an_assignment(db, make, setup):
    q = make.questionnaire(title="specific", assignment_type=AssignmentType.SPECIFIC_STUDENTS)
    rating = make.question(q, QuestionType.RATING)
    payload = {
        "questionnaire_id": q.id,
        "subject_id": setup["math"].id,
        "teacher_id": setup["lee"].id,
        "answers": [{"question_id": rating.id, "answer_rating": 3}],
    }
    with pytest.raises(Forbidden):
        ResponseService(db).submit(setup["profile"].id, payload)


def test_failed_answer_batch_removes_the_response(db, setup, monkeypatch):
    svc = ResponseService(db)

    def broken(response_id, rows):
        raise Internal("Failed to save answers: disk full")

    monkeypatch.setattr(svc, "_insert_answers", broken)
    with pytest.raises(Internal):
        svc.submit(setup["profile"].id, _payload(setup))
    assert db.query(QuestionnaireResponse).count() == 0
    assert svc.has_student_submitted(setup["profile"].id, setup["q"].id, setup["math"].id, setup["lee"].id) is False


def test_caller_without_student_row_is_not_found(db, make, setup):
    stranger = make.profile("nobody@school.cz")
    with pytest.raises(NotFound, match="Student not found"):
        ResponseService(db).submit(stranger.id, _payload(setup))
