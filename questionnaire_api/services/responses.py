# questionnaire_api/services/responses.py
"""
Response submission.

Preconditions are checked in a fixed order and every one of them fails before
anything is written. The response row and its answers are then written as two
separately committed steps; when the answers cannot be stored the response
row is deleted again.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import (
    Conflict, Forbidden, InvalidState, NotFound, ValidationFailed, handle_database_error
)
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.saga import Saga
from questionnaire_api.models.enums import AssignmentType, QuestionType
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.questionnaire import Question, Questionnaire
from questionnaire_api.models.response import QuestionnaireResponse, QuestionResponse
from questionnaire_api.schemas.response import AnswerIn, SubmitResponseIn, SubmitResponseOut
from questionnaire_api.services.assignments import AssignmentResolver

log = get_logger("responses")

SUBMITTED_MESSAGE = "Odpovědi byly úspěšně odeslány"


def _has_answer(question: Question, answer: Optional[AnswerIn]) -> bool:
    """A required question counts as answered only with a non-empty value of its own kind."""
    if answer is None:
        return False
    if question.type == QuestionType.FREE_TEXT:
        return bool(answer.answer_text)
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return answer.answer_option_id is not None
    if question.type == QuestionType.RATING:
        return answer.answer_rating is not None
    if question.type == QuestionType.YES_NO:
        return answer.answer_boolean is not None
    return False


def _valid_rating(value: Union[int, float, None]) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)
    return value if 1 <= value <= 5 else None


def build_answer_row(question: Question, answer: AnswerIn, response_id: Optional[UUID] = None) -> Dict[str, Any]:
    """Column values for one answer; raises ValidationFailed when it does not fit the question type."""
    row: Dict[str, Any] = {"response_id": response_id, "question_id": question.id}
    qtype = question.type

    if qtype == QuestionType.FREE_TEXT:
        # "" is a valid answer, a missing value is not
        if answer.answer_text is None:
            raise ValidationFailed(f"Text answer required for question {question.id}")
        row["answer_text"] = answer.answer_text
    elif qtype == QuestionType.MULTIPLE_CHOICE:
        if answer.answer_option_id is None:
            raise ValidationFailed(f"Option selection required for question {question.id}")
        if answer.answer_option_id not in {o.id for o in question.options}:
            raise ValidationFailed(f"Option {answer.answer_option_id} does not belong to question {question.id}")
        row["answer_option_id"] = answer.answer_option_id
    elif qtype == QuestionType.RATING:
        rating = _valid_rating(answer.answer_rating)
        if rating is None:
            raise ValidationFailed(f"Valid rating (1-5) required for question {question.id}")
        row["answer_rating"] = rating
    elif qtype == QuestionType.YES_NO:
        if not isinstance(answer.answer_boolean, bool):
            raise ValidationFailed(f"Yes/No answer required for question {question.id}")
        row["answer_boolean"] = answer.answer_boolean
    else:
        raise ValidationFailed(f"Unknown question type: {qtype}")
    return row


class ResponseService:
    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentResolver(db)

    def _find_existing(self, questionnaire_id: UUID, email: str, subject_id: UUID, teacher_id: Optional[UUID]):
        q = self.db.query(QuestionnaireResponse.id).filter(
            QuestionnaireResponse.questionnaire_id == questionnaire_id,
            QuestionnaireResponse.student_email == email,
            QuestionnaireResponse.subject_id == subject_id,
        )
        if teacher_id is None:
            q = q.filter(QuestionnaireResponse.teacher_id.is_(None))
        else:
            q = q.filter(QuestionnaireResponse.teacher_id == teacher_id)
        return q.first()

    def has_student_submitted(
        self, student_user_id: UUID, questionnaire_id: UUID, subject_id: UUID, teacher_id: Optional[UUID] = None
    ) -> bool:
        profile = self.db.get(Profile, student_user_id)
        if profile is None:
            return False
        return self._find_existing(questionnaire_id, profile.email, subject_id, teacher_id) is not None

    def submit(self, student_user_id: UUID, payload: Union[SubmitResponseIn, dict]) -> SubmitResponseOut:
        try:
            data = SubmitResponseIn.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(f"Invalid submission: {e.errors()[0].get('msg', str(e))}") from e

        # 1. caller -> profile email -> student
        profile, student = self.assignments.student_for_user(student_user_id)
        email = profile.email

        # 2. questionnaire must exist and be open
        questionnaire = (
            self.db.query(Questionnaire)
            .populate_existing()
            .options(selectinload(Questionnaire.questions).selectinload(Question.options))
            .filter(Questionnaire.id == data.questionnaire_id)
            .first()
        )
        if questionnaire is None:
            raise NotFound("Questionnaire not found")
        if not questionnaire.is_active:
            raise InvalidState("Questionnaire is not active")

        # 3. explicit assignment for SPECIFIC_STUDENTS
        if questionnaire.assignment_type == AssignmentType.SPECIFIC_STUDENTS:
            if not self.assignments.has_specific_assignment(
                questionnaire.id, student.id, data.subject_id, data.teacher_id
            ):
                raise Forbidden("You do not have access to this questionnaire")

        # 4. duplicate key (questionnaire, email, subject, teacher-or-null)
        if self._find_existing(questionnaire.id, email, data.subject_id, data.teacher_id) is not None:
            raise Conflict("You have already submitted a response for this questionnaire")

        # 5.-7. answers are validated before anything is written
        rows = self._validate_answers(list(questionnaire.questions), data.answers)

        # 8. response row, then the answer batch; a failed batch removes the response again
        saga = Saga("submit response")
        saga.step("response", lambda: self._insert_response(questionnaire.id, email, data), self._delete_response)
        saga.step("answers", lambda: self._insert_answers(saga.results["response"], rows))
        response_id = saga.run()["response"]

        log.info("Response %s stored for questionnaire %s (%d answers)", response_id, questionnaire.id, len(rows))
        return SubmitResponseOut(success=True, message=SUBMITTED_MESSAGE, response_id=response_id)

    def _validate_answers(self, questions: List[Question], answers: List[AnswerIn]) -> List[Dict[str, Any]]:
        by_id = {q.id: q for q in questions}
        first_answer: Dict[UUID, AnswerIn] = {}
        for a in answers:
            first_answer.setdefault(a.question_id, a)

        for q in questions:
            if q.required and not _has_answer(q, first_answer.get(q.id)):
                raise ValidationFailed(f"Required question {q.id} is not answered")

        rows = []
        for a in answers:
            q = by_id.get(a.question_id)
            if q is None:
                raise ValidationFailed(f"Invalid question ID: {a.question_id}")
            rows.append(build_answer_row(q, a))
        return rows

    def _insert_response(self, questionnaire_id: UUID, email: str, data: SubmitResponseIn) -> UUID:
        resp = QuestionnaireResponse(
            questionnaire_id=questionnaire_id,
            student_email=email,  # stored even for anonymous questionnaires
            subject_id=data.subject_id,
            teacher_id=data.teacher_id,
        )
        self.db.add(resp)
        try:
            self.db.commit()
        except IntegrityError as e:
            # concurrent submission won the unique submission key
            self.db.rollback()
            raise Conflict("You have already submitted a response for this questionnaire") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, "create response")
        return resp.id

    def _insert_answers(self, response_id: UUID, rows: List[Dict[str, Any]]) -> int:
        self.db.add_all([QuestionResponse(**{**r, "response_id": response_id}) for r in rows])
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, "save answers")
        return len(rows)

    def _delete_response(self, response_id: UUID) -> None:
        log.warning("Removing response %s after failed answer insert", response_id)
        self.db.query(QuestionnaireResponse).filter(QuestionnaireResponse.id == response_id).delete(
            synchronize_session=False
        )
        self.db.commit()
