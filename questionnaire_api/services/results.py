# questionnaire_api/services/results.py
"""
Aggregated results of one questionnaire.

Respondent identity (student name, falling back to the stored email) is
resolved once per questionnaire and is always None for anonymous
questionnaires. Individual choice/rating/yes-no listings are only produced
for non-anonymous questionnaires.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import NotFound
from questionnaire_api.core.logging import get_logger
from questionnaire_api.models.enums import QuestionType
from questionnaire_api.models.questionnaire import Question, Questionnaire
from questionnaire_api.models.response import QuestionnaireResponse, QuestionResponse
from questionnaire_api.models.school import Student
from questionnaire_api.schemas.questionnaire import QuestionnaireOut, QuestionOut
from questionnaire_api.schemas.results import (
    OptionCountOut,
    OptionResponseOut,
    QuestionnaireResultsOut,
    QuestionResultOut,
    RatingBucketOut,
    RatingResponseOut,
    TextResponseOut,
    YesNoResponseOut,
)
from questionnaire_api.services.assignments import AssignmentResolver

log = get_logger("results")

RATING_SCALE = (1, 2, 3, 4, 5)


@dataclass
class _Answer:
    """One QuestionResponse flattened with its parent response."""

    id: UUID
    answer_text: Optional[str]
    answer_option_id: Optional[UUID]
    answer_rating: Optional[int]
    answer_boolean: Optional[bool]
    respondent: Optional[str]
    submitted_at: Optional[datetime]


def percentage(count: int, total: int) -> float:
    return (count / total) * 100 if total > 0 else 0.0


def response_rate(total_responded: int, total_assigned: int) -> float:
    return (total_responded / total_assigned) * 100 if total_assigned > 0 else 0.0


def aggregate_question(question: QuestionOut, answers: List[_Answer], anonymous: bool) -> QuestionResultOut:
    total = len(answers)
    result = QuestionResultOut(question=question, total_responses=total)

    if question.type == QuestionType.MULTIPLE_CHOICE:
        options = {o.id: o for o in question.options}
        counts = []
        for o in question.options:
            n = sum(1 for a in answers if a.answer_option_id == o.id)
            counts.append(OptionCountOut(option=o, count=n, percentage=percentage(n, total)))
        result.option_counts = counts
        if not anonymous:
            result.option_responses = [
                OptionResponseOut(
                    id=a.id,
                    option=options.get(a.answer_option_id),
                    respondent_info=a.respondent,
                    submitted_at=a.submitted_at,
                )
                for a in answers
                if a.answer_option_id is not None
            ]

    elif question.type == QuestionType.RATING:
        rated = [a for a in answers if a.answer_rating is not None]
        ratings = [a.answer_rating for a in rated]
        result.average_rating = sum(ratings) / len(ratings) if ratings else 0.0
        result.rating_distribution = [
            RatingBucketOut(rating=r, count=ratings.count(r), percentage=percentage(ratings.count(r), total))
            for r in RATING_SCALE
        ]
        if not anonymous:
            result.rating_responses = [
                RatingResponseOut(
                    id=a.id, rating=a.answer_rating, respondent_info=a.respondent, submitted_at=a.submitted_at
                )
                for a in rated
            ]

    elif question.type == QuestionType.YES_NO:
        result.yes_count = sum(1 for a in answers if a.answer_boolean is True)
        result.no_count = sum(1 for a in answers if a.answer_boolean is False)
        if not anonymous:
            result.yes_no_responses = [
                YesNoResponseOut(
                    id=a.id, answer=a.answer_boolean, respondent_info=a.respondent, submitted_at=a.submitted_at
                )
                for a in answers
                if a.answer_boolean is not None
            ]

    elif question.type == QuestionType.FREE_TEXT:
        # empty or missing text is left out entirely
        result.text_responses = [
            TextResponseOut(
                id=a.id,
                text=a.answer_text,
                respondent_info=None if anonymous else a.respondent,
                submitted_at=a.submitted_at,
            )
            for a in answers
            if a.answer_text
        ]

    return result


class ResultsService:
    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentResolver(db)

    def _respondent_names(self, emails: set[str]) -> Dict[str, str]:
        if not emails:
            return {}
        rows = self.db.query(Student.email, Student.name).filter(Student.email.in_(emails)).all()
        return {email: name for email, name in rows}

    def get_results(self, questionnaire_id: UUID) -> QuestionnaireResultsOut:
        questionnaire = (
            self.db.query(Questionnaire)
            .populate_existing()
            .options(selectinload(Questionnaire.questions).selectinload(Question.options))
            .filter(Questionnaire.id == questionnaire_id)
            .first()
        )
        if questionnaire is None:
            raise NotFound("Questionnaire not found")

        anonymous = bool(questionnaire.is_anonymous)
        total_assigned = self.assignments.count_assigned(questionnaire)

        responses = (
            self.db.query(QuestionnaireResponse)
            .options(selectinload(QuestionnaireResponse.answers))
            .filter(QuestionnaireResponse.questionnaire_id == questionnaire.id)
            .order_by(QuestionnaireResponse.submitted_at)
            .all()
        )
        total_responded = len(responses)

        names = {} if anonymous else self._respondent_names({r.student_email for r in responses if r.student_email})

        by_question: Dict[UUID, List[_Answer]] = {}
        for r in responses:
            respondent = None if anonymous else (names.get(r.student_email) or r.student_email or None)
            for qr in r.answers:
                by_question.setdefault(qr.question_id, []).append(
                    _Answer(
                        id=qr.id,
                        answer_text=qr.answer_text,
                        answer_option_id=qr.answer_option_id,
                        answer_rating=qr.answer_rating,
                        answer_boolean=qr.answer_boolean,
                        respondent=respondent,
                        submitted_at=r.submitted_at or qr.created_at,
                    )
                )

        q_out = QuestionnaireOut.model_validate(questionnaire)
        question_results = [aggregate_question(q, by_question.get(q.id, []), anonymous) for q in q_out.questions]

        log.info(
            "Results for %s: %d/%d responded, %d questions",
            questionnaire.id, total_responded, total_assigned, len(question_results),
        )
        return QuestionnaireResultsOut(
            questionnaire=q_out,
            total_assigned=total_assigned,
            total_responded=total_responded,
            response_rate=response_rate(total_responded, total_assigned),
            question_results=question_results,
        )
