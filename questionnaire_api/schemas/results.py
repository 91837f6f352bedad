# questionnaire_api/schemas/results.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from questionnaire_api.schemas.questionnaire import OptionOut, QuestionnaireOut, QuestionOut


class OptionCountOut(BaseModel):
    option: OptionOut
    count: int
    percentage: float


class OptionResponseOut(BaseModel):
    id: UUID
    option: Optional[OptionOut] = None
    respondent_info: Optional[str] = None
    submitted_at: Optional[datetime] = None


class RatingBucketOut(BaseModel):
    rating: int
    count: int
    percentage: float


class RatingResponseOut(BaseModel):
    id: UUID
    rating: int
    respondent_info: Optional[str] = None
    submitted_at: Optional[datetime] = None


class YesNoResponseOut(BaseModel):
    id: UUID
    answer: bool
    respondent_info: Optional[str] = None
    submitted_at: Optional[datetime] = None


class TextResponseOut(BaseModel):
    id: UUID
    text: str
    respondent_info: Optional[str] = None
    submitted_at: Optional[datetime] = None


class QuestionResultOut(BaseModel):
    question: QuestionOut
    total_responses: int
    # MULTIPLE_CHOICE
    option_counts: Optional[List[OptionCountOut]] = None
    option_responses: Optional[List[OptionResponseOut]] = None
    # RATING
    average_rating: Optional[float] = None
    rating_distribution: Optional[List[RatingBucketOut]] = None
    rating_responses: Optional[List[RatingResponseOut]] = None
    # YES_NO
    yes_count: Optional[int] = None
    no_count: Optional[int] = None
    yes_no_responses: Optional[List[YesNoResponseOut]] = None
    # FREE_TEXT
    text_responses: Optional[List[TextResponseOut]] = None


class QuestionnaireResultsOut(BaseModel):
    questionnaire: QuestionnaireOut
    total_assigned: int
    total_responded: int
    response_rate: float
    question_results: List[QuestionResultOut]
