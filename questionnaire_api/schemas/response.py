# questionnaire_api/schemas/response.py
from __future__ import annotations

from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt


class AnswerIn(BaseModel):
    question_id: UUID
    answer_text: Optional[str] = None
    answer_option_id: Optional[UUID] = None
    # integral check happens in the submission engine so it reports the question
    answer_rating: Optional[Union[StrictInt, StrictFloat]] = None
    answer_boolean: Optional[StrictBool] = None


class SubmitResponseIn(BaseModel):
    questionnaire_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = None
    answers: List[AnswerIn] = Field(default_factory=list)


class SubmitResponseOut(BaseModel):
    success: bool
    message: str
    response_id: Optional[UUID] = None
