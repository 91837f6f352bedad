# questionnaire_api/models/response.py
import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
)
from sqlalchemy.orm import relationship

from questionnaire_api.db.base_class import Base
from questionnaire_api.models.mixins import utcnow


class QuestionnaireResponse(Base):
    """
    One submission of a questionnaire for one (subject, teacher) pair.
    `student_email` is always stored, also for anonymous questionnaires;
    it is hidden when results are presented. subject_id / teacher_id are
    lookup references, not owned rows.
    """

    __tablename__ = "questionnaire_responses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    questionnaire_id = Column(Uuid, ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False, index=True)
    student_email = Column(String, nullable=False, index=True)
    subject_id = Column(Uuid, nullable=False)
    teacher_id = Column(Uuid, nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    answers = relationship("QuestionResponse", back_populates="response", passive_deletes=True)

    # The migration creates this as NULLS NOT DISTINCT so a NULL teacher is part of the key
    __table_args__ = (
        UniqueConstraint(
            "questionnaire_id", "student_email", "subject_id", "teacher_id", name="uq_response_submission_key"
        ),
    )


class QuestionResponse(Base):
    __tablename__ = "question_responses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    response_id = Column(
        Uuid, ForeignKey("questionnaire_responses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    answer_text = Column(Text, nullable=True)
    answer_option_id = Column(Uuid, ForeignKey("question_options.id", ondelete="SET NULL"), nullable=True)
    answer_rating = Column(Integer, nullable=True)
    answer_boolean = Column(Boolean, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    response = relationship("QuestionnaireResponse", back_populates="answers")

    __table_args__ = (
        CheckConstraint("answer_rating IS NULL OR (answer_rating >= 1 AND answer_rating <= 5)", name="ck_rating_range"),
    )
