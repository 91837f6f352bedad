# questionnaire_api/models/questionnaire.py
import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func,
)
from sqlalchemy import text as sql_text
from sqlalchemy.orm import relationship

from questionnaire_api.db.base_class import Base
from questionnaire_api.models.mixins import TimestampMixin, utcnow


class QuestionnaireGroup(Base, TimestampMixin):
    __tablename__ = "questionnaire_groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    questionnaires = relationship("Questionnaire", back_populates="group", passive_deletes=True)


class Questionnaire(Base, TimestampMixin):
    __tablename__ = "questionnaires"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, ForeignKey("questionnaire_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=sql_text("true"))
    is_anonymous = Column(Boolean, nullable=False, default=False, server_default=sql_text("false"))
    # ALL_STUDENTS | SPECIFIC_STUDENTS
    assignment_type = Column(String, nullable=False, default="ALL_STUDENTS", server_default=sql_text("'ALL_STUDENTS'"))

    group = relationship("QuestionnaireGroup", back_populates="questionnaires")
    questions = relationship(
        "Question",
        back_populates="questionnaire",
        order_by="(Question.order_index, Question.created_at)",
        passive_deletes=True,
    )


class Question(Base, TimestampMixin):
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    questionnaire_id = Column(Uuid, ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    type = Column(String, nullable=False)  # MULTIPLE_CHOICE | FREE_TEXT | RATING | YES_NO
    required = Column(Boolean, nullable=False, default=False, server_default=sql_text("false"))
    order_index = Column(Integer, nullable=False, default=0)

    questionnaire = relationship("Questionnaire", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="(QuestionOption.order_index, QuestionOption.created_at)",
        passive_deletes=True,
    )


class QuestionOption(Base, TimestampMixin):
    __tablename__ = "question_options"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")


class QuestionnaireAssignment(Base):
    """Links a SPECIFIC_STUDENTS questionnaire to one assignment triple."""

    __tablename__ = "questionnaire_assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    questionnaire_id = Column(Uuid, ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False, index=True)
    student_teacher_subject_id = Column(
        Uuid, ForeignKey("student_teacher_subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    triple = relationship("StudentTeacherSubject")

    __table_args__ = (
        UniqueConstraint("questionnaire_id", "student_teacher_subject_id", name="uq_questionnaire_triple"),
    )
