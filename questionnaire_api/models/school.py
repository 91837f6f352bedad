# questionnaire_api/models/school.py
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Uuid
from sqlalchemy import text as sql_text
from sqlalchemy.orm import relationship

from questionnaire_api.db.base_class import Base
from questionnaire_api.models.mixins import TimestampMixin


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=True, index=True)

    relationships = relationship(
        "StudentTeacherSubject", back_populates="student", passive_deletes=True
    )


class Teacher(Base, TimestampMixin):
    __tablename__ = "teachers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)

    relationships = relationship(
        "StudentTeacherSubject", back_populates="teacher", passive_deletes=True
    )


class Subject(Base, TimestampMixin):
    __tablename__ = "subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)

    relationships = relationship(
        "StudentTeacherSubject", back_populates="subject", passive_deletes=True
    )


class StudentTeacherSubject(Base, TimestampMixin):
    """
    "This student studies this subject, optionally under this teacher".
    Rows are deactivated instead of deleted on edits; only one row per
    (student, teacher, subject) may be active.
    """

    __tablename__ = "student_teacher_subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=True, index=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id", ondelete="CASCADE"), nullable=True, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=sql_text("true"))

    student = relationship("Student", back_populates="relationships")
    teacher = relationship("Teacher", back_populates="relationships")
    subject = relationship("Subject", back_populates="relationships")

    __table_args__ = (
        Index(
            "uq_sts_active_triple",
            "student_id",
            "teacher_id",
            "subject_id",
            unique=True,
            postgresql_where=sql_text("is_active"),
            sqlite_where=sql_text("is_active = 1"),
        ),
    )
