# questionnaire_api/models/import_history.py
import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB

from questionnaire_api.db.base_class import Base
from questionnaire_api.models.mixins import utcnow


class ImportHistory(Base):
    __tablename__ = "import_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    imported_by = Column(Uuid, nullable=True, index=True)  # actor
    total_records = Column(Integer, nullable=False, default=0)
    new_students = Column(Integer, nullable=False, default=0)
    new_teachers = Column(Integer, nullable=False, default=0)
    new_subjects = Column(Integer, nullable=False, default=0)
    updated_records = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False)  # completed | completed_with_errors | data_cleared
    error_details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
