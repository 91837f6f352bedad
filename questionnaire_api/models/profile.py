# questionnaire_api/models/profile.py
from sqlalchemy import Column, String, Uuid
from sqlalchemy import text as sql_text

from questionnaire_api.db.base_class import Base
from questionnaire_api.models.mixins import TimestampMixin


class Profile(Base, TimestampMixin):
    """Application profile of an auth user; `id` is the identity provider's user id."""

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(String, nullable=False, server_default=sql_text("'STUDENT'"))  # ADMIN | STUDENT
