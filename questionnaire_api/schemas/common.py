# questionnaire_api/schemas/common.py
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RefOut(ORMModel):
    """Minimal {id, name} reference to a subject or teacher."""

    id: UUID
    name: str
