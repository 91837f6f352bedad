# questionnaire_api/db/base.py
from questionnaire_api.db.base_class import Base  # noqa: F401

# Import every model module so their tables are registered on Base.metadata
from questionnaire_api.models import profile  # noqa: F401
from questionnaire_api.models import school  # noqa: F401
from questionnaire_api.models import questionnaire  # noqa: F401
from questionnaire_api.models import response  # noqa: F401
from questionnaire_api.models import import_history  # noqa: F401
