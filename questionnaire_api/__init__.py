"""GraphQL API for school questionnaires."""

__version__ = "1.0.0"
