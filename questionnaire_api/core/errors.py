# questionnaire_api/core/errors.py
from __future__ import annotations

from typing import Any, NoReturn, Optional

from graphql import GraphQLError
from pydantic import ValidationError


class AppError(Exception):
    """
    Base application error. `code` is the stable value exposed in the GraphQL
    `extensions.code`; `status_code` mirrors the HTTP meaning for logs.
    """

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class Unauthenticated(AppError):
    code = "UNAUTHENTICATED"
    status_code = 401


class Forbidden(AppError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationFailed(AppError):
    code = "BAD_REQUEST"
    status_code = 400


class InvalidState(AppError):
    code = "BAD_REQUEST"
    status_code = 400


class Conflict(AppError):
    code = "BAD_REQUEST"
    status_code = 409


class Internal(AppError):
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500


def to_graphql_error(err: AppError) -> GraphQLError:
    extensions: dict[str, Any] = {"code": err.code}
    return GraphQLError(err.message, extensions=extensions, original_error=err)


def create_graphql_error(message: str, code: str = "INTERNAL_SERVER_ERROR") -> GraphQLError:
    return GraphQLError(message, extensions={"code": code})


def handle_database_error(error: Exception, operation: str) -> NoReturn:
    """Wraps an unexpected storage failure with a readable operation label."""
    raise Internal(f"Failed to {operation}: {error}", details=type(error).__name__) from error


def wrap_error(error: Exception, default_message: str) -> NoReturn:
    if isinstance(error, GraphQLError):
        raise error
    if isinstance(error, AppError):
        raise to_graphql_error(error) from error
    if isinstance(error, ValidationError):
        first = next(iter(error.errors()), {})
        loc = ".".join(str(p) for p in first.get("loc", ()))
        msg = first.get("msg", str(error))
        invalid = ValidationFailed(f"{loc}: {msg}" if loc else msg)
        raise to_graphql_error(invalid) from error
    raise create_graphql_error(f"{default_message}: {error}") from error
