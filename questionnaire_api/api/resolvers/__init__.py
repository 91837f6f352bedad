# questionnaire_api/api/resolvers/__init__.py
import asyncio
import contextlib
import functools
from typing import Callable

from pydantic import ValidationError

from questionnaire_api.core.errors import AppError, wrap_error
from questionnaire_api.core.logging import get_logger

log = get_logger("graphql")


def _request_lock(args, kwargs):
    info = kwargs.get("info")
    if info is None:
        info = next((a for a in args if hasattr(a, "context")), None)
    lock = getattr(getattr(info, "context", None), "lock", None)
    return lock if lock is not None else contextlib.nullcontext()


def graphql_boundary(default_message: str) -> Callable:
    """
    Runs a blocking resolver in a worker thread and converts anything it raises
    into a GraphQL error with a stable extensions.code.

    Resolvers of one request share a session, so they are serialized on the
    context lock; separate requests run side by side.
    """

    def decorator(fn: Callable) -> Callable:
        def call(*args, **kwargs):
            with _request_lock(args, kwargs):
                return fn(*args, **kwargs)

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.to_thread(call, *args, **kwargs)
            except Exception as e:
                if not isinstance(e, (AppError, ValidationError)):
                    log.exception("%s", default_message)
                wrap_error(e, default_message)

        return wrapper

    return decorator


def as_envelope(envelope_cls, call: Callable, fallback_message: str):
    """Runs a mutation; an AppError becomes `{success: false, message}` instead of a GraphQL error."""
    try:
        return call()
    except AppError as e:
        log.warning("%s: %s", fallback_message, e.message)
        return envelope_cls(success=False, message=e.message or fallback_message)
