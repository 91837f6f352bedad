# questionnaire_api/core/security.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

import jwt
from sqlalchemy.orm import Session

from questionnaire_api.core.config import settings
from questionnaire_api.core.errors import Forbidden, InvalidState, Unauthenticated
from questionnaire_api.core.logging import get_logger
from questionnaire_api.models.enums import Role
from questionnaire_api.models.profile import Profile

log = get_logger("security")


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    email: str
    role: Role


def create_access_token(user_id: UUID | str, email: str, expires_minutes: int = 60) -> str:
    """
    Issues a token shaped like the identity provider's access tokens
    (sub, email, aud, iat, exp). Used by local tooling and tests.
    """
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decodes an access token, requiring 'exp' and 'sub' and checking the audience.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"require": ["exp", "sub"], "verify_exp": True},
            leeway=5,  # clock skew
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


def resolve_user(db: Session, token: Optional[str]) -> Optional[CurrentUser]:
    """
    Maps a bearer token to the caller's profile. Any problem yields None so the
    request continues anonymously and fails later at the authorization check.
    """
    if not token:
        return None
    try:
        payload = decode_token(token)
        user_id = UUID(str(payload["sub"]))
    except (Unauthenticated, ValueError) as e:
        log.info("Rejected bearer token: %s", e)
        return None

    profile = db.get(Profile, user_id)
    if profile is None:
        log.warning("No profile for authenticated user %s", user_id)
        return None
    try:
        role = Role(profile.role)
    except ValueError:
        log.warning("Profile %s has unknown role %r", user_id, profile.role)
        return None
    return CurrentUser(id=profile.id, email=profile.email, role=role)


def require_auth(user: Optional[CurrentUser]) -> CurrentUser:
    if user is None:
        raise Unauthenticated("Not authenticated")
    return user


def require_admin(user: Optional[CurrentUser]) -> CurrentUser:
    user = require_auth(user)
    if user.role is Role.ADMIN:
        return user
    if user.role is Role.STUDENT:
        raise Forbidden("Unauthorized: Admin access required")
    raise Forbidden(f"Unknown role {user.role!r}")


def require_student(user: Optional[CurrentUser], message: str = "Only students can access this query") -> CurrentUser:
    user = require_auth(user)
    if user.role is Role.STUDENT:
        return user
    if user.role is Role.ADMIN:
        raise Forbidden(message)
    raise Forbidden(f"Unknown role {user.role!r}")


def prevent_self_deletion(user: CurrentUser, target_id: UUID) -> None:
    if user.id == target_id:
        raise InvalidState("Cannot delete your own account")
