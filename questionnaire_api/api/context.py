# questionnaire_api/api/context.py
import threading
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session
from strawberry.fastapi import BaseContext
from strawberry.types import Info as _Info

from questionnaire_api.core.security import CurrentUser, resolve_user
from questionnaire_api.db.session import get_db
from questionnaire_api.services.identity import IdentityProvider, get_identity_provider


class GraphQLContext(BaseContext):
    """Per-request unit of work: one session, the caller (or None) and the identity client."""

    def __init__(
        self,
        db: Session,
        user: Optional[CurrentUser] = None,
        token: Optional[str] = None,
        identity: Optional[IdentityProvider] = None,
    ):
        super().__init__()
        self.db = db
        self.user = user
        self.token = token
        self.identity = identity
        self.lock = threading.Lock()


Info = _Info[GraphQLContext, None]


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_context(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
    authorization: Optional[str] = Header(default=None),
) -> GraphQLContext:
    token = bearer_token(authorization)
    return GraphQLContext(db=db, user=resolve_user(db, token), token=token, identity=identity)
