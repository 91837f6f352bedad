# questionnaire_api/services/identity.py
"""
Client for the hosted identity provider (Supabase GoTrue REST API).

Password sign-in and refresh use the anon key; user administration needs the
service-role key. Every failure surfaces as IdentityError carrying the
provider's own message.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional
from uuid import UUID

import httpx

from questionnaire_api.core.config import settings
from questionnaire_api.core.logging import get_logger

log = get_logger("identity")

INVALID_LOGIN = "Invalid login credentials"


class IdentityError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_invalid_login(self) -> bool:
        return INVALID_LOGIN.lower() in self.message.lower()

    @property
    def already_registered(self) -> bool:
        return "already been registered" in self.message.lower()


@dataclass
class AuthUser:
    id: UUID
    email: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class AuthSession:
    user: AuthUser
    access_token: str
    refresh_token: str


def _user_from(body: dict[str, Any]) -> AuthUser:
    return AuthUser(id=UUID(str(body["id"])), email=body.get("email"), created_at=body.get("created_at"))


def _session_from(body: dict[str, Any]) -> AuthSession:
    user = body.get("user")
    if not user or not body.get("access_token"):
        raise IdentityError("Identity provider returned no session")
    return AuthSession(
        user=_user_from(user),
        access_token=body["access_token"],
        refresh_token=body.get("refresh_token") or "",
    )


class IdentityProvider:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_key = service_key
        self.client = client or httpx.Client(timeout=timeout)

    @property
    def has_admin(self) -> bool:
        return bool(self.base_url and self.service_key)

    @classmethod
    def from_settings(cls) -> "IdentityProvider":
        return cls(
            base_url=settings.SUPABASE_URL,
            anon_key=settings.SUPABASE_ANON_KEY,
            service_key=settings.SUPABASE_SERVICE_ROLE_SECRET,
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
        )

    # -------- transport --------
    def _headers(self, admin: bool, bearer: Optional[str]) -> dict[str, str]:
        if admin:
            if not self.service_key:
                raise IdentityError("Admin client not available")
            return {"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"}
        return {"apikey": self.anon_key, "Authorization": f"Bearer {bearer or self.anon_key}"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        admin: bool = False,
        bearer: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            resp = self.client.request(method, url, headers=self._headers(admin, bearer), json=json, params=params)
        except httpx.HTTPError as e:
            log.error("Identity provider unreachable (%s %s): %s", method, path, e)
            raise IdentityError(f"Identity provider unreachable: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or body.get("error")
                or resp.text
                or f"HTTP {resp.status_code}"
            )
            raise IdentityError(str(message), status_code=resp.status_code)

        if not resp.content:
            return None
        return resp.json()

    # -------- sessions --------
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        body = self._request(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        return _session_from(body)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        body = self._request(
            "POST", "/token", params={"grant_type": "refresh_token"}, json={"refresh_token": refresh_token}
        )
        return _session_from(body)

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "/logout", bearer=access_token)

    # -------- administration --------
    def admin_create_user(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthUser:
        body = self._request(
            "POST",
            "/admin/users",
            admin=True,
            json={"email": email, "password": password, "email_confirm": True, "user_metadata": metadata or {}},
        )
        return _user_from(body)

    def admin_delete_user(self, user_id: UUID) -> None:
        self._request("DELETE", f"/admin/users/{user_id}", admin=True)

    def admin_update_user(
        self, user_id: UUID, *, email: Optional[str] = None, password: Optional[str] = None
    ) -> AuthUser:
        patch: dict[str, Any] = {}
        if email is not None:
            patch["email"] = email
        if password is not None:
            patch["password"] = password
        body = self._request("PUT", f"/admin/users/{user_id}", admin=True, json=patch)
        return _user_from(body)

    def admin_list_users(self, email: Optional[str] = None, per_page: int = 1000) -> List[AuthUser]:
        """Lists auth users; with `email`, only exact (case-insensitive) matches are returned."""
        users: List[AuthUser] = []
        page = 1
        while True:
            params: dict[str, Any] = {"page": page, "per_page": per_page}
            if email:
                params["filter"] = email
            body = self._request("GET", "/admin/users", admin=True, params=params) or {}
            batch = body.get("users", []) if isinstance(body, dict) else body
            users.extend(_user_from(u) for u in batch)
            if len(batch) < per_page:
                break
            page += 1

        if email:
            wanted = email.lower()
            users = [u for u in users if (u.email or "").lower() == wanted]
        return users

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        found = self.admin_list_users(email=email)
        return found[0] if found else None


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """One provider (and HTTP connection pool) per process; it holds no per-request state."""
    return IdentityProvider.from_settings()
