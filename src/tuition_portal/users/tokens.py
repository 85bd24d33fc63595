from __future__ import annotations

from dataclasses import dataclass

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from ..core.enums import Role
from ..core.exceptions import AuthenticationError


@dataclass(frozen=True)
class CurrentUser:
    """Identity claim attached to an authenticated request."""

    id: int
    role: Role

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role.value}


class TokenService:
    """Issues and verifies the signed access tokens sent in ``x-auth-token``."""

    def __init__(self, secret_key: str, *, max_age_seconds: int, salt: str = "tuition-portal-auth"):
        if not secret_key:
            raise ValueError("SECRET_KEY is required to sign access tokens")
        self._serializer = URLSafeTimedSerializer(secret_key, salt=salt)
        self._max_age = int(max_age_seconds)

    def issue(self, *, user_id: int, role: Role) -> str:
        return self._serializer.dumps({"user": {"id": int(user_id), "role": role.value}})

    def verify(self, token: str) -> CurrentUser:
        try:
            payload = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired:
            raise AuthenticationError("Token has expired. Logout and sign in again.")
        except BadData:
            raise AuthenticationError("Token is not valid. Logout and sign in again.")

        try:
            claim = payload["user"]
            return CurrentUser(id=int(claim["id"]), role=Role(claim["role"]))
        except (KeyError, TypeError, ValueError):
            raise AuthenticationError("Token is not valid. Logout and sign in again.")
