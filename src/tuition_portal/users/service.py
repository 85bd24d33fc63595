from __future__ import annotations

import logging
from dataclasses import dataclass

from werkzeug.security import check_password_hash

from ..common.validators import require_non_empty
from ..core.exceptions import AuthenticationError
from .repository import UserRepository
from .tokens import CurrentUser, TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: CurrentUser
    full_name: str
    email: str


class AuthService:
    """Use case: authenticate a user and hand out an access token."""

    def __init__(self, users: UserRepository, tokens: TokenService):
        self._users = users
        self._tokens = tokens

    def authenticate(self, email: str, password: str) -> LoginResult:
        email = require_non_empty(email, "email").lower()
        password = require_non_empty(password, "password")

        user = self._users.get_by_email(email)
        if not user or not user.is_active:
            raise AuthenticationError("Invalid credentials")

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid credentials")

        logger.info("User %s signed in as %s", user.user_id, user.role.value)
        claim = CurrentUser(id=user.user_id, role=user.role)
        return LoginResult(
            token=self._tokens.issue(user_id=user.user_id, role=user.role),
            user=claim,
            full_name=user.full_name,
            email=user.email,
        )
