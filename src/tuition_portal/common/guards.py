from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Callable

from flask import g, request

from ..core.constants import AUTH_HEADER
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..users.tokens import CurrentUser, TokenService


def current_user() -> CurrentUser:
    return g.current_user


@dataclass(frozen=True)
class Guards:
    login_required: Callable
    staff_required: Callable


def build_guards(tokens: TokenService) -> Guards:
    """View decorators that read the signed token from the request header."""

    def _authenticate() -> CurrentUser:
        token = request.headers.get(AUTH_HEADER, "").strip()
        if not token:
            raise AuthenticationError("No token, authorization denied")
        user = tokens.verify(token)
        g.current_user = user
        return user

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            _authenticate()
            return view(*args, **kwargs)

        return wrapper

    def staff_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _authenticate()
            if not user.role.is_staff:
                raise AuthorizationError("Access denied. Admin or moderator role required.")
            return view(*args, **kwargs)

        return wrapper

    return Guards(login_required=login_required, staff_required=staff_required)
