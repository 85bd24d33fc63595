from __future__ import annotations

from flask import Flask, request

from ..common.guards import build_guards, current_user
from ..common.http import ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    guards = build_guards(container.token_service)

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        body = request.get_json(silent=True) or {}
        result = container.auth_service.authenticate(str(body.get("email", "")), str(body.get("password", "")))
        return ok(
            "Login successful",
            token=result.token,
            user={
                "id": result.user.id,
                "role": result.user.role.value,
                "fullName": result.full_name,
                "email": result.email,
            },
        )

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @guards.login_required
    def me():
        return ok(user=current_user().to_dict())
