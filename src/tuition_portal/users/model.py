from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Login account. Staff act through it; students own a profile linked to it."""

    user_id: int
    full_name: str
    email: str
    password_hash: str
    role: Role
    is_active: bool = True
