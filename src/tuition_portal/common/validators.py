"""Declarative request body validation.

A controller lists the rules for a body and calls ``validate``; every failing
rule contributes one ``{"field", "message"}`` item to the raised
``ValidationError``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from ..core.exceptions import ValidationError

_MISSING = object()


@dataclass(frozen=True)
class Rule:
    field: str
    message: str
    check: Callable[[Any], bool]
    optional: bool = False


def _lookup(data: Mapping[str, Any], field: str) -> Any:
    value: Any = data
    for part in field.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _is_blank(value: Any) -> bool:
    return value is _MISSING or value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return int(f) if f.is_integer() else None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def required(field: str, message: str) -> Rule:
    return Rule(field, message, lambda v: not _is_blank(v))


def int_between(field: str, message: str, low: int, high: int, *, optional: bool = False) -> Rule:
    def check(v: Any) -> bool:
        n = _as_int(v)
        return n is not None and low <= n <= high

    return Rule(field, message, check, optional)


def int_min(field: str, message: str, low: int, *, optional: bool = False) -> Rule:
    def check(v: Any) -> bool:
        n = _as_int(v)
        return n is not None and n >= low

    return Rule(field, message, check, optional)


def float_min(field: str, message: str, low: float, *, optional: bool = False) -> Rule:
    def check(v: Any) -> bool:
        n = _as_float(v)
        return n is not None and n >= low

    return Rule(field, message, check, optional)


def max_length(field: str, message: str, limit: int, *, optional: bool = True) -> Rule:
    return Rule(field, message, lambda v: isinstance(v, str) and len(v) <= limit, optional)


def one_of(field: str, message: str, choices: Iterable[str], *, optional: bool = False) -> Rule:
    allowed = frozenset(choices)
    return Rule(field, message, lambda v: isinstance(v, str) and v in allowed, optional)


def non_empty_list(field: str, message: str) -> Rule:
    return Rule(field, message, lambda v: isinstance(v, list) and len(v) > 0)


def is_list(field: str, message: str, *, optional: bool = False) -> Rule:
    return Rule(field, message, lambda v: isinstance(v, list), optional)


def is_object(field: str, message: str, *, optional: bool = True) -> Rule:
    return Rule(field, message, lambda v: isinstance(v, Mapping), optional)


def is_bool(field: str, message: str, *, optional: bool = True) -> Rule:
    return Rule(field, message, lambda v: isinstance(v, bool), optional)


def validate(data: Mapping[str, Any] | None, rules: Iterable[Rule]) -> None:
    data = data or {}
    errors: list[dict] = []
    for rule in rules:
        value = _lookup(data, rule.field)
        if rule.optional and value in (_MISSING, None):
            continue
        if value is _MISSING or not rule.check(value):
            errors.append({"field": rule.field, "message": rule.message})
    if errors:
        raise ValidationError("Validation errors", errors)


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required", [{"field": field_name, "message": f"{field_name} is required"}])
    return value.strip()


def require_int(value: Any, field_name: str) -> int:
    n = _as_int(value)
    if n is None:
        raise ValidationError(f"{field_name} must be an integer", [{"field": field_name, "message": f"{field_name} must be an integer"}])
    return n
