"""Strict coercion helpers shared by the dataclass models' ``from_dict`` parsers."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import NoReturn, TypeVar

TEnum = TypeVar("TEnum", bound=Enum)

MAX_TEXT = 1_000_000


def fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
    allow_unknown: bool = False,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    if not allow_unknown:
        allowed = required | (optional or set())
        unknown = sorted(key for key in parsed if key not in allowed)
        if unknown:
            fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        fail(path, f"missing required fields: {missing}")

    return parsed


def as_str(
    value: object,
    path: str,
    *,
    min_len: int = 0,
    max_len: int = MAX_TEXT,
    strip: bool = False,
) -> str:
    if not isinstance(value, str):
        fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip() if strip else value
    if len(normalized) < min_len:
        fail(path, f"must be at least {min_len} character(s)")
    if len(normalized) > max_len:
        fail(path, f"must be <= {max_len} characters")
    return normalized


def as_optional_str(value: object, path: str, *, max_len: int = MAX_TEXT) -> str | None:
    if value is None:
        return None
    return as_str(value, path, max_len=max_len)


def as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    fail(path, f"expected boolean, got {type(value).__name__}")


def as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        fail(path, f"must be >= {minimum}")
    return value


def as_float(value: object, path: str, *, minimum: float | None = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        fail(path, "must be finite")
    if minimum is not None and parsed < minimum:
        fail(path, f"must be >= {minimum}")
    return parsed


def as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(str(item.value) for item in enum_type))
        fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    fail(path, f"expected array, got {type(value).__name__}")


def as_str_tuple(value: object, path: str, *, unique: bool = False) -> tuple[str, ...]:
    parsed = tuple(
        as_str(item, f"{path}[{index}]") for index, item in enumerate(as_sequence(value, path))
    )
    if unique and len(set(parsed)) != len(parsed):
        fail(path, "contains duplicate values")
    return parsed


def as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    return as_datetime(value, path)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def datetime_to_iso8601z(value: datetime) -> str:
    normalized = as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def normalize_change_path(value: str) -> str:
    """Normalize a change path to forward slashes without a leading ``./``."""

    normalized = value.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


__all__ = [
    "as_bool",
    "as_datetime",
    "as_enum",
    "as_float",
    "as_int",
    "as_optional_datetime",
    "as_optional_str",
    "as_sequence",
    "as_str",
    "as_str_tuple",
    "datetime_to_iso8601z",
    "expect_object",
    "fail",
    "normalize_change_path",
    "utc_now",
]
