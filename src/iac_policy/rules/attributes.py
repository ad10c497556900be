"""Value helpers for reading loosely typed plan attributes."""

from __future__ import annotations

import math
from typing import Any, Optional


def is_true(value: Any) -> bool:
    """Return ``True`` for ``True`` and the string ``"true"``."""

    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def is_false(value: Any) -> bool:
    """Return ``True`` for ``False`` and the string ``"false"``. ``None`` is not false."""

    if isinstance(value, bool):
        return not value
    return isinstance(value, str) and value.strip().lower() == "false"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def as_number(value: Any) -> Optional[float]:
    """Coerce numeric attributes, returning ``None`` when the value is not a number."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_int(value: Any) -> Optional[int]:
    number = as_number(value)
    if number is None or not math.isfinite(number):
        return None
    return int(number)
