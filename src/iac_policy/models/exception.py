"""Waiver records loaded from organization and environment exception documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional, Tuple


class ExceptionTier(str, Enum):
    """Provenance tier of an exception record, in precedence order."""

    ORGANIZATION = "organization"
    ENVIRONMENT = "environment"


_END_OF_DAY = time(23, 59, 59, tzinfo=timezone.utc)
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_expiry(value: object) -> Optional[datetime]:
    """Return the last valid instant of an ``YYYY-MM-DD`` expiry date.

    ``None`` is returned for anything that is not a calendar date string.
    """

    if not isinstance(value, str) or not _DATE_PATTERN.match(value.strip()):
        return None
    try:
        expiry = date.fromisoformat(value.strip())
    except ValueError:
        return None
    return datetime.combine(expiry, _END_OF_DAY)


@dataclass(frozen=True, slots=True)
class ExceptionRecord:
    """A documented, time-limited suppression of a rule for one or all resources."""

    rule: str
    resource: str
    expires: str
    tier: ExceptionTier
    reason: str = ""
    approved_by: str = ""
    source: str = ""
    position: int = 0
    problems: Tuple[str, ...] = ()

    @property
    def malformed(self) -> bool:
        return bool(self.problems)

    @property
    def expires_at(self) -> Optional[datetime]:
        return parse_expiry(self.expires)

    def is_active(self, now: datetime) -> bool:
        """Return ``True`` when the record may suppress findings at ``now``.

        Malformed records never suppress.
        """

        if self.malformed:
            return False
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return now <= expires_at

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` for well-formed records whose validity has lapsed."""

        if self.malformed:
            return False
        expires_at = self.expires_at
        return expires_at is not None and now > expires_at

    @property
    def label(self) -> str:
        origin = self.source or self.tier.value
        return f"{origin}[{self.position}]"
