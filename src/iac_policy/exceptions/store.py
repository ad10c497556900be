"""Tiered storage for exception (waiver) records."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterator, List, Mapping, Sequence, Tuple

from ..models import ExceptionRecord, ExceptionTier, parse_expiry

logger = logging.getLogger(__name__)

_APPROVER_KEYS = ("approvedBy", "approved_by")
_KNOWN_KEYS = frozenset({"rule", "resource", "reason", "expires", *_APPROVER_KEYS})


class ExceptionDocumentError(RuntimeError):
    """Raised when an exception document is structurally invalid."""


class ExceptionStore:
    """Ordered exception records per provenance tier.

    Tiers are kept as separate tables so that every record retains the
    document it was loaded from.
    """

    def __init__(
        self,
        organization: Sequence[ExceptionRecord] = (),
        environment: Sequence[ExceptionRecord] = (),
    ) -> None:
        self._tiers: dict[ExceptionTier, Tuple[ExceptionRecord, ...]] = {
            ExceptionTier.ORGANIZATION: tuple(organization),
            ExceptionTier.ENVIRONMENT: tuple(environment),
        }

    @classmethod
    def from_documents(
        cls,
        *,
        organization: Any = None,
        environment: Any = None,
        organization_source: str = "",
        environment_source: str = "",
    ) -> "ExceptionStore":
        """Build a store from parsed exception documents.

        ``None`` stands for an absent document and yields an empty tier.
        """

        return cls(
            organization=parse_records(
                organization, ExceptionTier.ORGANIZATION, source=organization_source
            ),
            environment=parse_records(
                environment, ExceptionTier.ENVIRONMENT, source=environment_source
            ),
        )

    # ------------------------------------------------------------------
    def tier(self, tier: ExceptionTier) -> Tuple[ExceptionRecord, ...]:
        return self._tiers[tier]

    @property
    def organization(self) -> Tuple[ExceptionRecord, ...]:
        return self._tiers[ExceptionTier.ORGANIZATION]

    @property
    def environment(self) -> Tuple[ExceptionRecord, ...]:
        return self._tiers[ExceptionTier.ENVIRONMENT]

    def records(self) -> Iterator[ExceptionRecord]:
        """Iterate all records in tier precedence order."""

        for tier in ExceptionTier:
            yield from self._tiers[tier]

    def __len__(self) -> int:
        return sum(len(records) for records in self._tiers.values())

    def counts(self) -> dict[str, int]:
        return {tier.value: len(records) for tier, records in self._tiers.items()}


def parse_records(document: Any, tier: ExceptionTier, *, source: str = "") -> List[ExceptionRecord]:
    """Parse one exception document into records of ``tier``.

    Authoring mistakes inside an entry never raise; they are recorded on the
    entry so that it fails closed. Only a document that is not a list of
    objects is rejected.
    """

    if document is None:
        return []

    entries = document
    if isinstance(document, Mapping):
        entries = document.get("exceptions")

    if not isinstance(entries, list):
        label = source or tier.value
        raise ExceptionDocumentError(
            f"Exception document {label} must be a list of records "
            "or an object with an 'exceptions' list"
        )

    records: List[ExceptionRecord] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            label = source or tier.value
            raise ExceptionDocumentError(
                f"Exception document {label} entry {position} must be an object"
            )
        record = _build_record(entry, tier, source=source, position=position)
        if record.malformed:
            logger.warning(
                "Exception %s is malformed and will never apply: %s",
                record.label,
                "; ".join(record.problems),
            )
        records.append(record)

    logger.debug("Loaded %d %s exception records", len(records), tier.value)
    return records


def _build_record(
    entry: Mapping[str, Any], tier: ExceptionTier, *, source: str, position: int
) -> ExceptionRecord:
    problems: List[str] = []

    unknown = sorted(str(key) for key in entry if key not in _KNOWN_KEYS)
    if unknown:
        problems.append(f"unknown fields: {', '.join(unknown)}")

    if _is_calendar_date(entry.get("expires")):
        entry = {**entry, "expires": entry["expires"].isoformat()}

    rule = _required_str(entry, "rule", problems)
    resource = _required_str(entry, "resource", problems)
    expires = _required_str(entry, "expires", problems)
    if expires and parse_expiry(expires) is None:
        problems.append(f"expires {expires!r} is not a YYYY-MM-DD date")

    approved_by = ""
    for key in _APPROVER_KEYS:
        if entry.get(key) is not None:
            approved_by = str(entry[key])
            break

    return ExceptionRecord(
        rule=rule,
        resource=resource,
        expires=expires,
        tier=tier,
        reason=str(entry.get("reason") or ""),
        approved_by=approved_by,
        source=source,
        position=position,
        problems=tuple(problems),
    )


def _is_calendar_date(value: Any) -> bool:
    # YAML loads unquoted dates as date objects
    return isinstance(value, date) and not isinstance(value, datetime)


def _required_str(entry: Mapping[str, Any], key: str, problems: List[str]) -> str:
    value = entry.get(key)
    if value is None:
        problems.append(f"missing '{key}'")
        return ""
    if not isinstance(value, str) or not value.strip():
        problems.append(f"'{key}' must be a non-empty string")
        return str(value)
    return value.strip()


__all__ = ["ExceptionDocumentError", "ExceptionStore", "parse_records"]
