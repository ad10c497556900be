"""Answer whether an active exception covers a rule for a given target."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..models import WILDCARD, ExceptionRecord, ExceptionTier
from .store import ExceptionStore

logger = logging.getLogger(__name__)


class ExceptionResolver:
    """Resolve exceptions against a fixed store snapshot and reference time.

    Lookups are checked in precedence order: organization wildcard,
    organization target, environment wildcard, environment target. Any active
    match suppresses; there is no deny override.
    """

    def __init__(self, store: ExceptionStore, now: Optional[datetime] = None) -> None:
        self._store = store
        self._now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        self._index: Dict[ExceptionTier, Dict[Tuple[str, str], List[ExceptionRecord]]] = {}
        for tier in ExceptionTier:
            table: Dict[Tuple[str, str], List[ExceptionRecord]] = {}
            for record in store.tier(tier):
                table.setdefault((record.rule, record.resource), []).append(record)
            self._index[tier] = table
        self._answers: Dict[Tuple[str, str], Optional[ExceptionRecord]] = {}

    @property
    def store(self) -> ExceptionStore:
        return self._store

    @property
    def now(self) -> datetime:
        return self._now

    def is_excepted(self, rule_id: str, target_id: str) -> bool:
        """Return ``True`` when an active exception covers ``rule_id`` for ``target_id``."""

        return self.matching_record(rule_id, target_id) is not None

    def matching_record(self, rule_id: str, target_id: str) -> Optional[ExceptionRecord]:
        """Return the first active record covering the pair, in precedence order."""

        key = (rule_id, target_id)
        if key not in self._answers:
            self._answers[key] = self._resolve(rule_id, target_id)
        return self._answers[key]

    # ------------------------------------------------------------------
    def _resolve(self, rule_id: str, target_id: str) -> Optional[ExceptionRecord]:
        scopes = [WILDCARD] if target_id == WILDCARD else [WILDCARD, target_id]
        for tier in ExceptionTier:
            table = self._index[tier]
            for scope in scopes:
                for record in table.get((rule_id, scope), ()):
                    if record.is_active(self._now):
                        logger.debug(
                            "Rule %s on %s excepted by %s record %s (scope %s)",
                            rule_id,
                            target_id,
                            tier.value,
                            record.label,
                            scope,
                        )
                        return record
        return None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


__all__ = ["ExceptionResolver"]
