"""The ordered catalog of rule definitions."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from . import compute, database, general, hygiene, storage
from .base import Domain, RuleDefinition
from .manifest_loader import RuleOverride

logger = logging.getLogger(__name__)

DEFAULT_RULES: Sequence[RuleDefinition] = (
    *general.RULES,
    *compute.RULES,
    *database.RULES,
    *storage.RULES,
    *hygiene.RULES,
)


class RuleCatalog:
    """Fixed, ordered collection of rules. Order defines report order."""

    def __init__(self, rules: Iterable[RuleDefinition] = DEFAULT_RULES) -> None:
        self._rules: List[RuleDefinition] = list(rules)
        self._by_id: Dict[str, RuleDefinition] = {}
        for definition in self._rules:
            if definition.id in self._by_id:
                raise ValueError(f"Duplicate rule id in catalog: {definition.id}")
            self._by_id[definition.id] = definition

    def __iter__(self) -> Iterator[RuleDefinition]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def get(self, rule_id: str) -> Optional[RuleDefinition]:
        return self._by_id.get(rule_id)

    def ids(self) -> List[str]:
        return [definition.id for definition in self._rules]

    def enabled(self) -> List[RuleDefinition]:
        return [definition for definition in self._rules if definition.enabled]

    def by_domain(self, domain: Domain) -> List[RuleDefinition]:
        return [definition for definition in self._rules if definition.domain is domain]

    def with_overrides(self, overrides: Mapping[str, RuleOverride]) -> "RuleCatalog":
        """Return a catalog with manifest toggles and severity overrides applied."""

        for rule_id in overrides:
            if rule_id not in self._by_id:
                logger.warning("Ignoring manifest override for unknown rule '%s'", rule_id)

        adjusted = []
        for definition in self._rules:
            override = overrides.get(definition.id)
            if override is not None and _is_fixed(definition):
                logger.warning(
                    "Ignoring manifest override for '%s'; exception hygiene checks are fixed",
                    definition.id,
                )
            elif override is not None:
                definition = definition.with_overrides(
                    enabled=override.enabled, severity=override.severity
                )
            adjusted.append(definition)
        return RuleCatalog(adjusted)


def _is_fixed(definition: RuleDefinition) -> bool:
    return definition.domain is Domain.HYGIENE or not definition.waivable


def default_catalog() -> RuleCatalog:
    return RuleCatalog(DEFAULT_RULES)
