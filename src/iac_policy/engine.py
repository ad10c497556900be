"""Drive the rule catalog over a change-set."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from .aggregation import aggregate
from .exceptions import ExceptionResolver, ExceptionStore
from .models import ChangeSet, EvaluationResult, Finding
from .rules import PolicySettings, RuleCatalog, RuleContext, default_catalog

logger = logging.getLogger(__name__)


class EvaluationEngine:
    """Evaluate every enabled rule and aggregate the findings.

    The engine holds no per-run state: each call to :meth:`evaluate` builds a
    fresh resolver over the supplied store, so repeated calls with the same
    inputs and reference time produce identical results.
    """

    def __init__(
        self,
        catalog: RuleCatalog | None = None,
        settings: PolicySettings | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else default_catalog()
        self.settings = settings if settings is not None else PolicySettings()

    def evaluate(
        self,
        change_set: ChangeSet,
        store: ExceptionStore,
        *,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        """Return the aggregated result for ``change_set`` under ``store``."""

        resolver = ExceptionResolver(store, now=now)
        context = RuleContext(change_set=change_set, resolver=resolver, settings=self.settings)

        findings: List[Finding] = []
        for definition in self.catalog.enabled():
            rule_findings = definition.evaluate(context)
            logger.debug("Rule %s produced %d findings", definition.id, len(rule_findings))
            findings.extend(rule_findings)

        result = aggregate(findings)
        logger.info(
            "Evaluated %d resource changes against %d rules: %s (%d blocking, %d advisory)",
            len(change_set),
            len(self.catalog.enabled()),
            result.verdict.value,
            len(result.blocking),
            len(result.advisory),
        )
        return result


def evaluate(
    change_set: ChangeSet,
    store: ExceptionStore,
    *,
    now: Optional[datetime] = None,
) -> EvaluationResult:
    """Evaluate with the default catalog and settings."""

    return EvaluationEngine().evaluate(change_set, store, now=now)


__all__ = ["EvaluationEngine", "evaluate"]
