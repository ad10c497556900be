"""Collapse findings into a verdict."""

from __future__ import annotations

from typing import Iterable

from .models import EvaluationResult, Finding, Severity, Verdict


def aggregate(findings: Iterable[Finding]) -> EvaluationResult:
    """Return the verdict for ``findings``, preserving their order.

    The verdict fails only when at least one blocking finding is present;
    advisories never change it.
    """

    ordered = list(findings)
    blocking = [finding for finding in ordered if finding.severity is Severity.BLOCKING]
    advisory = [finding for finding in ordered if finding.severity is Severity.ADVISORY]
    verdict = Verdict.FAIL if blocking else Verdict.PASS
    return EvaluationResult(verdict=verdict, findings=ordered, blocking=blocking, advisory=advisory)


__all__ = ["aggregate"]
