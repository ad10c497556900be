"""Finding and evaluation result models shared by the engine and reporting layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence

WILDCARD = "*"


class Severity(str, Enum):
    """Severity levels supported by the policy catalog."""

    BLOCKING = "blocking"
    ADVISORY = "advisory"


class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True, slots=True)
class Finding:
    """A rule violation or advisory that can be reported to users."""

    rule_id: str
    severity: Severity
    message: str
    resource_address: str = WILDCARD
    compliance_ref: str = ""

    @property
    def is_set_wide(self) -> bool:
        """Return ``True`` when the finding concerns the change-set as a whole."""

        return self.resource_address == WILDCARD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "compliance_ref": self.compliance_ref,
            "message": self.message,
            "resource": self.resource_address,
        }


@dataclass(slots=True)
class EvaluationResult:
    """Aggregated outcome of one evaluation run."""

    verdict: Verdict
    findings: List[Finding] = field(default_factory=list)
    blocking: List[Finding] = field(default_factory=list)
    advisory: List[Finding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def rule_ids(self) -> Sequence[str]:
        return [finding.rule_id for finding in self.findings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "summary": {
                "total_findings": len(self.findings),
                "counts": {
                    Severity.BLOCKING.value: len(self.blocking),
                    Severity.ADVISORY.value: len(self.advisory),
                },
            },
            "findings": [finding.to_dict() for finding in self.findings],
        }
