"""Rule definition primitives shared by every rule domain."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, List

from ..exceptions import ExceptionResolver
from ..models import WILDCARD, ChangeSet, Finding, Severity

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .settings import PolicySettings


class Domain(str, Enum):
    """Resource domain used to group rules in the catalog."""

    GENERAL = "general"
    COMPUTE = "compute"
    DATABASE = "database"
    STORAGE = "storage"
    HYGIENE = "hygiene"


@dataclass(frozen=True, slots=True)
class Violation:
    """A raw rule hit before exception filtering."""

    target: str
    message: str


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Everything a rule may read during one evaluation run."""

    change_set: ChangeSet
    resolver: ExceptionResolver
    settings: "PolicySettings"


Check = Callable[[RuleContext], Iterable[Violation]]


@dataclass(frozen=True, slots=True)
class RuleDefinition:
    """A named predicate over the change-set."""

    id: str
    domain: Domain
    severity: Severity
    compliance_ref: str
    check: Check = field(repr=False, compare=False)
    description: str = ""
    enabled: bool = True
    waivable: bool = True

    def evaluate(self, context: RuleContext) -> List[Finding]:
        """Run the check and return findings not covered by an active exception."""

        findings: List[Finding] = []
        for violation in self.check(context):
            if self.waivable and context.resolver.is_excepted(self.id, violation.target):
                continue
            findings.append(
                Finding(
                    rule_id=self.id,
                    severity=self.severity,
                    message=self._format(violation.message),
                    resource_address=violation.target,
                    compliance_ref=self.compliance_ref,
                )
            )
        return findings

    def with_overrides(
        self, *, enabled: bool | None = None, severity: Severity | None = None
    ) -> "RuleDefinition":
        changes = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if severity is not None:
            changes["severity"] = severity
        return replace(self, **changes) if changes else self

    def _format(self, message: str) -> str:
        if not self.compliance_ref:
            return message
        return f"{message} [{self.compliance_ref}]"


def rule(
    rule_id: str,
    *,
    domain: Domain,
    severity: Severity,
    compliance_ref: str,
    description: str = "",
    waivable: bool = True,
) -> Callable[[Check], RuleDefinition]:
    """Decorator turning a check function into a :class:`RuleDefinition`."""

    def decorator(check: Check) -> RuleDefinition:
        return RuleDefinition(
            id=rule_id,
            domain=domain,
            severity=severity,
            compliance_ref=compliance_ref,
            check=check,
            description=description or _summary(check),
            waivable=waivable,
        )

    return decorator


def _summary(check: Check) -> str:
    lines = (check.__doc__ or "").strip().splitlines()
    return lines[0] if lines else ""


__all__ = ["WILDCARD", "Check", "Domain", "RuleContext", "RuleDefinition", "Violation", "rule"]
