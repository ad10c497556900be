"""Checks over the exception store itself rather than the change-set."""

from __future__ import annotations

from typing import Iterator

from ..models import WILDCARD, ExceptionRecord, Severity
from .base import Domain, RuleContext, Violation, rule


def _describe(record: ExceptionRecord) -> str:
    approver = record.approved_by or "unknown approver"
    return (
        f"{record.tier.value} exception {record.label} for rule "
        f"'{record.rule or '?'}' on '{record.resource or '?'}' (approved by {approver})"
    )


@rule(
    "expired_exception",
    domain=Domain.HYGIENE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 CA-7",
    waivable=False,
)
def expired_exception(context: RuleContext) -> Iterator[Violation]:
    """Expired exceptions should be renewed or removed."""

    now = context.resolver.now
    for record in context.resolver.store.records():
        if record.is_expired(now):
            yield Violation(
                record.resource,
                f"{_describe(record)} expired on {record.expires}; renew or remove it",
            )


@rule(
    "malformed_exception",
    domain=Domain.HYGIENE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 CA-7",
    waivable=False,
)
def malformed_exception(context: RuleContext) -> Iterator[Violation]:
    """Malformed exceptions never apply and should be corrected."""

    for record in context.resolver.store.records():
        if record.malformed:
            yield Violation(
                record.resource or WILDCARD,
                f"{_describe(record)} is malformed and is ignored: {'; '.join(record.problems)}",
            )


RULES = (expired_exception, malformed_exception)
