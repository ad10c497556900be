"""Storage rules: volume and bucket encryption plus bucket companion resources."""

from __future__ import annotations

from typing import Iterator

from ..models import WILDCARD, ChangeAction, Severity
from .attributes import is_blank, is_false, is_true
from .base import Domain, RuleContext, Violation, rule

BUCKET = "aws_s3_bucket"
SSE_CONFIGURATION = "aws_s3_bucket_server_side_encryption_configuration"


def _missing_companion(context: RuleContext, companion: str, what: str) -> Iterator[Violation]:
    buckets = context.change_set.count_in_scope(BUCKET)
    survivors = [
        change
        for change in context.change_set.of_type(companion)
        if ChangeAction.DELETE not in change.actions or ChangeAction.CREATE in change.actions
    ]
    if buckets and not survivors:
        yield Violation(
            WILDCARD,
            f"{buckets} {BUCKET} resource(s) planned but no {companion} resource defines {what}",
        )


@rule(
    "require_ebs_encryption",
    domain=Domain.STORAGE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-28",
)
def require_ebs_encryption(context: RuleContext) -> Iterator[Violation]:
    """EBS volumes must be encrypted."""

    for change in context.change_set.in_scope("aws_ebs_volume"):
        if is_false(change.attribute("encrypted")):
            yield Violation(change.address, f"{change.address} must set encrypted = true")


@rule(
    "require_ebs_kms_key",
    domain=Domain.STORAGE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-12",
)
def require_ebs_kms_key(context: RuleContext) -> Iterator[Violation]:
    """Encrypted EBS volumes must use a customer-managed KMS key."""

    for change in context.change_set.in_scope("aws_ebs_volume"):
        if is_true(change.attribute("encrypted")) and is_blank(change.attribute("kms_key_id")):
            yield Violation(
                change.address, f"{change.address} is encrypted but does not specify kms_key_id"
            )


@rule(
    "require_s3_kms_encryption",
    domain=Domain.STORAGE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-12",
)
def require_s3_kms_encryption(context: RuleContext) -> Iterator[Violation]:
    """Bucket encryption configurations must use KMS."""

    for change in context.change_set.in_scope(SSE_CONFIGURATION):
        for rule_block in change.blocks("rule"):
            defaults = rule_block.get("apply_server_side_encryption_by_default") or []
            if isinstance(defaults, dict):
                defaults = [defaults]
            for default in defaults:
                algorithm = default.get("sse_algorithm") if isinstance(default, dict) else None
                if algorithm is None:
                    continue
                if algorithm != "aws:kms":
                    yield Violation(
                        change.address,
                        f"{change.address} uses sse_algorithm '{algorithm}'; "
                        "'aws:kms' is required",
                    )


@rule(
    "require_s3_encryption_config",
    domain=Domain.STORAGE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-28",
)
def require_s3_encryption_config(context: RuleContext) -> Iterator[Violation]:
    """Planned buckets need a server-side encryption configuration."""

    yield from _missing_companion(context, SSE_CONFIGURATION, "server-side encryption")


@rule(
    "require_s3_public_access_block",
    domain=Domain.STORAGE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 AC-3",
)
def require_s3_public_access_block(context: RuleContext) -> Iterator[Violation]:
    """Planned buckets need a public access block."""

    yield from _missing_companion(
        context, "aws_s3_bucket_public_access_block", "public access blocking"
    )


@rule(
    "require_s3_versioning",
    domain=Domain.STORAGE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 CP-9",
)
def require_s3_versioning(context: RuleContext) -> Iterator[Violation]:
    """Planned buckets should enable versioning."""

    yield from _missing_companion(context, "aws_s3_bucket_versioning", "versioning")


RULES = (
    require_ebs_encryption,
    require_ebs_kms_key,
    require_s3_kms_encryption,
    require_s3_encryption_config,
    require_s3_public_access_block,
    require_s3_versioning,
)
