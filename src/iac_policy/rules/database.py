"""Database rules: encryption, exposure, recovery and patching."""

from __future__ import annotations

from typing import Iterator

from ..models import Severity
from .attributes import as_number, is_blank, is_false, is_true
from .base import Domain, RuleContext, Violation, rule

DATABASE_TYPES = ("aws_db_instance", "aws_rds_cluster")


@rule(
    "require_rds_encryption",
    domain=Domain.DATABASE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-28",
)
def require_rds_encryption(context: RuleContext) -> Iterator[Violation]:
    """Database storage must be encrypted at rest."""

    for change in context.change_set.in_scope(*DATABASE_TYPES):
        if is_false(change.attribute("storage_encrypted")):
            yield Violation(change.address, f"{change.address} must set storage_encrypted = true")


@rule(
    "require_rds_kms_key",
    domain=Domain.DATABASE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-12",
)
def require_rds_kms_key(context: RuleContext) -> Iterator[Violation]:
    """Encrypted databases must use a customer-managed KMS key."""

    for change in context.change_set.in_scope(*DATABASE_TYPES):
        if not is_true(change.attribute("storage_encrypted")):
            continue
        if is_blank(change.attribute("kms_key_id")):
            yield Violation(
                change.address, f"{change.address} is encrypted but does not specify kms_key_id"
            )


@rule(
    "no_public_database",
    domain=Domain.DATABASE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-7",
)
def no_public_database(context: RuleContext) -> Iterator[Violation]:
    """Database instances must not be publicly accessible."""

    for change in context.change_set.in_scope("aws_db_instance"):
        if is_true(change.attribute("publicly_accessible")):
            yield Violation(change.address, f"{change.address} is publicly accessible")


@rule(
    "require_backup_retention",
    domain=Domain.DATABASE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 CP-9",
)
def require_backup_retention(context: RuleContext) -> Iterator[Violation]:
    """Databases must retain automated backups for the minimum period."""

    minimum = context.settings.min_backup_retention_days
    for change in context.change_set.in_scope(*DATABASE_TYPES):
        retention = as_number(change.attribute("backup_retention_period"))
        if retention is None:
            continue
        if retention < minimum:
            yield Violation(
                change.address,
                f"{change.address} backup_retention_period is {retention:g} days; "
                f"minimum is {minimum}",
            )


@rule(
    "require_multi_az",
    domain=Domain.DATABASE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 CP-10",
)
def require_multi_az(context: RuleContext) -> Iterator[Violation]:
    """Production database instances must be deployed across availability zones."""

    production = {value.lower() for value in context.settings.production_environments}
    for change in context.change_set.in_scope("aws_db_instance"):
        environment = (change.tags or {}).get("Environment")
        if not isinstance(environment, str) or environment.lower() not in production:
            continue
        if not is_true(change.attribute("multi_az")):
            yield Violation(
                change.address,
                f"{change.address} is tagged Environment={environment} "
                "and must set multi_az = true",
            )


@rule(
    "require_auto_minor_upgrade",
    domain=Domain.DATABASE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 SI-2",
)
def require_auto_minor_upgrade(context: RuleContext) -> Iterator[Violation]:
    """Databases should apply minor engine upgrades automatically."""

    for change in context.change_set.in_scope("aws_db_instance"):
        if is_false(change.attribute("auto_minor_version_upgrade")):
            yield Violation(
                change.address, f"{change.address} disables auto_minor_version_upgrade"
            )


@rule(
    "require_secure_transport",
    domain=Domain.DATABASE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 SC-8",
)
def require_secure_transport(context: RuleContext) -> Iterator[Violation]:
    """Parameter groups should force encrypted client connections."""

    parameters = context.settings.transport_parameters
    for change in context.change_set.in_scope("aws_db_parameter_group"):
        family = change.attribute("family")
        if not isinstance(family, str):
            continue
        required = next(
            (param for prefix, param in parameters.items() if family.startswith(prefix)),
            None,
        )
        if required is None:
            continue

        configured = {
            str(entry.get("name")): str(entry.get("value"))
            for entry in change.blocks("parameter")
        }
        if configured.get(required.name) != required.value:
            yield Violation(
                change.address,
                f"{change.address} should set parameter {required.name} = {required.value}",
            )


RULES = (
    require_rds_encryption,
    require_rds_kms_key,
    no_public_database,
    require_backup_retention,
    require_multi_az,
    require_auto_minor_upgrade,
    require_secure_transport,
)
