"""Rules that apply across resource domains: tagging, regions and naming."""

from __future__ import annotations

from typing import Iterator

from ..models import Severity
from .attributes import is_blank
from .base import Domain, RuleContext, Violation, rule


@rule(
    "require_tags",
    domain=Domain.GENERAL,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 CM-8",
)
def require_tags(context: RuleContext) -> Iterator[Violation]:
    """Taggable resources must carry every required tag with a non-empty value."""

    settings = context.settings
    for change in context.change_set.in_scope(*settings.taggable_types):
        tags = change.tags
        for key in settings.required_tags:
            if tags is None:
                yield Violation(
                    change.address,
                    f"{change.address} has no tags; required tag '{key}' is missing",
                )
            elif is_blank(tags.get(key)):
                yield Violation(
                    change.address,
                    f"{change.address} is missing required tag '{key}'",
                )


@rule(
    "allowed_regions",
    domain=Domain.GENERAL,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SA-9(5)",
)
def allowed_regions(context: RuleContext) -> Iterator[Violation]:
    """Resources and provider blocks must deploy to an approved region."""

    allowed = set(context.settings.allowed_regions)
    approved = ", ".join(context.settings.allowed_regions)

    for change in context.change_set.in_scope():
        region = change.attribute("region")
        if not isinstance(region, str) or not region:
            continue
        if region not in allowed:
            yield Violation(
                change.address,
                f"{change.address} uses region '{region}'; allowed regions are {approved}",
            )

    # An explicitly empty provider region is still a violation.
    for provider in context.change_set.provider_configs:
        if provider.region is None:
            continue
        if provider.region not in allowed:
            yield Violation(
                f"provider.{provider.key}",
                f"Provider '{provider.key}' is configured for region '{provider.region}'; "
                f"allowed regions are {approved}",
            )


@rule(
    "naming_prefix",
    domain=Domain.GENERAL,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 CM-8",
)
def naming_prefix(context: RuleContext) -> Iterator[Violation]:
    """The Name tag should start with the organizational prefix."""

    prefix = context.settings.name_prefix
    for change in context.change_set.in_scope(*context.settings.taggable_types):
        tags = change.tags or {}
        name = tags.get("Name")
        if not isinstance(name, str) or not name:
            continue
        if not name.startswith(prefix):
            yield Violation(
                change.address,
                f"{change.address} Name tag '{name}' should start with '{prefix}'",
            )


RULES = (require_tags, allowed_regions, naming_prefix)
