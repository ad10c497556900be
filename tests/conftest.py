from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Sequence

import pytest

from iac_policy.exceptions import ExceptionResolver, ExceptionStore
from iac_policy.models import ChangeAction, ChangeSet, Finding, ProviderConfig, ResourceChange
from iac_policy.rules import PolicySettings, RuleContext, RuleDefinition

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_change(
    address: str,
    resource_type: str | None = None,
    after: dict[str, Any] | None = None,
    actions: Sequence[str] = ("create",),
) -> ResourceChange:
    return ResourceChange(
        address=address,
        type=resource_type or address.split(".")[-2],
        name=address.split(".")[-1],
        actions=frozenset(ChangeAction(action) for action in actions),
        before=None,
        after=after,
    )


def make_context(
    changes: Iterable[ResourceChange] = (),
    *,
    providers: Iterable[ProviderConfig] = (),
    store: ExceptionStore | None = None,
    settings: PolicySettings | None = None,
    now: datetime = NOW,
) -> RuleContext:
    return RuleContext(
        change_set=ChangeSet(resource_changes=tuple(changes), provider_configs=tuple(providers)),
        resolver=ExceptionResolver(store or ExceptionStore(), now=now),
        settings=settings or PolicySettings(),
    )


def run_rule(definition: RuleDefinition, *changes: ResourceChange, **kwargs: Any) -> List[Finding]:
    return definition.evaluate(make_context(changes, **kwargs))


@pytest.fixture
def change_factory() -> Callable[..., ResourceChange]:
    return make_change


@pytest.fixture
def rule_runner() -> Callable[..., List[Finding]]:
    return run_rule


@pytest.fixture
def context_factory() -> Callable[..., RuleContext]:
    return make_context
