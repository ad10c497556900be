"""Conversion helpers that turn raw Terraform plan JSON into a :class:`ChangeSet`."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping

from ..models import ChangeAction, ChangeSet, ProviderConfig, ResourceChange

logger = logging.getLogger(__name__)

_KNOWN_ACTIONS = {action.value: action for action in ChangeAction}


class ChangeSetError(RuntimeError):
    """Raised when a plan document is structurally invalid."""


class ChangeSetNormalizer:
    """Normalize Terraform plan JSON into a :class:`ChangeSet`."""

    def normalize(self, plan: Any) -> ChangeSet:
        """Return the change-set for the supplied plan structure."""

        if not isinstance(plan, Mapping):
            raise ChangeSetError("Plan document must be a JSON object")

        if "modules" in plan and "resource_changes" not in plan:
            return self._normalize_modules(plan["modules"])

        return ChangeSet(
            resource_changes=tuple(self._resource_changes(plan)),
            provider_configs=tuple(self._provider_configs(plan)),
            format_version=_optional_str(plan.get("format_version")),
            terraform_version=_optional_str(plan.get("terraform_version")),
        )

    # ------------------------------------------------------------------
    def _normalize_modules(self, modules: Any) -> ChangeSet:
        if not isinstance(modules, list):
            raise ChangeSetError("'modules' must be a list of module plans")

        changes: List[ResourceChange] = []
        providers: List[ProviderConfig] = []
        for index, entry in enumerate(modules):
            if not isinstance(entry, Mapping) or not isinstance(entry.get("plan"), Mapping):
                raise ChangeSetError(f"modules[{index}] must be an object with a 'plan' object")
            change_set = self.normalize(entry["plan"])
            changes.extend(change_set.resource_changes)
            providers.extend(change_set.provider_configs)

        return ChangeSet(resource_changes=tuple(changes), provider_configs=tuple(providers))

    def _resource_changes(self, plan: Mapping[str, Any]) -> Iterable[ResourceChange]:
        resource_changes = plan.get("resource_changes")
        if resource_changes is None:
            return []
        if not isinstance(resource_changes, list):
            raise ChangeSetError("'resource_changes' must be a list")

        normalized: List[ResourceChange] = []
        for index, change in enumerate(resource_changes):
            if not isinstance(change, Mapping):
                raise ChangeSetError(f"resource_changes[{index}] must be an object")
            if change.get("mode", "managed") != "managed":
                continue
            normalized.append(self._normalize_change(index, change))
        return normalized

    def _normalize_change(self, index: int, change: Mapping[str, Any]) -> ResourceChange:
        address = change.get("address")
        resource_type = change.get("type")
        if not isinstance(address, str) or not address:
            raise ChangeSetError(f"resource_changes[{index}] is missing 'address'")
        if not isinstance(resource_type, str) or not resource_type:
            raise ChangeSetError(f"{address} is missing 'type'")

        body = change.get("change") or {}
        if not isinstance(body, Mapping):
            raise ChangeSetError(f"{address}: 'change' must be an object")

        return ResourceChange(
            address=address,
            type=resource_type,
            name=_optional_field(address, change, "name") or "",
            module_path=self._module_path(address, change.get("module_address")),
            provider_name=_optional_field(address, change, "provider_name"),
            mode="managed",
            actions=self._normalize_actions(address, body.get("actions", [])),
            before=self._state(address, "before", body.get("before")),
            after=self._state(address, "after", body.get("after")),
        )

    def _module_path(self, address: str, module_address: Any) -> List[str]:
        if module_address is None or module_address == "":
            return []
        if not isinstance(module_address, str):
            raise ChangeSetError(f"{address}: 'module_address' must be a string")

        parts: List[str] = []
        for segment in module_address.split("."):
            if segment == "module":
                continue
            parts.append(segment)
        return parts

    def _normalize_actions(self, address: str, actions: Any) -> frozenset[ChangeAction]:
        if not isinstance(actions, list):
            raise ChangeSetError(f"{address}: 'actions' must be a list")

        normalized = set()
        for action in actions:
            if not isinstance(action, str) or action not in _KNOWN_ACTIONS:
                raise ChangeSetError(f"{address}: unknown action {action!r}")
            normalized.add(_KNOWN_ACTIONS[action])
        return frozenset(normalized)

    def _state(self, address: str, key: str, value: Any) -> Dict[str, Any] | None:
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise ChangeSetError(f"{address}: '{key}' must be an object or null")
        return dict(value)

    # Provider configuration -------------------------------------------------
    def _provider_configs(self, plan: Mapping[str, Any]) -> Iterable[ProviderConfig]:
        configuration = plan.get("configuration") or {}
        if not isinstance(configuration, Mapping):
            raise ChangeSetError("'configuration' must be an object")

        provider_config = configuration.get("provider_config") or {}
        if not isinstance(provider_config, Mapping):
            raise ChangeSetError("'configuration.provider_config' must be an object")

        providers: List[ProviderConfig] = []
        for key, block in provider_config.items():
            if not isinstance(block, Mapping):
                raise ChangeSetError(f"provider_config[{key!r}] must be an object")
            expressions = block.get("expressions") or {}
            if not isinstance(expressions, Mapping):
                expressions = {}
            providers.append(
                ProviderConfig(
                    key=str(key),
                    name=str(block.get("name", key)),
                    alias=_optional_str(block.get("alias")),
                    region=_constant_value(expressions.get("region")),
                    expressions=dict(expressions),
                )
            )

        logger.debug("Normalized %d provider configuration blocks", len(providers))
        return providers


def _constant_value(expression: Any) -> str | None:
    """Return the literal value of a configuration expression.

    Expressions referencing variables carry no ``constant_value`` and yield ``None``.
    """

    if not isinstance(expression, Mapping) or "constant_value" not in expression:
        return None
    value = expression["constant_value"]
    if value is None:
        return None
    return str(value)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _optional_field(address: str, change: Mapping[str, Any], key: str) -> str | None:
    value = change.get(key)
    if value is not None and not isinstance(value, str):
        raise ChangeSetError(f"{address}: '{key}' must be a string")
    return value


__all__ = ["ChangeSetError", "ChangeSetNormalizer"]
