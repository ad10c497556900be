"""Change-set models used by the policy engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple


class ChangeAction(str, Enum):
    """Enumeration of the planned actions for a Terraform resource."""

    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    READ = "read"


_IN_SCOPE_ACTIONS = frozenset({ChangeAction.CREATE, ChangeAction.UPDATE})


@dataclass(slots=True)
class ResourceChange:
    """One proposed mutation of a Terraform managed resource."""

    address: str
    type: str = ""
    name: str = ""
    module_path: List[str] = field(default_factory=list)
    provider_name: Optional[str] = None
    mode: str = "managed"
    actions: FrozenSet[ChangeAction] = frozenset()
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @property
    def in_scope(self) -> bool:
        """Return ``True`` when the change creates or updates the resource."""

        return bool(self.actions & _IN_SCOPE_ACTIONS)

    @property
    def is_module_root(self) -> bool:
        return not self.module_path

    def attribute(self, name: str, default: Any = None) -> Any:
        """Return a planned attribute value, or ``default`` when it is not set."""

        if not self.after:
            return default
        value = self.after.get(name)
        return default if value is None else value

    @property
    def tags(self) -> Optional[Mapping[str, Any]]:
        """Planned tags, or ``None`` when the resource declares no tag map."""

        tags = self.attribute("tags")
        if isinstance(tags, Mapping):
            return tags
        return None

    def block(self, name: str) -> Optional[Mapping[str, Any]]:
        """Return a nested configuration block.

        Plan JSON renders nested blocks as lists; the first element is used.
        Empty lists are reported as ``None``.
        """

        value = self.attribute(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, Mapping):
            return value
        return None

    def blocks(self, name: str) -> List[Mapping[str, Any]]:
        """Return every mapping of a repeated nested block."""

        value = self.attribute(name)
        if isinstance(value, Mapping):
            return [value]
        if isinstance(value, list):
            return [item for item in value if isinstance(item, Mapping)]
        return []


@dataclass(slots=True)
class ProviderConfig:
    """Provider configuration block captured from the plan configuration."""

    key: str
    name: str
    alias: Optional[str] = None
    region: Optional[str] = None
    expressions: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ChangeSet:
    """Immutable view over a complete Terraform plan."""

    resource_changes: Tuple[ResourceChange, ...] = ()
    provider_configs: Tuple[ProviderConfig, ...] = ()
    format_version: Optional[str] = None
    terraform_version: Optional[str] = None

    def __iter__(self) -> Iterator[ResourceChange]:
        return iter(self.resource_changes)

    def __len__(self) -> int:
        return len(self.resource_changes)

    def of_type(self, *types: str) -> List[ResourceChange]:
        """Return all changes whose resource type is one of ``types``."""

        return [change for change in self.resource_changes if change.type in types]

    def in_scope(self, *types: str) -> List[ResourceChange]:
        """Return create/update changes, optionally restricted to ``types``."""

        return [
            change
            for change in self.resource_changes
            if change.in_scope and (not types or change.type in types)
        ]

    def count_in_scope(self, *types: str) -> int:
        return len(self.in_scope(*types))
