"""Rule catalog, rule primitives and policy manifest management."""

from .base import Domain, RuleContext, RuleDefinition, Violation, rule
from .catalog import DEFAULT_RULES, RuleCatalog, default_catalog
from .manifest_loader import ManifestError, ManifestLoader, PolicyManifest, RuleOverride
from .settings import PolicySettings, TransportParameter

__all__ = [
    "DEFAULT_RULES",
    "Domain",
    "ManifestError",
    "ManifestLoader",
    "PolicyManifest",
    "PolicySettings",
    "RuleCatalog",
    "RuleContext",
    "RuleDefinition",
    "RuleOverride",
    "TransportParameter",
    "Violation",
    "default_catalog",
    "rule",
]
