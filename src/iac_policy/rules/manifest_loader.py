"""Utilities for loading and merging policy manifest files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Sequence

import yaml

from ..models import Severity
from .settings import PolicySettings

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    """Raised when policy manifests cannot be loaded or parsed."""


@dataclass(slots=True)
class RuleOverride:
    """Manifest adjustments for a single rule."""

    enabled: bool | None = None
    severity: Severity | None = None


@dataclass(slots=True)
class PolicyManifest:
    """Effective configuration after merging every manifest."""

    settings: PolicySettings = field(default_factory=PolicySettings)
    overrides: Dict[str, RuleOverride] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)


_DEFAULT_MANIFEST = Path(__file__).resolve().parent / "manifests" / "baseline.yaml"


class ManifestLoader:
    """Load policy manifests and merge them over the packaged baseline."""

    def __init__(self, default_manifests: Sequence[Path | str] | None = None) -> None:
        manifest_paths: List[Path]
        if default_manifests is None:
            manifest_paths = []
            if _DEFAULT_MANIFEST.exists():
                manifest_paths.append(_DEFAULT_MANIFEST)
        else:
            manifest_paths = [Path(path) for path in default_manifests]

        self._default_manifests = manifest_paths

    # ------------------------------------------------------------------
    def load(self, manifests: Sequence[Path | str] | None = None) -> PolicyManifest:
        """Return the merged manifest for the defaults plus ``manifests``.

        Later manifests win: settings keys are replaced wholesale and rule
        overrides are merged per field.
        """

        manifest_paths = [Path(path) for path in self._default_manifests]
        if manifests:
            manifest_paths.extend(Path(path) for path in manifests)

        raw_settings: MutableMapping[str, Any] = {}
        overrides: Dict[str, RuleOverride] = {}
        for manifest_path in manifest_paths:
            data = self._load_manifest(manifest_path)

            settings = data.get("settings")
            if settings is not None:
                if not isinstance(settings, Mapping):
                    raise ManifestError(f"'settings' must be a mapping in {manifest_path}")
                raw_settings.update(settings)

            rules = data.get("rules")
            if rules is not None:
                if not isinstance(rules, Mapping):
                    raise ManifestError(f"'rules' must be a mapping in {manifest_path}")
                self._merge_rules(manifest_path, rules, overrides)

        try:
            policy_settings = PolicySettings.from_mapping(raw_settings)
        except ValueError as exc:
            raise ManifestError(f"Invalid policy settings: {exc}") from exc

        return PolicyManifest(
            settings=policy_settings,
            overrides=overrides,
            sources=[str(path) for path in manifest_paths],
        )

    # ------------------------------------------------------------------
    def _merge_rules(
        self,
        manifest_path: Path,
        rules: Mapping[str, Any],
        overrides: Dict[str, RuleOverride],
    ) -> None:
        for rule_id, config in rules.items():
            if not isinstance(rule_id, str):
                continue
            if not isinstance(config, Mapping):
                raise ManifestError(
                    f"Rule entry '{rule_id}' must be a mapping in {manifest_path}"
                )

            override = overrides.get(rule_id.strip(), RuleOverride())
            if "enabled" in config:
                override.enabled = bool(config["enabled"])

            level = config.get("severity")
            if isinstance(level, Severity):
                override.severity = level
            elif isinstance(level, str):
                try:
                    override.severity = Severity(level.strip().lower())
                except ValueError as exc:
                    raise ManifestError(
                        f"Unknown severity '{level}' for rule '{rule_id}' in {manifest_path}"
                    ) from exc

            overrides[rule_id.strip()] = override

    def _load_manifest(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise ManifestError(f"Policy manifest not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise ManifestError(f"Failed to read policy manifest {path}") from exc

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise ManifestError(f"Invalid YAML in policy manifest {path}") from exc

        if not isinstance(data, Mapping):
            raise ManifestError(f"Policy manifest must be a mapping: {path}")

        logger.debug("Loaded policy manifest %s", path)
        return dict(data)


__all__ = ["ManifestError", "ManifestLoader", "PolicyManifest", "RuleOverride"]
