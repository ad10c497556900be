"""Orchestration layer used by the CLI to execute a policy evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from .adapters import DocumentLoader, DocumentLoaderError
from .engine import EvaluationEngine
from .exceptions import ExceptionDocumentError, ExceptionStore
from .models import EvaluationResult
from .normalization import ChangeSetError, ChangeSetNormalizer
from .rules import ManifestError, ManifestLoader, RuleCatalog, default_catalog

DEFAULT_ORGANIZATION_EXCEPTIONS = Path("exceptions") / "organization.json"
DEFAULT_ENVIRONMENT_EXCEPTIONS = Path("exceptions") / "environment.json"

DocumentLoaderFactory = Callable[..., DocumentLoader]


@dataclass(slots=True)
class ValidationResult:
    """Result returned by :class:`ComplianceService` runs."""

    evaluation: EvaluationResult
    metadata: Mapping[str, Any]


class ComplianceService:
    """High level service responsible for document ingestion and evaluation."""

    def __init__(
        self,
        *,
        document_loader_factory: DocumentLoaderFactory | None = None,
        normalizer: ChangeSetNormalizer | None = None,
        manifest_loader: ManifestLoader | None = None,
        catalog: RuleCatalog | None = None,
    ) -> None:
        self._document_loader_factory = document_loader_factory or DocumentLoader
        self._normalizer = normalizer or ChangeSetNormalizer()
        self._manifest_loader = manifest_loader or ManifestLoader()
        self._catalog = catalog if catalog is not None else default_catalog()

    # ------------------------------------------------------------------
    def validate(
        self,
        working_dir: Path,
        *,
        plan_json_path: Path | None = None,
        plan_file_path: Path | None = None,
        organization_exceptions: Path | None = None,
        environment_exceptions: Path | None = None,
        manifests: Sequence[str] | None = None,
        terraform_bin: str = "terraform",
        now: datetime | None = None,
    ) -> ValidationResult:
        """Execute an evaluation run and return the verdict with its findings."""

        moment = now or datetime.now(timezone.utc)
        loader = self._document_loader_factory(working_dir=working_dir, terraform_bin=terraform_bin)

        if plan_json_path is None and plan_file_path is None:
            plan_json_path = working_dir / "plan.json"

        plan = loader.load_plan(plan_json_path=plan_json_path, plan_file_path=plan_file_path)
        change_set = self._normalizer.normalize(plan)

        organization_path = organization_exceptions or working_dir / DEFAULT_ORGANIZATION_EXCEPTIONS
        environment_path = environment_exceptions or working_dir / DEFAULT_ENVIRONMENT_EXCEPTIONS
        store = ExceptionStore.from_documents(
            organization=loader.load_exceptions(organization_path),
            environment=loader.load_exceptions(environment_path),
            organization_source=str(organization_path),
            environment_source=str(environment_path),
        )

        manifest = self._manifest_loader.load(manifests)
        engine = EvaluationEngine(
            catalog=self._catalog.with_overrides(manifest.overrides),
            settings=manifest.settings,
        )
        evaluation = engine.evaluate(change_set, store, now=moment)

        metadata: dict[str, Any] = {
            "working_dir": str(working_dir),
            "resource_count": len(change_set),
            "in_scope_count": change_set.count_in_scope(),
            "exception_counts": store.counts(),
            "evaluated_at": moment.isoformat(),
        }

        return ValidationResult(evaluation=evaluation, metadata=metadata)


DOCUMENT_ERRORS = (DocumentLoaderError, ChangeSetError, ExceptionDocumentError, ManifestError)

__all__ = [
    "DOCUMENT_ERRORS",
    "ComplianceService",
    "ValidationResult",
    "DocumentLoaderError",
    "ChangeSetError",
    "ExceptionDocumentError",
    "ManifestError",
]
