"""Command-line interface implementation for the policy gate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..models import EvaluationResult, Finding
from ..rules import ManifestError, ManifestLoader, RuleCatalog, default_catalog
from ..service import DOCUMENT_ERRORS, ComplianceService, ValidationResult

MODES = ("enforce", "audit")
FORMATS = ("table", "json")


@dataclass(slots=True)
class ValidationReport:
    """Evaluation result plus contextual metadata, ready for rendering."""

    evaluation: EvaluationResult
    metadata: Mapping[str, Any]

    @property
    def findings(self) -> Sequence[Finding]:
        return self.evaluation.findings

    def to_dict(self) -> dict[str, Any]:
        payload = self.evaluation.to_dict()
        payload["metadata"] = dict(self.metadata)
        return payload


def render_table(report: ValidationReport) -> str:
    """Render findings as a simple text table for terminal output."""

    verdict_line = (
        f"Verdict: {report.evaluation.verdict.value.upper()} "
        f"({len(report.evaluation.blocking)} blocking, "
        f"{len(report.evaluation.advisory)} advisory)"
    )
    if not report.findings:
        return "\n".join(["No findings detected.", verdict_line])

    headers = ("Severity", "Rule ID", "Resource", "Message")
    rows = [headers]
    for finding in report.findings:
        rows.append(
            (
                finding.severity.value,
                finding.rule_id,
                finding.resource_address,
                finding.message,
            )
        )

    lines = _format_rows(rows)
    lines.extend(["", verdict_line])
    return "\n".join(lines)


def render_rules(catalog: RuleCatalog) -> str:
    headers = ("Rule ID", "Domain", "Severity", "Enabled", "Reference")
    rows = [headers]
    for definition in catalog:
        rows.append(
            (
                definition.id,
                definition.domain.value,
                definition.severity.value,
                "yes" if definition.enabled else "no",
                definition.compliance_ref,
            )
        )
    return "\n".join(_format_rows(rows))


def _format_rows(rows: Sequence[Sequence[str]]) -> list[str]:
    widths = [max(len(str(row[idx])) for row in rows) for idx in range(len(rows[0]))]

    def format_row(values: Sequence[str]) -> str:
        return "  ".join(
            str(value).ljust(width) for value, width in zip(values, widths, strict=True)
        ).rstrip()

    lines = [format_row(rows[0])]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))
    return lines


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(prog="iac-policy", description="IaC policy gate CLI")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v for info, -vv for debug).",
    )
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser(
        "validate", help="Evaluate a Terraform plan against the policy catalog."
    )
    validate_parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path.cwd(),
        help="Directory containing plan.json and the exceptions/ folder.",
    )
    plan_source = validate_parser.add_mutually_exclusive_group()
    plan_source.add_argument(
        "--plan-json",
        type=Path,
        default=None,
        help="Path to a Terraform plan exported with `terraform show -json`.",
    )
    plan_source.add_argument(
        "--plan-file",
        type=Path,
        default=None,
        help="Path to a binary Terraform plan file generated via `terraform plan -out`.",
    )
    validate_parser.add_argument(
        "--org-exceptions",
        type=Path,
        default=None,
        help="Organization-wide exception document (default: exceptions/organization.json).",
    )
    validate_parser.add_argument(
        "--env-exceptions",
        type=Path,
        default=None,
        help="Environment-specific exception document (default: exceptions/environment.json).",
    )
    validate_parser.add_argument(
        "--terraform-bin",
        default="terraform",
        help="Name or path of the Terraform executable used to read saved plan files.",
    )
    _add_manifest_argument(validate_parser)
    validate_parser.add_argument(
        "--as-of",
        type=_parse_as_of,
        default=None,
        metavar="YYYY-MM-DD",
        help="Evaluate exception expiry as of the start of this UTC date.",
    )
    validate_parser.add_argument(
        "--mode",
        choices=MODES,
        default="enforce",
        help="In audit mode a failing verdict is reported but the exit code stays 0.",
    )
    validate_parser.add_argument(
        "--format",
        choices=FORMATS,
        default="table",
        help="Output format for evaluation results.",
    )

    rules_parser = subparsers.add_parser("rules", help="List the effective rule catalog.")
    _add_manifest_argument(rules_parser)
    rules_parser.add_argument(
        "--format",
        choices=FORMATS,
        default="table",
        help="Output format for the rule listing.",
    )

    return parser


def _add_manifest_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rule-manifest",
        dest="rule_manifests",
        action="append",
        default=None,
        type=str,
        help="Policy manifest YAML/JSON merged over the baseline settings.",
    )


def _parse_as_of(value: str) -> datetime:
    try:
        day = date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date: {value}") from exc
    return datetime.combine(day, time(0, 0, tzinfo=timezone.utc))


def create_service() -> ComplianceService:
    """Create a compliance service using the packaged catalog and baseline manifest."""

    return ComplianceService(manifest_loader=ManifestLoader(), catalog=default_catalog())


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve(base_dir: Path, path: Path | None) -> Path | None:
    if path is None:
        return None
    candidate = path if path.is_absolute() else base_dir / path
    return candidate.resolve()


def _build_report(result: ValidationResult) -> ValidationReport:
    return ValidationReport(evaluation=result.evaluation, metadata=result.metadata)


def _format_report(
    report: ValidationReport,
    *,
    mode: str,
    output_format: str,
) -> tuple[str, bool]:
    if output_format not in FORMATS:
        raise ValueError("format must be either 'table' or 'json'")

    should_fail = mode == "enforce" and not report.evaluation.passed

    if output_format == "json":
        payload = report.to_dict()
        payload["metadata"]["mode"] = mode
        output = json.dumps(payload, indent=2)
    else:
        output = render_table(report)

    return output, should_fail


def _handle_validate(args: argparse.Namespace) -> int:
    service = create_service()

    working_dir = args.path.resolve()
    try:
        result = service.validate(
            working_dir,
            plan_json_path=_resolve(Path.cwd(), args.plan_json),
            plan_file_path=_resolve(Path.cwd(), args.plan_file),
            organization_exceptions=_resolve(Path.cwd(), args.org_exceptions),
            environment_exceptions=_resolve(Path.cwd(), args.env_exceptions),
            manifests=list(args.rule_manifests or []),
            terraform_bin=args.terraform_bin,
            now=args.as_of,
        )
    except DOCUMENT_ERRORS as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    report = _build_report(result)
    output, should_fail = _format_report(report, mode=args.mode, output_format=args.format)

    print(output)
    return 1 if should_fail else 0


def _handle_rules(args: argparse.Namespace) -> int:
    try:
        manifest = ManifestLoader().load(args.rule_manifests)
    except ManifestError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    catalog = default_catalog().with_overrides(manifest.overrides)
    if args.format == "json":
        payload = [
            {
                "id": definition.id,
                "domain": definition.domain.value,
                "severity": definition.severity.value,
                "enabled": definition.enabled,
                "compliance_ref": definition.compliance_ref,
                "description": definition.description,
            }
            for definition in catalog
        ]
        print(json.dumps(payload, indent=2))
    else:
        print(render_rules(catalog))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "validate":
        return _handle_validate(args)
    if args.command == "rules":
        return _handle_rules(args)

    parser.print_help()
    return 0


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
