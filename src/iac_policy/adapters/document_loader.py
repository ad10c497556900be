from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, List

import yaml

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


class DocumentLoaderError(RuntimeError):
    """Exception raised when a plan or exception document cannot be read."""


class DocumentLoader:
    """Load plan and exception documents from artifacts on disk."""

    def __init__(
        self,
        working_dir: str | os.PathLike[str] = ".",
        *,
        terraform_bin: str = "terraform",
    ) -> None:
        self.working_dir = Path(working_dir).resolve()
        self.terraform_bin = terraform_bin

    def load_plan(
        self,
        plan_json_path: str | os.PathLike[str] | None = None,
        plan_file_path: str | os.PathLike[str] | None = None,
    ) -> Any:
        """Load plan data from a JSON artifact or a saved binary plan."""

        if plan_json_path:
            return self._load_json_artifact(Path(plan_json_path).resolve())

        if plan_file_path:
            return self._load_plan_file(Path(plan_file_path).resolve())

        raise DocumentLoaderError("A plan JSON artifact or a saved plan file is required")

    def load_exceptions(self, path: str | os.PathLike[str] | None) -> Any:
        """Return a parsed exception document, or ``None`` when it does not exist."""

        if path is None:
            return None

        resolved = Path(path).resolve()
        if not resolved.exists():
            logger.info("Exception document %s not found; treating it as empty", resolved)
            return None

        if resolved.suffix.lower() in _YAML_SUFFIXES:
            return self._load_yaml_artifact(resolved)
        return self._load_json_artifact(resolved)

    # Artifact ingestion helpers -------------------------------------------------
    def _load_json_artifact(self, path: Path) -> Any:
        if not path.exists():
            raise DocumentLoaderError(f"JSON artifact not found: {path}")

        content = self._read_text(path)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise DocumentLoaderError(f"Invalid JSON in artifact: {path}") from exc

        logger.info("Loaded %s", path)
        return data

    def _load_yaml_artifact(self, path: Path) -> Any:
        content = self._read_text(path)
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise DocumentLoaderError(f"Invalid YAML in artifact: {path}") from exc

        logger.info("Loaded %s", path)
        return data

    def _read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentLoaderError(f"Artifact is not valid UTF-8: {path}") from exc
        except OSError as exc:
            raise DocumentLoaderError(f"Failed to read artifact {path}: {exc}") from exc

    def _load_plan_file(self, path: Path) -> Any:
        if not path.exists():
            raise DocumentLoaderError(f"Terraform plan file not found: {path}")

        completed = self._run_command(
            [self.terraform_bin, "show", "-json", str(path)], cwd=self.working_dir
        )
        return self._parse_command_output(completed.stdout)

    def _parse_command_output(self, output: str) -> Any:
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise DocumentLoaderError("Command output was not valid JSON") from exc

    # Command runner -------------------------------------------------------------
    def _run_command(self, args: List[str], *, cwd: Path) -> subprocess.CompletedProcess[str]:
        """Run ``args`` in ``cwd`` and return the captured output."""

        try:
            return subprocess.run(args, cwd=cwd, check=True, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise DocumentLoaderError(f"Executable not found: {args[0]}") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip().splitlines()
            message = f"Command '{' '.join(args)}' failed with exit code {exc.returncode}"
            if detail:
                message = f"{message}: {detail[-1]}"
            raise DocumentLoaderError(message) from exc


__all__ = ["DocumentLoader", "DocumentLoaderError"]
