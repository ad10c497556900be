"""Command-line interface package for the policy gate."""

from .app import (
    ValidationReport,
    build_parser,
    main,
    render_rules,
    render_table,
    run,
)

__all__ = [
    "ValidationReport",
    "build_parser",
    "main",
    "render_rules",
    "render_table",
    "run",
]
