"""Data models for change-sets, exception records and policy findings."""

from .exception import ExceptionRecord, ExceptionTier, parse_expiry
from .finding import WILDCARD, EvaluationResult, Finding, Severity, Verdict
from .resource import ChangeAction, ChangeSet, ProviderConfig, ResourceChange

__all__ = [
    "WILDCARD",
    "ChangeAction",
    "ChangeSet",
    "EvaluationResult",
    "ExceptionRecord",
    "ExceptionTier",
    "Finding",
    "ProviderConfig",
    "ResourceChange",
    "Severity",
    "Verdict",
    "parse_expiry",
]
