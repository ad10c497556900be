"""Exception (waiver) storage and resolution."""

from ..models import WILDCARD
from .resolver import ExceptionResolver
from .store import ExceptionDocumentError, ExceptionStore, parse_records

__all__ = [
    "WILDCARD",
    "ExceptionDocumentError",
    "ExceptionResolver",
    "ExceptionStore",
    "parse_records",
]
