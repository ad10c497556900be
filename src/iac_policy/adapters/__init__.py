"""Adapter layer package for reading plan and exception documents."""

from .document_loader import DocumentLoader, DocumentLoaderError

__all__ = [
    "DocumentLoader",
    "DocumentLoaderError",
]
