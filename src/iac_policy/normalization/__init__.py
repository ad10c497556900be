"""Plan normalization helpers."""

from .change_set_normalizer import ChangeSetError, ChangeSetNormalizer

__all__ = ["ChangeSetError", "ChangeSetNormalizer"]
