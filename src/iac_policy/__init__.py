"""Policy gate for Terraform change-sets with tiered, expiring exceptions."""

from .aggregation import aggregate
from .engine import EvaluationEngine, evaluate

__all__ = ["EvaluationEngine", "aggregate", "evaluate"]
