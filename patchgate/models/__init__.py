"""Database models."""

from patchgate.models.evaluation import PatchEvaluation
from patchgate.models.investigation import Investigation

__all__ = ["PatchEvaluation", "Investigation"]
