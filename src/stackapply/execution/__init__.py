"""Executor - apply plans against a provider."""

from .models import ActionOutcome, ApplyReport, Failure, Result, Success
from .executor import Executor
from .refresh import refresh

__all__ = ["ActionOutcome", "ApplyReport", "Executor", "Failure", "Result", "Success", "refresh"]
