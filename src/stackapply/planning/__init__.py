"""Plan engine - ordered create/update/delete actions."""

from .models import ActionType, AttributeChange, Plan, PlannedAction
from .engine import diff

__all__ = ["ActionType", "AttributeChange", "Plan", "PlannedAction", "diff"]
