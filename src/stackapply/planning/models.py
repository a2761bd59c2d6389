"""Pydantic models for plans."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..model.resources import ResourceKind, ResourceSpec, make_address, requires_replacement
from ..state.models import ResourceState


class ActionType(str, Enum):
    """Plan action variants."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "no-op"


class AttributeChange(BaseModel):
    """One attribute difference in an Update."""
    before: Any = Field(None, description="Value recorded in state")
    after: Any = Field(None, description="Desired value (None when known after apply)")
    known_after_apply: bool = Field(default=False, description="Desired value depends on a resource not created yet")


class PlannedAction(BaseModel):
    """
    One step of a plan.

    Create and Noop carry the declared resource, Update also carries a diff,
    Delete carries the recorded state.
    """
    type: ActionType = Field(..., description="Action variant")
    spec: Optional[ResourceSpec] = Field(None, description="Declared resource (Create, Update, Noop)")
    state: Optional[ResourceState] = Field(None, description="Recorded state (Update, Delete, Noop)")
    diff: Dict[str, AttributeChange] = Field(default_factory=dict, description="Attribute changes (Update)")
    waits_for: List[str] = Field(default_factory=list, description="Addresses whose actions must finish first")
    replace: bool = Field(default=False, description="Update changes an identifying attribute and replaces the resource")

    @property
    def kind(self) -> ResourceKind:
        return self.spec.kind if self.spec is not None else self.state.kind

    @property
    def name(self) -> str:
        return self.spec.name if self.spec is not None else self.state.name

    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)

    @property
    def is_mutation(self) -> bool:
        return self.type != ActionType.NOOP

    @classmethod
    def create(cls, spec: ResourceSpec, state: Optional[ResourceState] = None, waits_for: Optional[List[str]] = None) -> "PlannedAction":
        return cls(type=ActionType.CREATE, spec=spec, state=state, waits_for=waits_for or [])

    @classmethod
    def update(cls, spec: ResourceSpec, state: ResourceState, diff: Dict[str, AttributeChange],
               waits_for: Optional[List[str]] = None) -> "PlannedAction":
        return cls(
            type=ActionType.UPDATE,
            spec=spec,
            state=state,
            diff=diff,
            waits_for=waits_for or [],
            replace=requires_replacement(spec.kind, diff),
        )

    @classmethod
    def delete(cls, state: ResourceState, waits_for: Optional[List[str]] = None) -> "PlannedAction":
        return cls(type=ActionType.DELETE, state=state, waits_for=waits_for or [])

    @classmethod
    def noop(cls, spec: ResourceSpec, state: ResourceState, waits_for: Optional[List[str]] = None) -> "PlannedAction":
        return cls(type=ActionType.NOOP, spec=spec, state=state, waits_for=waits_for or [])


class Plan(BaseModel):
    """Ordered actions computed by diffing desired against recorded state. Never persisted."""
    actions: List[PlannedAction] = Field(default_factory=list, description="Actions in execution order")
    destroy: bool = Field(default=False, description="Plan tears everything down")

    def summary(self) -> Dict[str, int]:
        counts = {a.value: 0 for a in ActionType}
        for action in self.actions:
            counts[action.type.value] += 1
        return counts

    @property
    def has_changes(self) -> bool:
        return any(action.is_mutation for action in self.actions)

    def get(self, address: str) -> Optional[PlannedAction]:
        for action in self.actions:
            if action.address == address:
                return action
        return None
