"""Pydantic models for persisted resource state."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator
from ..model.resources import ResourceKind, make_address

SCHEMA_VERSION = 1


class ResourceStatus(str, Enum):
    """Lifecycle status of one resource."""
    PENDING = "Pending"
    CREATED = "Created"
    FAILED = "Failed"
    DESTROYED = "Destroyed"


class ResourceState(BaseModel):
    """Last-known real-world record for one declared resource."""
    kind: ResourceKind = Field(..., description="Resource kind")
    name: str = Field(..., description="Resource name")
    provider_id: Optional[str] = Field(None, description="Identifier assigned by the provider")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Inputs and provider outputs")
    status: ResourceStatus = Field(default=ResourceStatus.PENDING, description="Lifecycle status")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this resource depended on when committed")

    class Config:
        extra = "allow"

    @model_validator(mode="after")
    def _created_has_provider_id(self) -> "ResourceState":
        if self.status == ResourceStatus.CREATED and not self.provider_id:
            raise ValueError(f"{self.address} is Created but has no provider_id")
        return self

    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)


class StateSnapshot(BaseModel):
    """Versioned on-disk snapshot. Unknown fields survive read-modify-write."""
    schema_version: int = Field(default=SCHEMA_VERSION, description="Snapshot schema version")
    serial: int = Field(default=0, ge=0, description="Incremented on every write")
    lineage: Optional[str] = Field(None, description="Stable id of this state's history")
    resources: List[ResourceState] = Field(default_factory=list, description="Active resources")
    tombstones: List[ResourceState] = Field(default_factory=list, description="Recently destroyed resources")
    digest: Optional[str] = Field(None, description="sha256 over the snapshot without this field")

    class Config:
        extra = "allow"
