"""Pydantic models for declared resources."""

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List
from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Resource kinds the template can declare."""
    KEY_PAIR = "KeyPair"
    ROLE = "Role"
    POLICY = "Policy"
    INSTANCE_PROFILE = "InstanceProfile"
    INSTANCE = "Instance"
    BUCKET = "Bucket"
    BUCKET_VERSIONING = "BucketVersioning"
    BUCKET_ENCRYPTION = "BucketEncryption"


def make_address(kind: ResourceKind, name: str) -> str:
    """Build the canonical address for a resource: <Kind>.<name>"""
    return f"{ResourceKind(kind).value}.{name}"


class Reference(BaseModel):
    """Binds one attribute slot to an output of another resource."""
    slot: str = Field(..., description="Attribute filled in on the referring resource")
    target_kind: ResourceKind = Field(..., description="Kind of the referenced resource")
    target_name: str = Field(..., description="Name of the referenced resource")
    output: str = Field(..., description="Output attribute read from the referenced resource")
    
    class Config:
        frozen = True
    
    @property
    def target_address(self) -> str:
        return make_address(self.target_kind, self.target_name)


class ResourceSpec(BaseModel):
    """One declared resource. Never mutated after load."""
    kind: ResourceKind = Field(..., description="Resource kind")
    name: str = Field(..., min_length=1, description="Name, unique within kind")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Literal attribute values")
    references: List[Reference] = Field(default_factory=list, description="Attribute slots bound to other resources")
    depends_on: List[str] = Field(default_factory=list, description="Ordering-only dependencies (addresses)")
    
    class Config:
        frozen = True
    
    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)
    
    @property
    def dependencies(self) -> List[str]:
        """All addresses this resource must come after, in declaration order."""
        deps: List[str] = []
        for ref in self.references:
            if ref.target_address not in deps:
                deps.append(ref.target_address)
        for address in self.depends_on:
            if address not in deps:
                deps.append(address)
        return deps


# Attributes a provider cannot change in place: a change replaces the resource.
# Everything else (tags, policy documents, configuration) is updated in place.
REPLACEMENT_ATTRIBUTES: Dict[ResourceKind, FrozenSet[str]] = {
    ResourceKind.KEY_PAIR: frozenset({"key_name", "algorithm"}),
    ResourceKind.ROLE: frozenset({"role_name"}),
    ResourceKind.POLICY: frozenset({"policy_name", "role_name"}),
    ResourceKind.INSTANCE_PROFILE: frozenset({"profile_name", "role_name"}),
    ResourceKind.INSTANCE: frozenset({
        "ami", "instance_type", "region", "user_data",
        "key_name", "key_fingerprint", "instance_profile",
    }),
    ResourceKind.BUCKET: frozenset({"bucket_name", "region"}),
    ResourceKind.BUCKET_VERSIONING: frozenset({"bucket"}),
    ResourceKind.BUCKET_ENCRYPTION: frozenset({"bucket"}),
}

# Outputs that take new values whenever the resource is replaced.
REPLACEMENT_OUTPUTS: Dict[ResourceKind, FrozenSet[str]] = {
    ResourceKind.KEY_PAIR: frozenset({"fingerprint", "key_pair_id"}),
    ResourceKind.INSTANCE: frozenset({"instance_id", "public_ip", "private_ip"}),
}


def requires_replacement(kind: ResourceKind, changed: Iterable[str]) -> bool:
    """True when any changed attribute identifies the resource."""
    return bool(REPLACEMENT_ATTRIBUTES.get(ResourceKind(kind), frozenset()) & set(changed))
