"""State store - durable record of provisioned resources."""

from .models import ResourceState, ResourceStatus, StateSnapshot, SCHEMA_VERSION
from .store import StateStore, compute_digest

__all__ = [
    "ResourceState",
    "ResourceStatus",
    "StateSnapshot",
    "SCHEMA_VERSION",
    "StateStore",
    "compute_digest",
]
