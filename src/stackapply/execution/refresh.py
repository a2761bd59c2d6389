"""Refresh recorded state from the provider (drift detection)."""

from typing import List
from ..provider.base import ProviderClient
from ..state.models import ResourceStatus
from ..state.store import StateStore
from ..utils.errors import ResourceNotFoundError
from ..utils.logging import get_logger
from .executor import UNPERSISTED_ATTRIBUTES

logger = get_logger("execution.refresh")


def refresh(store: StateStore, provider: ProviderClient) -> List[str]:
    """
    Reconcile Created records with what the provider reports.

    Resources the provider no longer knows are dropped from state so the
    next plan creates them again. Provider outputs are merged into the
    remaining records.

    Args:
        store: State Store to update
        provider: Provider client

    Returns:
        Addresses of resources that were deleted outside stackapply
    """
    drifted = []
    for state in store.states():
        if state.status != ResourceStatus.CREATED:
            continue
        try:
            outputs = provider.describe_resource(state.kind, state.provider_id)
        except ResourceNotFoundError:
            logger.warning(f"{state.address} ({state.provider_id}) no longer exists; removing from state")
            store.remove(state.kind, state.name)
            drifted.append(state.address)
            continue

        merged = dict(state.attributes)
        merged.update({k: v for k, v in outputs.items() if k not in UNPERSISTED_ATTRIBUTES})
        if merged != state.attributes:
            store.upsert(state.model_copy(update={"attributes": merged}))
            logger.info(f"Refreshed {state.address}")

    logger.info(f"Refresh complete: {len(drifted)} resource(s) missing")
    return drifted
