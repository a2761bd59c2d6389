"""stackapply - Minimal declarative provisioner for a fixed cloud resource graph."""

from typing import Dict, Optional
from .execution.models import ApplyReport
from .planning.models import Plan
from .utils.logging import setup_logging, get_logger
from .utils.errors import StackApplyError
from .workspace import Workspace

__version__ = "0.1.0"

__all__ = ["plan", "apply", "destroy", "outputs", "Workspace"]

setup_logging()
logger = get_logger("stackapply")


def plan(config_path: Optional[str] = None, destroy: bool = False) -> Plan:
    """Compute the plan for the configured template without changing anything."""
    try:
        workspace = Workspace.open(config_path)
        return workspace.plan(destroy=destroy)
    except StackApplyError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during planning: {e}", exc_info=True)
        raise StackApplyError(f"Planning failed: {e}") from e


def apply(config_path: Optional[str] = None) -> ApplyReport:
    """Plan and apply the configured template."""
    try:
        workspace = Workspace.open(config_path)
        return workspace.apply(workspace.plan())
    except StackApplyError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during apply: {e}", exc_info=True)
        raise StackApplyError(f"Apply failed: {e}") from e


def destroy(config_path: Optional[str] = None) -> ApplyReport:
    """Plan and apply teardown of every recorded resource."""
    try:
        workspace = Workspace.open(config_path)
        return workspace.apply(workspace.plan(destroy=True))
    except StackApplyError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during destroy: {e}", exc_info=True)
        raise StackApplyError(f"Destroy failed: {e}") from e


def outputs(config_path: Optional[str] = None) -> Dict[str, str]:
    """Render outputs from current state."""
    return Workspace.open(config_path).outputs()
