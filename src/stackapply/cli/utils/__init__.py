"""CLI utilities package."""

import signal
import threading
from typing import Any, Dict, Optional
import click
from ...execution.models import ApplyReport
from ...planning.models import Plan
from ...utils.logging import get_logger
from ...workspace import Workspace

logger = get_logger("cli.utils")


config_option = click.option(
    '--config', '-c',
    type=click.Path(),
    default=None,
    help='Path to config YAML (overrides ~/.stackapply and .stackapply configs)',
)


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.
    
    Args:
        message: Error message
        suggestion: Optional suggestion or help text
        
    Returns:
        Formatted error string
    """
    error = f"❌ Error: {message}"
    if suggestion:
        error += f"\n💡 Tip: {suggestion}"
    return error


def echo_safe(text: str, err: bool = False) -> None:
    """Echo text, degrading to ASCII on terminals that cannot encode it."""
    try:
        click.echo(text, err=err)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'), err=err)


def open_workspace(config_path: Optional[str]) -> Workspace:
    """Shared workspace loading helper - all commands call this."""
    return Workspace.open(config_path)


def apply_with_cancellation(workspace: Workspace, plan: Plan) -> ApplyReport:
    """
    Apply a plan; Ctrl-C stops scheduling new actions instead of killing in-flight calls.
    
    A second Ctrl-C is handled the same way; in-flight calls always finish
    so their results reach the State Store.
    """
    if threading.current_thread() is not threading.main_thread():
        return workspace.apply(plan)

    def _on_interrupt(signum, frame):
        click.echo("\nInterrupt received: waiting for in-flight actions to finish...", err=True)
        workspace.cancel()

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        return workspace.apply(plan)
    finally:
        signal.signal(signal.SIGINT, previous)


def report_to_dict(report: ApplyReport) -> Dict[str, Any]:
    """Structured form of an ApplyReport for --json output."""
    results = []
    for outcome in report.outcomes:
        entry = {
            "address": outcome.address,
            "action": outcome.action.type.value,
            "status": "success" if outcome.result.ok else "failed",
        }
        if outcome.result.ok:
            entry["provider_id"] = outcome.result.provider_id or None
        else:
            entry["error_type"] = type(outcome.result.error).__name__
            entry["error"] = outcome.result.message
        results.append(entry)
    return {
        "ok": report.ok,
        "canceled": report.canceled,
        "summary": report.summary(),
        "results": results,
    }


def failure_message(report: ApplyReport) -> str:
    """One line per failed resource, naming kind and name."""
    lines = []
    for outcome in report.failures:
        action = outcome.action
        lines.append(f"{action.kind.value} '{action.name}': {outcome.result.message}")
    return "Failed resources:\n  " + "\n  ".join(lines)


__all__ = [
    "config_option",
    "format_error",
    "echo_safe",
    "open_workspace",
    "apply_with_cancellation",
    "report_to_dict",
    "failure_message",
]
