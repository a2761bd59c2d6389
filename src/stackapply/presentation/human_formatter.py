"""Human-friendly output formatter - converts plans, reports and state to readable text."""

import json
import os
from typing import Any, Dict, List, Optional, Sequence
from ..execution.models import ApplyReport
from ..planning.models import ActionType, AttributeChange, Plan
from ..state.models import ResourceState

_SYMBOLS = {
    ActionType.CREATE: "+",
    ActionType.UPDATE: "~",
    ActionType.DELETE: "-",
    ActionType.NOOP: " ",
}

_MAX_VALUE_WIDTH = 60


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("STACKAPPLY_ASCII", "").lower() in ("1", "true", "yes")


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


def _format_value(value: Any) -> str:
    text = json.dumps(value, sort_keys=True) if not isinstance(value, str) else json.dumps(value)
    if len(text) > _MAX_VALUE_WIDTH:
        text = text[:_MAX_VALUE_WIDTH - 3] + "..."
    return text


def _format_change(attribute: str, change: AttributeChange) -> str:
    after = "(known after apply)" if change.known_after_apply else _format_value(change.after)
    before = "(unset)" if change.before is None else _format_value(change.before)
    return f"        {attribute}: {before} -> {after}"


def format_plan(plan: Plan, show_noop: bool = True) -> str:
    """Render a plan as a preview a user can approve."""
    lines = _section("stackapply destroy plan" if plan.destroy else "stackapply plan")
    lines.append("")

    for action in plan.actions:
        if action.type == ActionType.NOOP and not show_noop:
            continue
        label = f"{action.type.value} (replace)" if action.replace else action.type.value
        lines.append(f"  {_SYMBOLS[action.type]} {action.address:<40} {label}")
        if action.type == ActionType.UPDATE:
            for attribute in sorted(action.diff):
                lines.append(_format_change(attribute, action.diff[attribute]))

    if not plan.actions:
        lines.append("  No resources declared or recorded.")

    counts = plan.summary()
    lines.append("")
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['delete']} to delete, {counts['no-op']} unchanged."
    )
    if not plan.has_changes:
        lines.append("No changes. Infrastructure matches the configuration.")
    return "\n".join(lines)


def format_apply_report(report: ApplyReport, ascii_mode: Optional[bool] = None) -> str:
    """Render the outcome of an apply or destroy."""
    ascii_mode = _use_ascii(ascii_mode)
    ok_mark = "[OK]" if ascii_mode else "✅"
    fail_mark = "[FAIL]" if ascii_mode else "❌"

    lines = _section("stackapply apply results")
    lines.append("")
    for outcome in report.outcomes:
        if outcome.action.type == ActionType.NOOP and outcome.result.ok:
            continue
        mark = ok_mark if outcome.result.ok else fail_mark
        line = f"  {mark} {outcome.address:<40} {outcome.action.type.value}"
        if not outcome.result.ok:
            line += f"\n        {type(outcome.result.error).__name__}: {outcome.result.message}"
        lines.append(line)

    counts = report.summary()
    lines.append("")
    lines.append(
        f"Apply: {counts['create']} created, {counts['update']} updated, "
        f"{counts['delete']} deleted, {counts['failed']} failed."
    )
    if report.canceled:
        lines.append("Apply was canceled; re-run apply to continue.")
    elif not report.ok:
        lines.append("Re-run apply to retry; resources already created are kept.")
    return "\n".join(lines)


def format_state(states: Sequence[ResourceState]) -> str:
    """Render the State Store as a table."""
    if not states:
        return "State is empty."
    lines = [f"{'ADDRESS':<36} {'STATUS':<10} PROVIDER ID", "-" * 72]
    for state in states:
        lines.append(f"{state.address:<36} {state.status.value:<10} {state.provider_id or '-'}")
    lines.append("")
    lines.append(f"{len(states)} resource(s)")
    return "\n".join(lines)


def format_outputs(outputs: Dict[str, str]) -> str:
    """Render outputs as key = value lines."""
    width = max(len(key) for key in outputs) if outputs else 0
    return "\n".join(f"{key:<{width}} = {value}" for key, value in outputs.items())
