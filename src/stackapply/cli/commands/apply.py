"""Apply command - create or update resources to match the template."""

import json
import sys
import click
from ...presentation.human_formatter import format_apply_report, format_outputs, format_plan
from ...utils.errors import StackApplyError, IncompleteStateError
from ...utils.logging import get_logger
from ..utils import (
    apply_with_cancellation,
    config_option,
    echo_safe,
    failure_message,
    format_error,
    open_workspace,
    report_to_dict,
)

logger = get_logger("cli.apply")


@click.command()
@config_option
@click.option('--auto-approve', is_flag=True, help='Skip the interactive confirmation')
@click.option('--refresh', 'do_refresh', is_flag=True, help='Reconcile state with the provider before planning')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON results')
def apply(config, auto_approve, do_refresh, json_output):
    """
    Plan, confirm and apply changes.
    
    Safe to re-run after a failure: resources already created are kept
    and only the remaining actions run.
    """
    try:
        workspace = open_workspace(config)
        if do_refresh:
            workspace.refresh()
        planned = workspace.plan()
        
        if not planned.has_changes:
            if json_output:
                click.echo(json.dumps({"ok": True, "changes": 0}))
            else:
                echo_safe(format_plan(planned, show_noop=False))
            return
        
        if not json_output:
            echo_safe(format_plan(planned, show_noop=False))
        if not auto_approve and not click.confirm("\nApply these changes?", default=False):
            click.echo("Apply canceled.", err=True)
            sys.exit(1)
        
        report = apply_with_cancellation(workspace, planned)
        
        if json_output:
            click.echo(json.dumps(report_to_dict(report), indent=2))
        else:
            echo_safe(format_apply_report(report))
        
        if not report.ok:
            click.echo(format_error(failure_message(report), "Fix the cause and run apply again."), err=True)
            sys.exit(1)
        
        if not json_output:
            try:
                click.echo("")
                echo_safe(format_outputs(workspace.outputs()))
            except IncompleteStateError as e:
                logger.debug(f"No outputs yet: {e}")
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(1)
