"""Destroy command - tear down every recorded resource."""

import json
import sys
import click
from ...presentation.human_formatter import format_apply_report, format_plan
from ...utils.errors import StackApplyError
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

logger = get_logger("cli.destroy")


@click.command()
@config_option
@click.option('--auto-approve', is_flag=True, help='Skip the interactive confirmation')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON results')
def destroy(config, auto_approve, json_output):
    """
    Delete all resources in reverse dependency order.
    
    Resources that fail to delete stay in state so destroy can be retried.
    """
    try:
        workspace = open_workspace(config)
        planned = workspace.plan(destroy=True)
        
        if not planned.actions:
            if json_output:
                click.echo(json.dumps({"ok": True, "changes": 0}))
            else:
                click.echo("Nothing to destroy: state is empty.")
            return
        
        if not json_output:
            echo_safe(format_plan(planned))
        if not auto_approve and not click.confirm("\nDestroy all of these resources?", default=False):
            click.echo("Destroy canceled.", err=True)
            sys.exit(1)
        
        report = apply_with_cancellation(workspace, planned)
        
        if json_output:
            click.echo(json.dumps(report_to_dict(report), indent=2))
        else:
            echo_safe(format_apply_report(report))
        
        if not report.ok:
            click.echo(format_error(failure_message(report), "Run destroy again to retry."), err=True)
            sys.exit(1)
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(1)
