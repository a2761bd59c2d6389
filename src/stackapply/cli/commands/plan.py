"""Plan command - preview the actions apply or destroy would take."""

import json
import sys
import click
from ...presentation.human_formatter import format_plan
from ...utils.errors import StackApplyError
from ...utils.logging import get_logger
from ..utils import config_option, echo_safe, format_error, open_workspace

logger = get_logger("cli.plan")


@click.command()
@config_option
@click.option('--destroy', 'destroy_mode', is_flag=True, help='Plan teardown of every recorded resource')
@click.option('--refresh', 'do_refresh', is_flag=True, help='Reconcile state with the provider before planning')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON instead of human-readable')
def plan(config, destroy_mode, do_refresh, json_output):
    """
    Show the create/update/delete actions without changing anything.
    
    Unchanged resources are listed as no-op so the whole graph is visible.
    """
    try:
        workspace = open_workspace(config)
        if do_refresh:
            workspace.refresh()
        result = workspace.plan(destroy=destroy_mode)
        
        if json_output:
            click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        else:
            echo_safe(format_plan(result))
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(1)
