"""Show-state command - list recorded resources."""

import json
import sys
import click
from ...presentation.human_formatter import format_state
from ...utils.errors import StackApplyError
from ...utils.logging import get_logger
from ..utils import config_option, echo_safe, format_error, open_workspace

logger = get_logger("cli.show_state")


@click.command(name="show-state")
@config_option
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON')
def show_state(config, json_output):
    """List every resource in state with its status and provider id."""
    try:
        workspace = open_workspace(config)
        states = workspace.states()
        
        if json_output:
            click.echo(json.dumps([s.model_dump(mode="json") for s in states], indent=2))
        else:
            echo_safe(format_state(states))
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Reading state failed: {e}"), err=True)
        sys.exit(1)
