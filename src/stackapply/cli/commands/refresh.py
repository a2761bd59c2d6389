"""Refresh command - reconcile state with the provider."""

import sys
import click
from ...utils.errors import StackApplyError
from ...utils.logging import get_logger
from ..utils import config_option, format_error, open_workspace

logger = get_logger("cli.refresh")


@click.command()
@config_option
def refresh(config):
    """Drop resources deleted outside stackapply and update recorded outputs."""
    try:
        drifted = open_workspace(config).refresh()
        if drifted:
            click.echo("Removed from state (deleted outside stackapply):")
            for address in drifted:
                click.echo(f"  - {address}")
        else:
            click.echo("State matches the provider.")
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Refresh failed: {e}"), err=True)
        sys.exit(1)
