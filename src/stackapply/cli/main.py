"""Main CLI entry point for stackapply."""

import logging
import click
from .commands.plan import plan
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.show_state import show_state
from .commands.output import output
from .commands.refresh import refresh
from .commands.version import version
from .. import __version__
from ..utils.logging import get_logger

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="stackapply", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """stackapply - Declarative provisioning for a fixed cloud resource graph."""
    if verbose:
        logging.getLogger("stackapply").setLevel(logging.DEBUG)


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(show_state)
cli.add_command(output)
cli.add_command(refresh)
cli.add_command(version)
