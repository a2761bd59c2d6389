"""Version command - show stackapply version."""

import click
from ... import __version__


@click.command()
def version():
    """Show stackapply version."""
    click.echo(f"stackapply version {__version__}")
