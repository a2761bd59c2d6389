"""Output command - print the instance address and connection command."""

import json
import sys
import click
from ...presentation.human_formatter import format_outputs
from ...utils.errors import StackApplyError
from ...utils.logging import get_logger
from ..utils import config_option, echo_safe, format_error, open_workspace

logger = get_logger("cli.output")


@click.command()
@config_option
@click.argument('name', required=False)
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON')
def output(config, name, json_output):
    """Show outputs, or a single output value when NAME is given."""
    try:
        outputs = open_workspace(config).outputs()
        
        if name:
            if name not in outputs:
                click.echo(format_error(f"Unknown output '{name}'", f"Available: {', '.join(outputs)}"), err=True)
                sys.exit(1)
            click.echo(outputs[name])
        elif json_output:
            click.echo(json.dumps(outputs, indent=2))
        else:
            echo_safe(format_outputs(outputs))
    
    except StackApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Reading outputs failed: {e}"), err=True)
        sys.exit(1)
