"""Main CLI entry point."""

import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cloud_actions.config.parser import ConfigValidationError, load_config
from cloud_actions.resources.registry import build_registry
from cloud_actions.utils.errors import ActionError, error_handler
from cloud_actions.utils.logging import get_logger, setup_logging

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), envvar='CLOUD_ACTIONS_CONFIG',
              help='Engine configuration YAML')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']),
              help='Overrides log_level from the configuration')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str]):
    """Create and terminate cloud resources in batches."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        err_console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        err_console.print("[red]Configuration validation failed:[/red]\n")
        err_console.print(escape(str(e)))
        sys.exit(1)

    setup_logging(log_level or config.log_level, config.log_dir)
    ctx.obj['config'] = config


@cli.command('run')
@click.argument('kind')
@click.argument('operation')
@click.option('--input', 'input_file', type=click.File('r'), default='-',
              help='Request payload as JSON (default: stdin)')
@click.option('--pretty/--compact', default=False, help='Indent the output payload')
@click.pass_context
def run(ctx, kind: str, operation: str, input_file, pretty: bool):
    """Run OPERATION (create|terminate) for resource KIND."""
    registry = build_registry(ctx.obj['config'])

    try:
        action = registry.get(kind, operation)
        result = action.run(input_file.read())
    except ActionError as e:
        error_handler.log_error(e)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    click.echo(json.dumps(result.to_payload(), indent=2 if pretty else None))

    if not result.ok:
        err_console.print(f"[red]Error:[/red] {escape(str(result.error))}")
        sys.exit(1)


@cli.command('list')
@click.pass_context
def list_actions(ctx):
    """Show the registered resource kinds and operations."""
    registry = build_registry(ctx.obj['config'])

    table = Table(title="Registered actions")
    table.add_column("Kind", style="cyan")
    table.add_column("Operation", style="green")
    table.add_column("On item failure")
    table.add_column("Poll")

    config = ctx.obj['config']
    for kind, operation, aggregation in registry.describe():
        poll = config.kind(kind).poll
        table.add_row(kind, operation, aggregation, f"{poll.max_attempts} x {poll.interval:g}s")

    console.print(table)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
