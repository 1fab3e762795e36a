"""Main CLI entry point for Blueprints."""

from pathlib import Path

import click

from blueprints.cli.commands.delivery import delivery
from blueprints.cli.commands.implement import implement
from blueprints.cli.commands.tests import tests
from blueprints.config import load_config
from blueprints.exceptions import WorkflowConfigError
from blueprints.utils.logging import setup_logging


@click.group()
@click.version_option(package_name="blueprints")
@click.option(
    "--summarize",
    is_flag=True,
    help="Summarize agent output every 15s instead of streaming it verbatim",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON config file (environment variables take precedence)",
)
@click.pass_context
def cli(ctx, summarize, verbose, config_file):
    """Blueprints - drive Codex reviewer and builder agents until sign-off."""
    setup_logging(verbose=verbose)
    try:
        run_config = load_config(config_file)
    except WorkflowConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj = {"config": run_config, "summarize": summarize}


cli.add_command(implement)
cli.add_command(delivery)
cli.add_command(tests)


if __name__ == "__main__":
    cli()
