"""Delivery command for Blueprints CLI."""

import click

from blueprints.exceptions import BlueprintsError
from blueprints.providers.codex import CodexProvider
from blueprints.services.workflow_service import DeliveryWorkflow


@click.command()
@click.option(
    "--reviewer-prompt",
    required=True,
    type=click.File("r", encoding="utf-8"),
    help="Rendered reviewer prompt template",
)
@click.option(
    "--builder-prompt",
    required=True,
    type=click.File("r", encoding="utf-8"),
    help="Rendered builder prompt template",
)
@click.option("--no-chime", is_flag=True, help="Do not ring the terminal bell on success")
@click.pass_obj
def delivery(obj, reviewer_prompt, builder_prompt, no_chime):
    """Iterate on reviewer feedback until the reviewer signs off."""
    run_config = obj["config"]
    try:
        workflow = DeliveryWorkflow(
            reviewer_prompt.read(),
            builder_prompt.read(),
            config=run_config.workflow,
            summarize=obj["summarize"],
            provider=CodexProvider(run_config.agent),
            chime=not no_chime,
        )
        workflow.run()
    except BlueprintsError as e:
        raise click.ClickException(str(e))
