"""Implement command for Blueprints CLI."""

from pathlib import Path

import click

from blueprints.constants import BUILD_MANIFEST, DEFAULT_CHECKLIST_PATH
from blueprints.exceptions import BlueprintsError
from blueprints.providers.codex import CodexProvider
from blueprints.services.implement_service import ImplementWorkflow


@click.command()
@click.option("--target", required=True, help="Cargo package the quality gates run against")
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
@click.option(
    "--checklist",
    default=str(DEFAULT_CHECKLIST_PATH),
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Delivery plan checklist",
)
@click.option(
    "--manifest",
    default=BUILD_MANIFEST,
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Build manifest that enables the quality gates",
)
@click.option("--no-chime", is_flag=True, help="Do not ring the terminal bell on success")
@click.pass_obj
def implement(obj, target, reviewer_prompt, builder_prompt, checklist, manifest, no_chime):
    """Implement the delivery plan, then gate sign-off on cargo checks."""
    run_config = obj["config"]
    try:
        workflow = ImplementWorkflow(
            reviewer_prompt.read(),
            builder_prompt.read(),
            target=target,
            checklist_path=checklist,
            manifest_path=manifest,
            config=run_config.workflow,
            summarize=obj["summarize"],
            provider=CodexProvider(run_config.agent),
            chime=not no_chime,
        )
        workflow.run()
    except BlueprintsError as e:
        raise click.ClickException(str(e))
