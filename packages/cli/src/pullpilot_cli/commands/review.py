"""review command: submit a pull request for analysis and follow the job."""

from __future__ import annotations

import click
from rich.console import Console

from pullpilot_cli.auth import credential_for
from pullpilot_cli.commands.jobs import print_job
from pullpilot_core.errors import PullPilotError, ValidationError
from pullpilot_core.orchestrator import build_orchestrator

console = Console()

_API_KEYS = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}


@click.command("review")
@click.option("--repo-id", "repository_id", type=int, required=True, help="Repository id (see `pullpilot repo list`).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--provider",
    type=click.Choice(["openai", "anthropic", "canned"]),
    default=None,
    help="Analysis provider. Overrides config file.",
)
@click.option("--yes", "-y", is_flag=True, help="Re-analyze without asking when the PR was reviewed before.")
@click.pass_context
def review_cmd(ctx, repository_id: int, pr_number: int, provider: str | None, yes: bool):
    """Analyze a pull request.

    Fetches the PR diff, creates a pending review job and waits for the
    analysis to finish. Every run creates a new job; older results for the
    same PR stay in the history (`pullpilot jobs --all`).

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      OPENAI_API_KEY       Required when using --provider openai
      ANTHROPIC_API_KEY    Required when using --provider anthropic
    """
    config = dict(ctx.obj["config"])
    if provider is not None:
        config["provider"] = provider

    key_name = _API_KEYS.get(config["provider"])
    if key_name and not config.get(f"{config['provider']}_api_key"):
        raise click.UsageError(f"{key_name} environment variable is not set.")

    store = ctx.obj["store"]
    try:
        orchestrator = build_orchestrator(store, config, credential_for)
    except (ImportError, ValueError) as e:
        raise click.UsageError(str(e))

    with orchestrator:
        prior = orchestrator.has_prior_job(repository_id, pr_number)
        if prior is not None and not yes:
            click.confirm(
                f"A review for PR #{pr_number} already exists (job {prior.id}, {prior.status}).\n"
                "Do you want to analyze it again?",
                abort=True,
            )

        try:
            job = orchestrator.submit(repository_id, pr_number)
        except ValidationError as e:
            raise click.UsageError(str(e))
        except PullPilotError as e:
            raise click.ClickException(str(e))

        console.print(f"Created job [bold]{job.id}[/bold] for PR #{job.pr_number}: {job.pr_title}")
        with console.status("Analyzing pull request..."):
            job = orchestrator.wait(job.id, poll_interval=config.get("poll_interval", 2.0))

    print_job(job)
    if job.status == "failed":
        ctx.exit(1)
