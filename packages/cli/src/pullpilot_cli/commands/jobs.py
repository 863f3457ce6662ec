"""jobs / show commands: read review jobs from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from pullpilot_core.errors import NotFound, ValidationError
from pullpilot_core.orchestrator import ReviewOrchestrator
from pullpilot_core.providers.base import CATEGORIES
from pullpilot_core.reconcile import reconcile
from pullpilot_store.models import ReviewJob

console = Console()

_STATUS_STYLE = {"pending": "yellow", "completed": "green", "failed": "red"}

_CATEGORY_TITLES = {
    "security": "Security",
    "quality": "Code Quality",
    "bestPractices": "Best Practices",
    "performance": "Performance",
    "suggestions": "Suggestions",
}


def list_repository_jobs(store, repository_id: int) -> list[ReviewJob]:
    """Full job history of a repository, read through a read-only orchestrator."""
    with ReviewOrchestrator(store) as reader:
        try:
            return reader.list_by_repository(repository_id)
        except ValidationError as e:
            raise click.UsageError(str(e))
        except NotFound as e:
            raise click.ClickException(str(e))


def status_markup(status: str) -> str:
    style = _STATUS_STYLE.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def count_findings(job: ReviewJob) -> int | None:
    """Number of findings in a completed job's report; None when there is none to count."""
    result = job.analysis_result
    if not result or "rawAnalysis" in result:
        return None
    return sum(len(result.get(c, [])) for c in CATEGORIES)


def print_job(job: ReviewJob) -> None:
    """Print one job header followed by its findings, grouped by category."""
    console.print(
        f"\n[bold]Job {job.id}[/bold]  PR [bold]#{job.pr_number}[/bold]  {job.pr_title}  " f"{status_markup(job.status)}"
    )
    console.print(f"  [dim]created {job.created_at[:19].replace('T', ' ')}[/dim]")
    if job.completed_at:
        console.print(f"  [dim]finished {job.completed_at[:19].replace('T', ' ')}[/dim]")

    result = job.analysis_result
    if job.status == "failed":
        console.print("\n[red]The analysis failed. Run `pullpilot review` again to retry.[/red]")
        return
    if result is None:
        console.print("\n[yellow]Analysis still running.[/yellow]")
        return
    if "rawAnalysis" in result:
        console.print("\n[bold]Analysis[/bold] [dim](unstructured)[/dim]")
        console.print(result["rawAnalysis"])
        return

    if not count_findings(job):
        console.print("\n[green]No issues found.[/green]")
        return
    for category in CATEGORIES:
        findings = result.get(category, [])
        if not findings:
            continue
        console.print(f"\n[bold cyan]{_CATEGORY_TITLES[category]}[/bold cyan]")
        for f in findings:
            console.print(f"  • [bold]{f.get('issue', '')}[/bold]")
            if f.get("description"):
                console.print(f"    {f['description']}")


@click.command("jobs")
@click.option("--repo-id", "repository_id", type=int, required=True, help="Repository id (see `pullpilot repo list`).")
@click.option("--all", "show_all", is_flag=True, help="Show every submission, not just the latest per PR.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of jobs to show.")
@click.pass_context
def jobs_cmd(ctx, repository_id: int, show_all: bool, limit: int):
    """List review jobs for a repository, newest first."""
    store = ctx.obj["store"]
    jobs = list_repository_jobs(store, repository_id)
    repo = store.get_repository(repository_id)
    if not jobs:
        console.print("[yellow]No review jobs found.[/yellow]")
        return

    if show_all:
        jobs = sorted(jobs, key=lambda j: j.created_at, reverse=True)
    else:
        jobs = reconcile(jobs)
    jobs = jobs[:limit]

    title = "All Review Jobs" if show_all else "Review Jobs"
    table = Table(title=f"{title} — {repo.full_name}", show_header=True, header_style="bold cyan")
    table.add_column("Job", justify="right", width=6)
    table.add_column("PR", style="bold", width=6)
    table.add_column("Title", max_width=40)
    table.add_column("Status", width=10)
    table.add_column("Findings", justify="right", width=9)
    table.add_column("Created At", width=20)

    for j in jobs:
        findings = count_findings(j)
        table.add_row(
            str(j.id),
            f"#{j.pr_number}",
            j.pr_title[:40] if j.pr_title else "",
            status_markup(j.status),
            "—" if findings is None else str(findings),
            j.created_at[:19].replace("T", " "),
        )

    console.print(table)


@click.command("show")
@click.argument("job_id", type=int)
@click.option(
    "--repo-id",
    "repository_ids",
    type=int,
    multiple=True,
    help="Only show the job if it belongs to one of these repositories.",
)
@click.pass_context
def show_cmd(ctx, job_id: int, repository_ids: tuple[int, ...]):
    """Show one review job and its findings."""
    with ReviewOrchestrator(ctx.obj["store"]) as reader:
        try:
            job = reader.get(job_id, repository_ids=set(repository_ids) or None)
        except NotFound as e:
            raise click.ClickException(str(e))
    print_job(job)
