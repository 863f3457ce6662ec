"""stats command: aggregate the latest review of every PR in a repository."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from pullpilot_cli.commands.jobs import list_repository_jobs
from pullpilot_core.providers.base import CATEGORIES
from pullpilot_core.reconcile import reconcile

console = Console()


@click.command("stats")
@click.option("--repo-id", "repository_id", type=int, required=True, help="Repository id.")
@click.option("--top", default=10, show_default=True, help="Number of most frequent issues to show.")
@click.pass_context
def stats_cmd(ctx, repository_id: int, top: int):
    """Show status and findings counts for a repository.

    Only the latest job per PR is counted, so re-analysing a PR does not
    double its findings.
    """
    store = ctx.obj["store"]
    all_jobs = list_repository_jobs(store, repository_id)
    repo = store.get_repository(repository_id)
    if not all_jobs:
        console.print("[yellow]No review jobs found for this repository.[/yellow]")
        return

    latest = reconcile(all_jobs)
    status_counter: Counter[str] = Counter(j.status for j in latest)
    category_counter: Counter[str] = Counter()
    issue_counter: Counter[str] = Counter()
    unstructured = 0

    for job in latest:
        result = job.analysis_result or {}
        if "rawAnalysis" in result:
            unstructured += 1
            continue
        for category in CATEGORIES:
            for finding in result.get(category, []):
                category_counter[category] += 1
                if finding.get("issue"):
                    issue_counter[finding["issue"]] += 1

    # --- Summary ---
    console.print(f"\n[bold]Review stats for [cyan]{repo.full_name}[/cyan][/bold]")
    console.print(f"  Pull requests reviewed: {len(latest)}")
    console.print(f"  Total submissions:      {len(all_jobs)}")
    for status in ("completed", "pending", "failed"):
        console.print(f"  {status.capitalize() + ':':<23} {status_counter.get(status, 0)}")
    if unstructured:
        console.print(f"  Unstructured reports:   {unstructured}")

    # --- Findings per category ---
    total_findings = sum(category_counter.values())
    if total_findings:
        cat_table = Table(title="Findings by Category", show_header=True)
        cat_table.add_column("Category", style="bold")
        cat_table.add_column("Count", justify="right")
        cat_table.add_column("% of total", justify="right")
        for category in CATEGORIES:
            count = category_counter.get(category, 0)
            cat_table.add_row(category, str(count), f"{count / total_findings * 100:.1f}%")
        console.print(cat_table)

    # --- Most frequent issues ---
    if issue_counter:
        issue_table = Table(title=f"Top {top} Issues", show_header=True)
        issue_table.add_column("Issue")
        issue_table.add_column("PRs", justify="right")
        for issue, count in issue_counter.most_common(top):
            issue_table.add_row(issue, str(count))
        console.print(issue_table)
