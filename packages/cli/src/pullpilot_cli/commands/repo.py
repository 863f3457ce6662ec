"""repo commands: the catalog of repositories review jobs can be submitted for."""

from __future__ import annotations

import re

import click
from rich.console import Console
from rich.table import Table

from pullpilot_cli.auth import resolve_github_token
from pullpilot_core.errors import PullPilotError
from pullpilot_core.gh.pull_request import fetch_repository, list_user_repositories

console = Console()

_FULL_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@click.group("repo")
def repo_group():
    """Connect and disconnect GitHub repositories."""


@repo_group.command("add")
@click.argument("full_name")
@click.option("--no-verify", is_flag=True, help="Connect without checking that the repository exists on GitHub.")
@click.pass_context
def repo_add_cmd(ctx, full_name: str, no_verify: bool):
    """Connect FULL_NAME (owner/name). Reconnecting a known repository reactivates it."""
    if not _FULL_NAME_RE.match(full_name):
        raise click.BadParameter("expected owner/name", param_hint="FULL_NAME")

    if not no_verify:
        token = resolve_github_token()
        if token is None:
            raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN, run `gh auth login`, or pass --no-verify.")
        try:
            full_name = fetch_repository(full_name, token).full_name
        except PullPilotError as e:
            raise click.ClickException(str(e))

    repo = ctx.obj["store"].add_repository(full_name)
    console.print(f"[green]Connected {repo.full_name}[/green] (id [bold]{repo.id}[/bold])")


@repo_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include disconnected repositories.")
@click.pass_context
def repo_list_cmd(ctx, include_inactive: bool):
    """List connected repositories."""
    repos = ctx.obj["store"].list_repositories(include_inactive=include_inactive)
    if not repos:
        console.print("[yellow]No repositories connected. Run `pullpilot repo add owner/name`.[/yellow]")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", width=5)
    table.add_column("Repository")
    table.add_column("Active", width=8)
    table.add_column("Connected At", width=20)
    for r in repos:
        table.add_row(
            str(r.id),
            r.full_name,
            "[green]yes[/green]" if r.is_active else "[dim]no[/dim]",
            r.created_at[:19].replace("T", " "),
        )
    console.print(table)


@repo_group.command("remove")
@click.argument("repository_id", type=int)
@click.pass_context
def repo_remove_cmd(ctx, repository_id: int):
    """Disconnect a repository. Its review history is kept."""
    repo = ctx.obj["store"].deactivate_repository(repository_id)
    if repo is None:
        raise click.ClickException(f"Repository {repository_id} not found.")
    console.print(f"Disconnected {repo.full_name}.")


@repo_group.command("available")
@click.option("--limit", default=30, show_default=True, help="Maximum number of repositories to show.")
def repo_available_cmd(limit: int):
    """List GitHub repositories you can connect, most recently updated first."""
    token = resolve_github_token()
    if token is None:
        raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login`.")
    try:
        remotes = list_user_repositories(token, limit=limit)
    except PullPilotError as e:
        raise click.ClickException(str(e))
    if not remotes:
        console.print("[yellow]No repositories visible to this token.[/yellow]")
        return

    table = Table(title="GitHub Repositories", show_header=True, header_style="bold cyan")
    table.add_column("Repository")
    table.add_column("Private", width=8)
    table.add_column("Description", max_width=40)
    for r in remotes:
        table.add_row(r.full_name, "yes" if r.private else "no", r.description)
    console.print(table)
