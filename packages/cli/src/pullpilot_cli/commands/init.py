"""init command: interactive setup for a working directory.

Writes .pullpilot.yml (provider, store, timeouts) and, for the SQLite store,
optionally connects the repository found in the git remote so the first
`pullpilot review` can run straight away.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from pullpilot_core.config import DEFAULT_CONFIG

console = Console()


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Auto-detected from git remote.")
@click.pass_context
def init_cmd(ctx, repo: str | None):
    """Create .pullpilot.yml for this directory."""
    config_path = Path(ctx.parent.params.get("config_path") or ".pullpilot.yml")
    console.print("\n[bold cyan]pullpilot init[/bold cyan]\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")

    provider = click.prompt(
        "Analysis provider",
        type=click.Choice(["openai", "anthropic", "canned"]),
        default=DEFAULT_CONFIG["provider"],
    )

    console.print("\nJob store:")
    console.print("  [bold]sqlite[/bold]  — local database file, keeps review history (default)")
    console.print("  [bold]memory[/bold]  — nothing persisted, for trying things out")
    store_type = click.prompt("Store backend", type=click.Choice(["sqlite", "memory"]), default="sqlite")

    config: dict = {"provider": provider, "store": store_type}
    if store_type == "sqlite":
        config["store_path"] = click.prompt("SQLite database path", default=DEFAULT_CONFIG["store_path"])

    config["analysis_timeout"] = click.prompt(
        "Analysis timeout in seconds", type=click.IntRange(min=1), default=DEFAULT_CONFIG["analysis_timeout"]
    )

    _write_config(config_path, config)
    console.print(f"[green]Wrote {config_path}[/green]")

    if repo and store_type == "sqlite" and click.confirm(f"\nConnect {repo} now?", default=True):
        from pullpilot_store.sqlite import SQLiteJobStore

        store = SQLiteJobStore(db_path=config["store_path"])
        try:
            connected = store.add_repository(repo)
        finally:
            store.close()
        console.print(f"[green]Connected {connected.full_name}[/green] (id [bold]{connected.id}[/bold])")
        console.print(f"\nRun a review with: [bold]pullpilot review --repo-id {connected.id} --pr <number>[/bold]")
    else:
        console.print("\nConnect a repository with: [bold]pullpilot repo add owner/name[/bold]")

    if provider in ("openai", "anthropic"):
        key = "OPENAI_API_KEY" if provider == "openai" else "ANTHROPIC_API_KEY"
        console.print(f"[yellow]Remember to export [bold]{key}[/bold] before running a review.[/yellow]")


def _detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    # https://github.com/owner/repo.git and git@github.com:owner/repo.git
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
