"""Upstream credential resolution for review submissions.

The orchestrator asks for a token per repository. Locally there is one
GitHub identity, so every repository resolves to the same token:
  1. GITHUB_TOKEN environment variable
  2. `gh auth token` (GitHub CLI session, after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

from pullpilot_store.models import Repository

logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh missing or hung; the caller reports the missing token.
        return None

    gh_token = result.stdout.strip() if result.returncode == 0 else ""
    if gh_token:
        logger.debug("Resolved GitHub token via gh CLI session.")
        return gh_token
    return None


def credential_for(repository: Repository) -> str | None:
    """Credential resolver handed to the orchestrator."""
    token = resolve_github_token()
    if token is None:
        logger.debug("No GitHub token for %s", repository.full_name)
    return token
