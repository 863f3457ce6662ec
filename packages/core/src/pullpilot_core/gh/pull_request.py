from __future__ import annotations

import logging
from dataclasses import dataclass

from github import (
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from pullpilot_core.errors import (
    CredentialError,
    GitHubRepositoryNotFound,
    PullRequestNotFound,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class PullRequestDiff:
    title: str
    diff_text: str


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def build_unified_diff(files) -> str:
    """Join per-file patches from the pulls/files API into one unified diff.

    GitHub returns each file's hunks without the git headers, so they are
    re-added here. Files keep the order GitHub returns them in; binary files
    have no patch and contribute only their headers.
    """
    chunks = []
    for f in files:
        old_name = f.previous_filename or f.filename
        lines = [
            f"diff --git a/{old_name} b/{f.filename}",
            f"--- a/{old_name}" if f.status != "added" else "--- /dev/null",
            f"+++ b/{f.filename}" if f.status != "removed" else "+++ /dev/null",
        ]
        if f.patch:
            lines.append(f.patch)
        chunks.append("\n".join(lines))
    return "\n".join(chunks)


def fetch_pull_request_diff(repository_full_name: str, pr_number: int, token: str) -> PullRequestDiff:
    """Return the title and unified diff of a pull request.

    Raises PullRequestNotFound, CredentialError or UpstreamUnavailable so the
    caller can tell a missing PR from a bad token from a GitHub outage.
    """
    if isinstance(pr_number, bool) or not isinstance(pr_number, int) or pr_number <= 0:
        raise ValidationError(f"PR number must be a positive integer, got {pr_number!r}.")
    if not token:
        raise CredentialError(f"No GitHub token available for {repository_full_name}.")

    try:
        pull = get_pull(get_repo(repository_full_name, token), pr_number)
        title = pull.title or ""
        diff_text = build_unified_diff(pull.get_files())
    except UnknownObjectException:
        raise PullRequestNotFound(repository_full_name, pr_number)
    except BadCredentialsException as e:
        raise CredentialError(f"GitHub rejected the token for {repository_full_name}: {e.status}") from e
    except RateLimitExceededException as e:
        raise UpstreamUnavailable("GitHub rate limit exceeded.") from e
    except GithubException as e:
        if e.status == 403:
            raise CredentialError(f"Token has no access to {repository_full_name}.") from e
        if e.status == 404:
            raise PullRequestNotFound(repository_full_name, pr_number)
        raise UpstreamUnavailable(f"GitHub returned {e.status} for {repository_full_name}#{pr_number}.") from e
    except OSError as e:
        # requests' connection and timeout errors derive from OSError.
        raise UpstreamUnavailable(f"Could not reach GitHub: {e}") from e

    logger.debug("Fetched diff for %s#%d (%d chars)", repository_full_name, pr_number, len(diff_text))
    return PullRequestDiff(title=title, diff_text=diff_text)


@dataclass
class RemoteRepository:
    full_name: str
    description: str
    private: bool
    url: str


def _upstream_error(e: Exception, subject: str) -> Exception:
    if isinstance(e, BadCredentialsException):
        return CredentialError(f"GitHub rejected the token for {subject}: {e.status}")
    if isinstance(e, RateLimitExceededException):
        return UpstreamUnavailable("GitHub rate limit exceeded.")
    if isinstance(e, GithubException):
        if e.status == 403:
            return CredentialError(f"Token has no access to {subject}.")
        return UpstreamUnavailable(f"GitHub returned {e.status} for {subject}.")
    return UpstreamUnavailable(f"Could not reach GitHub: {e}")


def fetch_repository(full_name: str, token: str) -> RemoteRepository:
    """Look up owner/name on GitHub; raises GitHubRepositoryNotFound if it is not visible to the token."""
    if not token:
        raise CredentialError(f"No GitHub token available for {full_name}.")
    try:
        repo = get_repo(full_name, token)
        remote = RemoteRepository(
            full_name=repo.full_name,
            description=repo.description or "",
            private=bool(repo.private),
            url=repo.html_url,
        )
    except UnknownObjectException:
        raise GitHubRepositoryNotFound(full_name)
    except (GithubException, OSError) as e:
        if isinstance(e, GithubException) and e.status == 404:
            raise GitHubRepositoryNotFound(full_name)
        raise _upstream_error(e, full_name) from e
    return remote


def list_user_repositories(token: str, limit: int = 100) -> list[RemoteRepository]:
    """Repositories the token's user can access, most recently updated first."""
    if not token:
        raise CredentialError("No GitHub token available.")
    remotes = []
    try:
        for repo in Github(token).get_user().get_repos(sort="updated"):
            remotes.append(
                RemoteRepository(
                    full_name=repo.full_name,
                    description=repo.description or "",
                    private=bool(repo.private),
                    url=repo.html_url,
                )
            )
            if len(remotes) >= limit:
                break
    except (GithubException, OSError) as e:
        raise _upstream_error(e, "the authenticated user") from e
    return remotes
