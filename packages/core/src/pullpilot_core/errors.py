"""Exception hierarchy for the review job pipeline.

Errors raised before a job exists (validation, credentials, upstream) are
synchronous and reach the caller of submit(). Provider errors happen on a
worker thread after the job was created; they end up as a failed job and are
never raised back to the submitter.
"""

from __future__ import annotations


class PullPilotError(Exception):
    """Base exception for everything pullpilot raises on purpose."""


class ValidationError(PullPilotError):
    """Missing or malformed submission fields."""


class CredentialError(PullPilotError):
    """No upstream token available, or GitHub rejected it (401/403)."""


class PullRequestNotFound(PullPilotError):
    """GitHub has no such pull request in the repository."""

    def __init__(self, repository: str, pr_number: int):
        super().__init__(f"PR #{pr_number} not found in {repository}.")
        self.repository = repository
        self.pr_number = pr_number


class GitHubRepositoryNotFound(PullPilotError):
    """GitHub has no repository by that name, or the token cannot see it."""

    def __init__(self, full_name: str):
        super().__init__(f"Repository {full_name} not found on GitHub.")
        self.full_name = full_name


class UpstreamUnavailable(PullPilotError):
    """Transient GitHub failure: rate limit, 5xx or a network error."""


class ProviderError(PullPilotError):
    """The analysis provider could not produce a report."""


class ProviderUnavailable(ProviderError):
    """Network, quota or API error from the analysis backend."""


class ProviderTimeout(ProviderError):
    """The analysis call exceeded its time limit."""


class NotFound(PullPilotError):
    """A looked-up record does not exist or is not visible to the caller."""


class JobNotFound(NotFound):
    def __init__(self, job_id: int):
        super().__init__(f"Review job {job_id} not found.")
        self.job_id = job_id


class RepositoryNotFound(NotFound):
    def __init__(self, repository_id: int):
        super().__init__(f"Repository {repository_id} not found.")
        self.repository_id = repository_id
