"""Abstract job store interface.

The orchestrator depends on BaseJobStore, never on a concrete backend, so the
SQLite file and the in-memory store are interchangeable.

Terminal writes are conditional: complete_job() and fail_job() only take
effect while the job is still pending and report whether they did. That one
rule is what gives every job exactly one terminal update, even when a
success, a timeout and a cancellation race each other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pullpilot_store.models import Repository, ReviewJob


class BaseJobStore(ABC):
    """Pluggable persistence layer for review jobs and connected repositories.

    Implementations must be safe to call from worker threads: the terminal
    update for a job is written from the orchestrator's pool, not from the
    thread that created the job.
    """

    # ------------------------------------------------------------------ #
    # Repositories                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_repository(self, full_name: str) -> Repository:
        """Connect a repository, reactivating it if it was disconnected before."""

    @abstractmethod
    def get_repository(self, repository_id: int) -> Repository | None:
        """Return the repository, or None if it was never connected."""

    @abstractmethod
    def list_repositories(self, include_inactive: bool = False) -> list[Repository]:
        """Return connected repositories, most recently connected first."""

    @abstractmethod
    def deactivate_repository(self, repository_id: int) -> Repository | None:
        """Disconnect a repository. Its jobs are kept. Returns None if unknown."""

    # ------------------------------------------------------------------ #
    # Review jobs                                                         #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def create_job(self, repository_id: int, pr_number: int, pr_title: str) -> ReviewJob:
        """Insert a new pending job and return it with its assigned id."""

    @abstractmethod
    def get_job(self, job_id: int) -> ReviewJob | None:
        """Return the current snapshot of a job, or None if absent."""

    @abstractmethod
    def list_jobs(self, repository_id: int, pr_number: int | None = None) -> list[ReviewJob]:
        """Return every job for a repository, optionally filtered by PR.

        The full history is returned; collapsing re-submissions is left to the
        reader. Returns an empty list if there are no jobs; never raises.
        """

    @abstractmethod
    def complete_job(self, job_id: int, analysis_result: dict) -> bool:
        """Mark a pending job completed with its report.

        Returns False without writing anything if the job is missing or
        already terminal.
        """

    @abstractmethod
    def fail_job(self, job_id: int) -> bool:
        """Mark a pending job failed. Same conditional rule as complete_job()."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional; subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
