"""In-memory store: used by tests and by demo runs with the canned provider.

Nothing survives the process. A single lock guards every read and write so
the conditional terminal update is atomic with respect to worker threads.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading

from pullpilot_store.base import BaseJobStore
from pullpilot_store.models import COMPLETED, FAILED, PENDING, Repository, ReviewJob, utc_now

logger = logging.getLogger(__name__)


class InMemoryJobStore(BaseJobStore):
    """Keeps repositories and jobs in dicts keyed by id.

    Returned objects are copies, so callers holding a snapshot never observe
    a later terminal write through it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._repositories: dict[int, Repository] = {}
        self._jobs: dict[int, ReviewJob] = {}
        self._repo_ids = itertools.count(1)
        self._job_ids = itertools.count(1)

    def add_repository(self, full_name: str) -> Repository:
        with self._lock:
            for repo in self._repositories.values():
                if repo.full_name == full_name:
                    repo.is_active = True
                    return copy.copy(repo)
            repo = Repository(id=next(self._repo_ids), full_name=full_name)
            self._repositories[repo.id] = repo
            return copy.copy(repo)

    def get_repository(self, repository_id: int) -> Repository | None:
        with self._lock:
            repo = self._repositories.get(repository_id)
            return copy.copy(repo) if repo else None

    def list_repositories(self, include_inactive: bool = False) -> list[Repository]:
        with self._lock:
            repos = [copy.copy(r) for r in self._repositories.values() if include_inactive or r.is_active]
        return sorted(repos, key=lambda r: r.id, reverse=True)

    def deactivate_repository(self, repository_id: int) -> Repository | None:
        with self._lock:
            repo = self._repositories.get(repository_id)
            if repo is None:
                return None
            repo.is_active = False
            return copy.copy(repo)

    def create_job(self, repository_id: int, pr_number: int, pr_title: str) -> ReviewJob:
        with self._lock:
            job = ReviewJob(
                id=next(self._job_ids),
                repository_id=repository_id,
                pr_number=pr_number,
                pr_title=pr_title,
                status=PENDING,
                created_at=utc_now(),
            )
            self._jobs[job.id] = job
            return copy.deepcopy(job)

    def get_job(self, job_id: int) -> ReviewJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def list_jobs(self, repository_id: int, pr_number: int | None = None) -> list[ReviewJob]:
        with self._lock:
            return [
                copy.deepcopy(j)
                for j in self._jobs.values()
                if j.repository_id == repository_id and (pr_number is None or j.pr_number == pr_number)
            ]

    def complete_job(self, job_id: int, analysis_result: dict) -> bool:
        return self._finish(job_id, COMPLETED, copy.deepcopy(analysis_result))

    def fail_job(self, job_id: int) -> bool:
        return self._finish(job_id, FAILED, None)

    def _finish(self, job_id: int, status: str, analysis_result: dict | None) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != PENDING:
                logger.debug("Job %d is not pending; %s write ignored", job_id, status)
                return False
            job.status = status
            job.analysis_result = analysis_result
            job.completed_at = utc_now()
            return True
