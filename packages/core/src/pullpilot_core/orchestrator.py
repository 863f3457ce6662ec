"""Review job orchestration.

submit() does the synchronous part on the caller's thread (resolve the
repository and token, fetch the diff, create the pending job) and hands the
analysis to a bounded worker pool. The worker writes exactly one terminal
update through the store's conditional complete_job()/fail_job(). A watchdog
timer, armed when a worker picks the job up, and cancel() go through the same
calls, so whichever arrives first wins and the rest are no-ops. A job is
checked again before the provider is called, so one that was closed while
queued costs no analysis.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from pullpilot_core.errors import (
    CredentialError,
    JobNotFound,
    ProviderTimeout,
    RepositoryNotFound,
    ValidationError,
)
from pullpilot_core.gh.pull_request import PullRequestDiff, fetch_pull_request_diff
from pullpilot_core.providers.anthropic import AnthropicProvider
from pullpilot_core.providers.base import BaseAnalysisProvider
from pullpilot_core.providers.canned import CannedProvider
from pullpilot_core.providers.openai import OpenAIProvider
from pullpilot_core.reconcile import reconcile
from pullpilot_store.base import BaseJobStore
from pullpilot_store.models import Repository, ReviewJob

logger = logging.getLogger(__name__)

CredentialResolver = Callable[[Repository], "str | None"]
DiffFetcher = Callable[[str, int, str], PullRequestDiff]


def build_provider(config: dict) -> BaseAnalysisProvider:
    provider = config["provider"]
    timeout = config.get("analysis_timeout", 120)
    max_lines = config.get("max_diff_lines")
    if provider == "openai":
        return OpenAIProvider(api_key=config["openai_api_key"], timeout=timeout, max_diff_lines=max_lines)
    if provider == "anthropic":
        return AnthropicProvider(api_key=config["anthropic_api_key"], timeout=timeout, max_diff_lines=max_lines)
    if provider == "canned":
        return CannedProvider(report=config.get("canned_report"), max_diff_lines=max_lines)
    raise ValueError(f"Unknown analysis provider: {provider!r}. Choose 'openai', 'anthropic' or 'canned'.")


def _positive_int(value, field_name: str) -> int:
    """Accept ints and digit strings; reject everything else with ValidationError."""
    if value is None or value == "":
        raise ValidationError(f"Missing {field_name}.")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}.")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValidationError(f"{field_name} must be a number, got {value!r}.")
        value = int(value)
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be a number, got {value!r}.")
    if value <= 0:
        raise ValidationError(f"{field_name} must be positive, got {value}.")
    return value


class ReviewOrchestrator:
    """Owns the write path for review jobs and the read API over them.

    Built without a provider it is read-only: get() and list_by_repository()
    work, submit() raises RuntimeError.
    """

    def __init__(
        self,
        store: BaseJobStore,
        provider: BaseAnalysisProvider | None = None,
        *,
        resolve_credential: CredentialResolver | None = None,
        fetch_diff: DiffFetcher = fetch_pull_request_diff,
        max_workers: int = 4,
        analysis_timeout: float | None = 120,
    ):
        self._store = store
        self._provider = provider
        self._resolve_credential = resolve_credential
        self._fetch_diff = fetch_diff
        self._analysis_timeout = analysis_timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pullpilot-analysis")
        self._lock = threading.Lock()
        self._futures: dict[int, Future] = {}
        self._watchdogs: dict[int, threading.Timer] = {}
        self._unsettled: set[int] = set()
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown(wait=True)

    # ------------------------------------------------------------------ #
    # Write path                                                          #
    # ------------------------------------------------------------------ #

    def submit(self, repository_id: int, pr_number: int) -> ReviewJob:
        """Create a pending review job and start analysing it in the background.

        Raises ValidationError, RepositoryNotFound, CredentialError,
        PullRequestNotFound or UpstreamUnavailable before any job is created.
        Once the job exists nothing is raised: analysis failures show up as
        status "failed" on a later read.
        """
        if self._provider is None or self._resolve_credential is None:
            raise RuntimeError("This orchestrator was built without a provider and can only read jobs.")
        repository_id = _positive_int(repository_id, "repositoryId")
        pr_number = _positive_int(pr_number, "prNumber")

        repository = self._store.get_repository(repository_id)
        if repository is None or not repository.is_active:
            raise RepositoryNotFound(repository_id)

        token = self._resolve_credential(repository)
        if not token:
            raise CredentialError(f"No GitHub token available for {repository.full_name}.")

        pull = self._fetch_diff(repository.full_name, pr_number, token)

        job = self._store.create_job(repository.id, pr_number, pull.title)
        logger.info("Created review job %d for %s#%d", job.id, repository.full_name, pr_number)
        self._dispatch(job.id, pull.diff_text, pull.title)
        return job

    def submit_request(self, payload: dict) -> ReviewJob:
        """Submit from an inbound request body: {"repositoryId": ..., "prNumber": ...}."""
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be an object.")
        return self.submit(
            _positive_int(payload.get("repositoryId"), "repositoryId"),
            _positive_int(payload.get("prNumber"), "prNumber"),
        )

    def cancel(self, job_id: int) -> bool:
        """Fail a job that has not finished yet. Returns False if it already had."""
        if self._store.get_job(job_id) is None:
            raise JobNotFound(job_id)
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.cancel()  # only succeeds if the worker has not picked it up
        cancelled = self._store.fail_job(job_id)
        if cancelled:
            logger.info("Review job %d cancelled", job_id)
            self._clear_watchdog(job_id)
        return cancelled

    # ------------------------------------------------------------------ #
    # Read path                                                           #
    # ------------------------------------------------------------------ #

    def get(self, job_id: int, repository_ids: set[int] | None = None) -> ReviewJob:
        """Return a job snapshot.

        With repository_ids, jobs belonging to any other repository are
        reported as not found rather than forbidden.
        """
        job = self._store.get_job(job_id)
        if job is None or (repository_ids is not None and job.repository_id not in repository_ids):
            raise JobNotFound(job_id)
        return job

    def list_by_repository(self, repository_id: int) -> list[ReviewJob]:
        """Every job for the repository, unreconciled and in no guaranteed order."""
        repository_id = _positive_int(repository_id, "repositoryId")
        if self._store.get_repository(repository_id) is None:
            raise RepositoryNotFound(repository_id)
        return self._store.list_jobs(repository_id)

    def has_prior_job(self, repository_id: int, pr_number: int) -> ReviewJob | None:
        """Return the newest existing job for the PR, if any."""
        jobs = reconcile(self._store.list_jobs(repository_id, pr_number=pr_number))
        return jobs[0] if jobs else None

    def wait(self, job_id: int, timeout: float | None = None, poll_interval: float = 0.5) -> ReviewJob:
        """Poll until the job is terminal or timeout elapses; return the last snapshot."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            job = self.get(job_id)
            if job.is_terminal:
                return job
            if deadline is not None and time.monotonic() >= deadline:
                return job
            time.sleep(poll_interval)

    # ------------------------------------------------------------------ #
    # Background work                                                     #
    # ------------------------------------------------------------------ #

    def _dispatch(self, job_id: int, diff_text: str, pr_title: str) -> None:
        # Registered under the lock so _on_done cannot run before the entry exists.
        with self._lock:
            future = self._executor.submit(self._run_analysis, job_id, diff_text, pr_title)
            self._futures[job_id] = future
        future.add_done_callback(lambda f: self._on_done(job_id, f))

    def _run_analysis(self, job_id: int, diff_text: str, pr_title: str) -> None:
        job = self._store.get_job(job_id)
        if job is None or job.is_terminal:
            logger.info("Review job %d was closed while queued; skipping analysis", job_id)
            return

        # The time limit covers the provider call, not the wait in the queue.
        self._arm_watchdog(job_id)
        try:
            report = self._provider.analyze(diff_text, pr_title)
        except ProviderTimeout as e:
            logger.warning("Review job %d timed out: %s", job_id, e)
            report = None
        except Exception as e:
            logger.error("Review job %d failed (%s): %s", job_id, type(e).__name__, e)
            report = None
        self._finish(job_id, report)

    def _finish(self, job_id: int, report: dict | None) -> None:
        """Write the terminal status. The watchdog is cleared only once a write went through."""
        try:
            if report is None:
                self._store.fail_job(job_id)
            elif self._store.complete_job(job_id, report):
                logger.info("Review job %d completed", job_id)
            else:
                logger.warning("Review job %d finished after it was already closed; result discarded", job_id)
        except Exception as e:
            logger.error("Terminal update for review job %d raised (%s): %s", job_id, type(e).__name__, e)
            try:
                self._store.fail_job(job_id)
            except Exception as retry_error:
                logger.error(
                    "Could not mark review job %d failed (%s); leaving it to the watchdog",
                    job_id,
                    retry_error,
                )
                with self._lock:
                    self._unsettled.add(job_id)
                return
        self._clear_watchdog(job_id)

    def _arm_watchdog(self, job_id: int) -> None:
        if not self._analysis_timeout:
            return
        timer = threading.Timer(self._analysis_timeout, self._expire, args=(job_id,))
        timer.daemon = True
        with self._lock:
            if self._closed:
                return
            self._watchdogs[job_id] = timer
        timer.start()

    def _expire(self, job_id: int) -> None:
        with self._lock:
            self._watchdogs.pop(job_id, None)
        try:
            expired = self._store.fail_job(job_id)
        except Exception as e:
            logger.error("Could not expire review job %d (%s); retrying in %ss", job_id, e, self._analysis_timeout)
            self._arm_watchdog(job_id)
            return
        with self._lock:
            self._unsettled.discard(job_id)
        if expired:
            logger.warning("Review job %d exceeded %ss and was marked failed", job_id, self._analysis_timeout)

    def _on_done(self, job_id: int, future: Future) -> None:
        with self._lock:
            self._futures.pop(job_id, None)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Analysis worker for review job %d raised: %s", job_id, future.exception())

    def _clear_watchdog(self, job_id: int) -> None:
        with self._lock:
            timer = self._watchdogs.pop(job_id, None)
        if timer is not None:
            timer.cancel()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool.

        With wait=False, jobs still queued behind the pool are marked failed
        instead of being left pending. With wait=True, jobs whose terminal
        write never went through get one last fail_job() attempt.
        """
        if not wait:
            with self._lock:
                queued = list(self._futures.items())
            for job_id, future in queued:
                if future.cancel() and self._store.fail_job(job_id):
                    logger.warning("Review job %d dropped at shutdown", job_id)
        self._executor.shutdown(wait=wait)
        with self._lock:
            self._closed = True
            timers = dict(self._watchdogs)
            self._watchdogs.clear()
            unsettled = set(self._unsettled) | set(timers)
            self._unsettled.clear()
        for timer in timers.values():
            timer.cancel()
        if not wait:
            return
        for job_id in sorted(unsettled):
            if self._store.fail_job(job_id):
                logger.warning("Review job %d marked failed at shutdown", job_id)


def build_orchestrator(store: BaseJobStore, config: dict, resolve_credential: CredentialResolver) -> ReviewOrchestrator:
    """Wire an orchestrator from a loaded config dict."""
    return ReviewOrchestrator(
        store,
        build_provider(config),
        resolve_credential=resolve_credential,
        max_workers=config.get("max_workers", 4),
        analysis_timeout=config.get("analysis_timeout", 120),
    )
