"""Collapse re-submitted review jobs into one row per pull request.

Re-analysing a PR creates a new job every time, so a repository's raw job
list contains history. Anything that shows "the review for PR #N" wants only
the newest attempt; the older ones stay in the store and remain fetchable by
id.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from datetime import datetime

from pullpilot_store.models import ReviewJob


def by_pr_number(job: ReviewJob) -> Hashable:
    """Canonical grouping key. A PR's title may change between re-analyses."""
    return job.pr_number


def by_pr_and_title(job: ReviewJob) -> Hashable:
    """Group by PR number and trimmed title, treating a renamed PR as a new entry."""
    return (job.pr_number, (job.pr_title or "").strip())


def _created(job: ReviewJob) -> datetime:
    value = job.created_at
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def reconcile(
    jobs: Iterable[ReviewJob],
    key: Callable[[ReviewJob], Hashable] = by_pr_number,
) -> list[ReviewJob]:
    """Return the newest job per group, most recent first.

    Pure: the input is not modified and no I/O happens. Within a group the job
    with the greatest created_at wins; on equal timestamps the one that comes
    later in the input wins. The output is sorted by created_at descending
    with a stable sort, so jobs created at the same instant keep their input
    order and reconcile(reconcile(jobs)) == reconcile(jobs).
    """
    latest: dict[Hashable, ReviewJob] = {}
    for job in jobs:
        group = key(job)
        current = latest.get(group)
        if current is None or _created(job) >= _created(current):
            latest[group] = job

    # dict keeps first-insertion order of each group, which is what the
    # stable sort falls back to on ties.
    return sorted(latest.values(), key=_created, reverse=True)
