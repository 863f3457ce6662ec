"""Review job data models.

Decoupled from pullpilot_core so the store layer can be used independently
and the orchestrator only talks to the store through BaseJobStore.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Repository:
    """A GitHub repository connected for review."""

    id: int
    full_name: str  # "owner/name"
    is_active: bool = True
    created_at: str = field(default_factory=utc_now)


@dataclass
class ReviewJob:
    """One request to analyze a pull request at a point in time.

    Created pending by the orchestrator and moved to a terminal status
    exactly once. analysis_result is only set on completed jobs and
    completed_at is only set on terminal ones.
    """

    id: int
    repository_id: int
    pr_number: int
    pr_title: str
    status: str  # "pending" | "completed" | "failed"
    created_at: str  # ISO-8601 UTC timestamp
    completed_at: str | None = None
    analysis_result: dict | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
