"""Tests for pullpilot-store implementations.

Both backends implement the same contract, so most tests run against each
through the parametrized `store` fixture.
"""

from __future__ import annotations

import threading

import pytest

from pullpilot_store.memory import InMemoryJobStore
from pullpilot_store.models import COMPLETED, FAILED, PENDING
from pullpilot_store.sqlite import SQLiteJobStore

REPORT = {
    "security": [],
    "quality": [{"issue": "x", "description": "y"}],
    "bestPractices": [],
    "performance": [],
    "suggestions": [],
}


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = InMemoryJobStore()
    else:
        s = SQLiteJobStore(db_path=str(tmp_path / "test.db"))
    yield s
    s.close()


@pytest.fixture
def repo(store):
    return store.add_repository("owner/repo")


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class TestRepositories:
    def test_add_and_get(self, store):
        repo = store.add_repository("owner/repo")
        fetched = store.get_repository(repo.id)
        assert fetched.full_name == "owner/repo"
        assert fetched.is_active is True

    def test_get_unknown_returns_none(self, store):
        assert store.get_repository(999) is None

    def test_add_twice_returns_same_row(self, store):
        first = store.add_repository("owner/repo")
        second = store.add_repository("owner/repo")
        assert first.id == second.id
        assert len(store.list_repositories()) == 1

    def test_deactivate_hides_from_list(self, store):
        repo = store.add_repository("owner/repo")
        store.add_repository("owner/other")

        removed = store.deactivate_repository(repo.id)

        assert removed.is_active is False
        assert [r.full_name for r in store.list_repositories()] == ["owner/other"]
        assert len(store.list_repositories(include_inactive=True)) == 2

    def test_readding_reactivates(self, store):
        repo = store.add_repository("owner/repo")
        store.deactivate_repository(repo.id)

        again = store.add_repository("owner/repo")

        assert again.id == repo.id
        assert again.is_active is True

    def test_deactivate_unknown_returns_none(self, store):
        assert store.deactivate_repository(42) is None

    def test_list_most_recent_first(self, store):
        store.add_repository("owner/a")
        store.add_repository("owner/b")
        assert [r.full_name for r in store.list_repositories()] == ["owner/b", "owner/a"]


# ---------------------------------------------------------------------------
# Job creation and reads
# ---------------------------------------------------------------------------


class TestJobs:
    def test_create_job_is_pending(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")

        assert job.id is not None
        assert job.status == PENDING
        assert job.analysis_result is None
        assert job.completed_at is None
        assert job.created_at
        assert job.is_terminal is False

    def test_get_job(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")
        fetched = store.get_job(job.id)
        assert fetched.pr_number == 42
        assert fetched.pr_title == "Fix auth bug"
        assert fetched.repository_id == repo.id

    def test_get_missing_job_returns_none(self, store):
        assert store.get_job(12345) is None

    def test_same_pr_can_have_many_jobs(self, store, repo):
        store.create_job(repo.id, 42, "Fix auth bug")
        store.create_job(repo.id, 42, "Fix auth bug")

        jobs = store.list_jobs(repo.id)
        assert len(jobs) == 2
        assert len({j.id for j in jobs}) == 2

    def test_list_jobs_filters_by_pr(self, store, repo):
        store.create_job(repo.id, 1, "One")
        store.create_job(repo.id, 2, "Two")

        jobs = store.list_jobs(repo.id, pr_number=2)
        assert [j.pr_number for j in jobs] == [2]

    def test_list_jobs_isolated_by_repository(self, store):
        a = store.add_repository("owner/a")
        b = store.add_repository("owner/b")
        store.create_job(a.id, 1, "A")
        store.create_job(b.id, 1, "B")

        jobs = store.list_jobs(a.id)
        assert len(jobs) == 1
        assert jobs[0].pr_title == "A"

    def test_list_jobs_empty(self, store, repo):
        assert store.list_jobs(repo.id) == []


# ---------------------------------------------------------------------------
# Terminal updates
# ---------------------------------------------------------------------------


class TestTerminalUpdates:
    def test_complete_sets_result_and_timestamp(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")

        assert store.complete_job(job.id, REPORT) is True

        done = store.get_job(job.id)
        assert done.status == COMPLETED
        assert done.analysis_result == REPORT
        assert done.completed_at is not None
        assert done.completed_at >= done.created_at

    def test_fail_sets_timestamp_without_result(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")

        assert store.fail_job(job.id) is True

        failed = store.get_job(job.id)
        assert failed.status == FAILED
        assert failed.analysis_result is None
        assert failed.completed_at is not None

    def test_completed_job_ignores_later_updates(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")
        store.complete_job(job.id, REPORT)
        before = store.get_job(job.id)

        assert store.fail_job(job.id) is False
        assert store.complete_job(job.id, {"rawAnalysis": "other"}) is False

        after = store.get_job(job.id)
        assert after.status == COMPLETED
        assert after.analysis_result == REPORT
        assert after.completed_at == before.completed_at

    def test_failed_job_ignores_later_completion(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")
        store.fail_job(job.id)
        before = store.get_job(job.id)

        assert store.complete_job(job.id, REPORT) is False

        after = store.get_job(job.id)
        assert after.status == FAILED
        assert after.analysis_result is None
        assert after.completed_at == before.completed_at

    def test_update_missing_job_returns_false(self, store):
        assert store.complete_job(999, REPORT) is False
        assert store.fail_job(999) is False

    def test_snapshot_not_mutated_by_later_write(self, store, repo):
        job = store.create_job(repo.id, 42, "Fix auth bug")
        store.complete_job(job.id, REPORT)
        assert job.status == PENDING

    def test_concurrent_complete_and_fail_exactly_one_wins(self, store, repo):
        """Racing both terminal paths on one pending job: exactly one takes effect."""
        for _ in range(20):
            job = store.create_job(repo.id, 42, "Race")
            barrier = threading.Barrier(2)
            results: dict[str, bool] = {}

            def complete():
                barrier.wait()
                results["complete"] = store.complete_job(job.id, REPORT)

            def fail():
                barrier.wait()
                results["fail"] = store.fail_job(job.id)

            threads = [threading.Thread(target=complete), threading.Thread(target=fail)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert sorted(results.values()) == [False, True]
            final = store.get_job(job.id)
            if results["complete"]:
                assert final.status == COMPLETED
                assert final.analysis_result == REPORT
            else:
                assert final.status == FAILED
                assert final.analysis_result is None
            assert final.completed_at is not None


# ---------------------------------------------------------------------------
# SQLite specifics
# ---------------------------------------------------------------------------


class TestSQLiteJobStore:
    def test_persists_across_connections(self, tmp_path):
        """Data written by one SQLiteJobStore instance must be readable by another."""
        db_path = str(tmp_path / "shared.db")
        store1 = SQLiteJobStore(db_path=db_path)
        repo = store1.add_repository("owner/repo")
        job = store1.create_job(repo.id, 7, "Persisted")
        store1.complete_job(job.id, REPORT)
        store1.close()

        store2 = SQLiteJobStore(db_path=db_path)
        fetched = store2.get_job(job.id)
        assert fetched.status == COMPLETED
        assert fetched.analysis_result == REPORT
        assert store2.get_repository(repo.id).full_name == "owner/repo"
        store2.close()

    def test_raw_analysis_roundtrip(self, tmp_path):
        store = SQLiteJobStore(db_path=str(tmp_path / "test.db"))
        repo = store.add_repository("owner/repo")
        job = store.create_job(repo.id, 1, "Raw")
        store.complete_job(job.id, {"rawAnalysis": "plain text answer"})

        assert store.get_job(job.id).analysis_result == {"rawAnalysis": "plain text answer"}
        store.close()

    def test_write_from_another_thread(self, tmp_path):
        store = SQLiteJobStore(db_path=str(tmp_path / "test.db"))
        repo = store.add_repository("owner/repo")
        job = store.create_job(repo.id, 1, "Threaded")

        worker = threading.Thread(target=store.complete_job, args=(job.id, REPORT))
        worker.start()
        worker.join()

        assert store.get_job(job.id).status == COMPLETED
        store.close()
