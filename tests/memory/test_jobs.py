"""Tests for the scheduled job store."""

import pytest

from recollect.memory.jobs import JobStore


@pytest.fixture
def jobs(db) -> JobStore:
    return JobStore(db)


class TestJobStore:
    """Tests for JobStore."""

    def test_save_and_get(self, jobs: JobStore):
        """A saved job can be read back by name."""
        job_id = jobs.save_job("morning", "0 8 * * *", "Good morning summary")

        job = jobs.get_job("morning")
        assert job.id == job_id
        assert job.schedule == "0 8 * * *"
        assert job.channel == "default"
        assert job.enabled is True

    def test_save_updates_existing(self, jobs: JobStore):
        """Saving the same name updates the job in place."""
        first = jobs.save_job("morning", "0 8 * * *", "old", channel="telegram")
        second = jobs.save_job("morning", "0 9 * * *", "new", channel="cli")

        assert first == second
        job = jobs.get_job("morning")
        assert (job.schedule, job.prompt, job.channel) == ("0 9 * * *", "new", "cli")
        assert jobs.get_job_count() == 1

    def test_missing_job(self, jobs: JobStore):
        assert jobs.get_job("nope") is None

    def test_enabled_only_by_default(self, jobs: JobStore):
        """Disabled jobs are hidden unless asked for."""
        jobs.save_job("b_job", "* * * * *", "b")
        jobs.save_job("a_job", "* * * * *", "a")
        jobs.set_job_enabled("b_job", False)

        assert [j.name for j in jobs.get_jobs()] == ["a_job"]
        assert [j.name for j in jobs.get_jobs(enabled_only=False)] == ["a_job", "b_job"]

    def test_set_enabled_unknown(self, jobs: JobStore):
        """Toggling an unknown job returns False."""
        assert jobs.set_job_enabled("nope", True) is False

    def test_delete(self, jobs: JobStore):
        """Deleting returns True once, then False."""
        jobs.save_job("morning", "0 8 * * *", "hi")

        assert jobs.delete_job("morning") is True
        assert jobs.delete_job("morning") is False
        assert jobs.get_job_count() == 0
