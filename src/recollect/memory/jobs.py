"""Persisted scheduled jobs, read by the external scheduler."""

from .database import Database
from .models import Job

JOB_COLUMNS = "id, name, schedule, prompt, channel, enabled, created_at, updated_at"


class JobStore:
    """CRUD over the jobs table. Jobs are unique by name."""

    def __init__(self, database: Database) -> None:
        self.db = database

    def save_job(self, name: str, schedule: str, prompt: str, channel: str = "default") -> int:
        """Create a job, or update schedule, prompt and channel of an existing one.

        Returns:
            The id of the job.
        """
        conn = self.db.connection
        with conn:
            row = conn.execute(
                """
                INSERT INTO jobs (name, schedule, prompt, channel)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    schedule = excluded.schedule,
                    prompt = excluded.prompt,
                    channel = excluded.channel,
                    updated_at = datetime('now')
                RETURNING id
                """,
                (name, schedule, prompt, channel),
            ).fetchone()
        return row["id"]

    def get_job(self, name: str) -> Job | None:
        row = self.db.connection.execute(
            f"SELECT {JOB_COLUMNS} FROM jobs WHERE name = ?", (name,)
        ).fetchone()
        return Job.from_row(row) if row else None

    def get_jobs(self, enabled_only: bool = True) -> list[Job]:
        """List jobs, by default only the enabled ones."""
        query = f"SELECT {JOB_COLUMNS} FROM jobs"
        if enabled_only:
            query += " WHERE enabled = 1"
        cursor = self.db.connection.execute(query + " ORDER BY name")
        return [Job.from_row(row) for row in cursor.fetchall()]

    def get_job_count(self) -> int:
        return self.db.connection.execute("SELECT COUNT(*) AS c FROM jobs").fetchone()["c"]

    def set_job_enabled(self, name: str, enabled: bool) -> bool:
        """Enable or disable a job. Returns False if no such job."""
        conn = self.db.connection
        with conn:
            cursor = conn.execute(
                "UPDATE jobs SET enabled = ?, updated_at = datetime('now') WHERE name = ?",
                (1 if enabled else 0, name),
            )
        return cursor.rowcount > 0

    def delete_job(self, name: str) -> bool:
        conn = self.db.connection
        with conn:
            cursor = conn.execute("DELETE FROM jobs WHERE name = ?", (name,))
        return cursor.rowcount > 0
