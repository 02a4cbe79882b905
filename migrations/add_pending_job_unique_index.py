"""
Add the one-pending-job-per-type unique index to scheduled_jobs

Migration to:
- cancel duplicate pending jobs left by concurrent planners (oldest row wins)
- create uq_scheduled_jobs_pending_booking_type, a partial unique index on
  (booking_id, job_type) WHERE status = 'pending'

PostgreSQL only; fresh databases get the index from create_all.

Run with: python migrations/add_pending_job_unique_index.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from venue_engine.database import engine

INDEX_NAME = "uq_scheduled_jobs_pending_booking_type"


def upgrade():
    """Cancel duplicate pending jobs, then add the partial unique index"""
    with engine.connect() as conn:
        # Check if the index already exists to make migration idempotent
        result = conn.execute(
            text("SELECT 1 FROM pg_indexes WHERE tablename = 'scheduled_jobs' AND indexname = :name"),
            {"name": INDEX_NAME},
        )
        if result.first():
            print(f"ℹ️  {INDEX_NAME} already exists")
            return

        duplicates = conn.execute(
            text("""
                UPDATE scheduled_jobs
                SET status = 'cancelled',
                    last_error = 'duplicate_pending_job',
                    updated_at = NOW()
                WHERE id IN (
                    SELECT id FROM (
                        SELECT id,
                               ROW_NUMBER() OVER (
                                   PARTITION BY booking_id, job_type
                                   ORDER BY created_at ASC, id ASC
                               ) AS position
                        FROM scheduled_jobs
                        WHERE status = 'pending'
                    ) ranked
                    WHERE ranked.position > 1
                )
            """)
        )
        print(f"✅ Cancelled {duplicates.rowcount} duplicate pending job(s)")

        conn.execute(
            text(f"""
                CREATE UNIQUE INDEX {INDEX_NAME}
                ON scheduled_jobs (booking_id, job_type)
                WHERE status = 'pending'
            """)
        )
        print(f"✅ Created {INDEX_NAME}")

        conn.commit()
        print("✅ Migration completed successfully")


def downgrade():
    """Drop the partial unique index"""
    with engine.connect() as conn:
        conn.execute(text(f"DROP INDEX IF EXISTS {INDEX_NAME}"))
        conn.commit()
        print(f"✅ Dropped {INDEX_NAME}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "downgrade":
        downgrade()
    else:
        upgrade()
