"""The engine's durable stores, bundled per request.

With no DATABASE_URL the bundle points at the process-wide in-memory
singletons below.  With a database, every request gets Pg repos sharing
one AsyncSession, and commit() is the write acknowledgment: a service
only reports success after it returns.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from portal.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from portal.repos.pg_enrollment_repo import PgEnrollmentRepo
from portal.repos.pg_progress_repo import PgProgressRepo
from portal.repos.pg_submission_repo import PgSubmissionRepo
from portal.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from portal.repos.submission_repo import InMemorySubmissionRepo, SubmissionRepo

# Module-level singletons for the in-memory fallback
progress_repo = InMemoryProgressRepo()
submission_repo = InMemorySubmissionRepo()
enrollment_repo = InMemoryEnrollmentRepo()


@dataclass(slots=True)
class Stores:
    progress: ProgressRepo
    submissions: SubmissionRepo
    enrollments: EnrollmentRepo
    session: AsyncSession | None = None

    async def commit(self) -> None:
        if self.session is not None:
            await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()


def in_memory_stores() -> Stores:
    return Stores(
        progress=progress_repo,
        submissions=submission_repo,
        enrollments=enrollment_repo,
    )


def pg_stores(session: AsyncSession) -> Stores:
    return Stores(
        progress=PgProgressRepo(session),
        submissions=PgSubmissionRepo(session),
        enrollments=PgEnrollmentRepo(session),
        session=session,
    )
