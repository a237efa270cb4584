"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from portal.db.tables import EnrollmentRow
from portal.models.enrollment import ACCESS_STATUSES, Enrollment


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def count_active(
        self, student_id: str, course_patterns: Sequence[str]
    ) -> int:
        if not course_patterns:
            return 0
        matches = []
        for pattern in course_patterns:
            matches.append(EnrollmentRow.course_title.icontains(pattern, autoescape=True))
            matches.append(EnrollmentRow.program_name.icontains(pattern, autoescape=True))
        stmt = select(func.count()).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.status.in_(sorted(ACCESS_STATUSES)),
            or_(*matches),
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, enrollment: Enrollment) -> None:
        stmt = pg_insert(EnrollmentRow).values(
            student_id=enrollment.student_id,
            class_id=enrollment.class_id,
            status=enrollment.status,
            course_title=enrollment.course_title,
            program_name=enrollment.program_name,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["student_id", "class_id"],
            set_={
                "status": stmt.excluded.status,
                "course_title": stmt.excluded.course_title,
                "program_name": stmt.excluded.program_name,
            },
        )
        await self._session.execute(stmt)
