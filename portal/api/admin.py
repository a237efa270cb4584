from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from portal.api.dependencies import get_stores, require_any_role
from portal.models.enrollment import Enrollment
from portal.models.principal import Actor
from portal.repos.stores import Stores
from portal.services.persistence import acknowledged

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class EnrollmentIn(BaseModel):
    student_id: str
    class_id: str
    status: str = "active"  # active|completed|withdrawn|...
    course_title: str
    program_name: str = ""


class EnrollmentOut(BaseModel):
    student_id: str
    class_id: str
    status: str
    course_title: str
    program_name: str


@router.post(
    "/enrollments",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_enrollment(
    body: EnrollmentIn,
    actor: Annotated[Actor, Depends(require_any_role({"admin", "instructor"}))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> EnrollmentOut:
    enrollment = Enrollment(
        student_id=body.student_id,
        class_id=body.class_id,
        status=body.status.strip().lower(),
        course_title=body.course_title,
        program_name=body.program_name,
    )
    async with acknowledged(
        stores,
        operation="record_enrollment",
        user_id=body.student_id,
        module_id="",
    ):
        await stores.enrollments.add(enrollment)
    logger.info(
        "Enrollment recorded by user=%s student=%s class=%s status=%s",
        actor.user_id,
        enrollment.student_id,
        enrollment.class_id,
        enrollment.status,
    )
    return EnrollmentOut(
        student_id=enrollment.student_id,
        class_id=enrollment.class_id,
        status=enrollment.status,
        course_title=enrollment.course_title,
        program_name=enrollment.program_name,
    )
