"""Access gate: may this actor view this resource?

Instructors and admins always pass.  Students face one of two policies,
chosen by resource class:

  content     an active-or-completed enrollment whose course title or
              program name contains one of the module's course patterns
  assessment  the student's overall progress on the module is at least
              the module's required percentage

authorize() is a pure read.  require() is the short-circuiting form the
endpoints use: a Deny raises AuthorizationDenied before any resource data
is loaded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from portal.core.errors import AuthorizationDenied
from portal.core.metrics import GATE_DECISIONS
from portal.models.principal import Actor
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.persistence import guarded_read

logger = logging.getLogger(__name__)

ResourceClass = Literal["content", "assessment"]

NOT_ENROLLED = "not_enrolled"
INSUFFICIENT_PROGRESS = "insufficient_progress"


@dataclass(frozen=True, slots=True)
class Resource:
    resource_class: ResourceClass
    module_id: str

    @staticmethod
    def content(module_id: str) -> Resource:
        return Resource(resource_class="content", module_id=module_id)

    @staticmethod
    def assessment(module_id: str) -> Resource:
        return Resource(resource_class="assessment", module_id=module_id)


@dataclass(frozen=True, slots=True)
class Decision:
    allowed: bool
    reason: str | None = None


ALLOW = Decision(allowed=True)


def deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


class AccessGate:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores

    async def authorize(self, actor: Actor, resource: Resource) -> Decision:
        module = catalog.get_module(resource.module_id)

        if actor.bypasses_gate():
            decision = ALLOW
        elif resource.resource_class == "content":
            async with guarded_read(
                operation="find_active_enrollment",
                user_id=actor.user_id,
                module_id=module.module_id,
            ):
                count = await self._stores.enrollments.count_active(
                    actor.user_id, module.course_patterns
                )
            decision = ALLOW if count > 0 else deny(NOT_ENROLLED)
        else:
            async with guarded_read(
                operation="get_progress",
                user_id=actor.user_id,
                module_id=module.module_id,
            ):
                progress = await self._stores.progress.get(
                    actor.user_id, module.module_id, module.section_count
                )
            overall = progress.overall_progress if progress is not None else 0.0
            decision = (
                ALLOW
                if overall >= module.required_progress_percent
                else deny(INSUFFICIENT_PROGRESS)
            )

        GATE_DECISIONS.labels(
            resource_class=resource.resource_class,
            outcome="allow" if decision.allowed else "deny",
        ).inc()
        return decision

    async def require(self, actor: Actor, resource: Resource) -> None:
        decision = await self.authorize(actor, resource)
        if decision.allowed:
            return
        reason = decision.reason or "denied"
        logger.warning(
            "Access denied: user=%s role=%s resource=%s/%s reason=%s",
            actor.user_id,
            actor.role,
            resource.resource_class,
            resource.module_id,
            reason,
        )
        raise AuthorizationDenied(actor, resource, reason)
