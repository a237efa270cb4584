"""Engine exception taxonomy.

Services raise these; the handlers registered in ``portal.main`` turn
them into bounded JSON responses.  None of the response bodies carry
another user's data: a denial echoes only the caller's own identity,
role and the unmet precondition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portal.models.principal import Actor
    from portal.services.access_gate import Resource


class PortalError(Exception):
    """Base class for errors the HTTP layer knows how to render."""


class AuthenticationMissing(PortalError):
    """No usable identity on the request (no token, bad token, no portal role)."""

    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)
        self.message = message


class AuthorizationDenied(PortalError):
    """The access gate returned Deny for this actor and resource."""

    def __init__(self, actor: Actor, resource: Resource, reason: str) -> None:
        super().__init__(reason)
        self.actor = actor
        self.resource = resource
        self.reason = reason


class PersistenceUnavailable(PortalError):
    """A durable write or read did not acknowledge."""

    def __init__(self, operation: str, user_id: str, module_id: str) -> None:
        super().__init__(f"{operation} failed for user={user_id} module={module_id}")
        self.operation = operation
        self.user_id = user_id
        self.module_id = module_id


class GradingInputMalformed(PortalError):
    """A submitted test answer does not fit the presented snapshot.

    Never surfaced to the client: the grader logs it and scores the
    affected question as zero.
    """


class NotFound(PortalError):
    status_code = 404

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class UnknownModule(NotFound):
    def __init__(self, module_id: str) -> None:
        super().__init__(f"module {module_id!r} not found")


class UnknownSection(NotFound):
    def __init__(self, module_id: str, section: int) -> None:
        super().__init__(f"module {module_id!r} has no section {section}")


class UnknownExercise(NotFound):
    def __init__(self, module_id: str, exercise_id: str) -> None:
        super().__init__(f"module {module_id!r} has no exercise {exercise_id!r}")


class AttemptNotFound(NotFound):
    def __init__(self) -> None:
        super().__init__("test attempt expired or already submitted")


class InvalidAnswer(PortalError):
    """A formative answer does not match the exercise's answer shape."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
