from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer

from portal.core.config import SETTINGS
from portal.core.errors import AuthenticationMissing
from portal.db.engine import async_session_factory
from portal.models.principal import Actor, resolve_role
from portal.models.submission import ClientMetadata
from portal.repos.stores import Stores, in_memory_stores, pg_stores
from portal.services import token_service
from portal.services.session_cache import SessionContext

logger = logging.getLogger(__name__)

SESSION_COOKIE = "portal_sid"

# auto_error=False: a missing token must become AuthenticationMissing
# (redirect to login), not FastAPI's bare 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


def require_user(
    raw_token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Actor:
    """Validate the bearer token and return the request's Actor.

    Used as a FastAPI dependency on every engine endpoint.
    """
    if not raw_token:
        raise AuthenticationMissing()
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise AuthenticationMissing("token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise AuthenticationMissing("invalid token") from None

    role = resolve_role(claims.get("roles", []))
    if role is None:
        logger.warning("Token for user=%s carries no portal role", claims["sub"])
        raise AuthenticationMissing("no portal role")

    actor = Actor(user_id=claims["sub"], role=role, display_name=claims.get("name", ""))
    logger.debug("Token validated for user=%s role=%s", actor.user_id, actor.role)
    return actor


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        actor: Annotated[Actor, Depends(require_user)],
    ) -> Actor:
        if actor.role not in roles:
            logger.warning(
                "Access denied: user=%s role=%s required_any=%s",
                actor.user_id,
                actor.role,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return _guard


async def get_stores() -> AsyncGenerator[Stores, None]:
    """Request-scoped store bundle: Pg repos on one session, or in-memory."""
    if async_session_factory is None:
        yield in_memory_stores()
        return
    async with async_session_factory() as session:
        yield pg_stores(session)


def get_session_context(
    request: Request,
    response: Response,
    actor: Annotated[Actor, Depends(require_user)],
) -> SessionContext:
    """Session mirror for this browser, issuing the cookie on first use."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = secrets.token_urlsafe(24)
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=SETTINGS.session_ttl_seconds,
            httponly=True,
            samesite="lax",
            secure=SETTINGS.is_prod,
        )
    return SessionContext(session_id, actor.user_id)


def client_metadata(request: Request) -> ClientMetadata:
    return ClientMetadata(
        ip_address=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
    )
