from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.api.admin import router as admin_router
from portal.api.assessments import router as assessments_router
from portal.api.exercises import router as exercises_router
from portal.api.health import router as health_router
from portal.api.metrics_endpoint import router as metrics_router
from portal.api.modules import router as modules_router
from portal.core.config import SETTINGS
from portal.core.errors import (
    AuthenticationMissing,
    AuthorizationDenied,
    InvalidAnswer,
    NotFound,
    PersistenceUnavailable,
)
from portal.core.logging import setup_logging
from portal.db.engine import lifespan_db
from portal.db.redis import lifespan_redis
from portal.middleware.metrics import MetricsMiddleware
from portal.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_id_filter()

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
# Where a denial page sends the learner back to: always viewable.
DENIAL_BACK_TO = "/v1/modules"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nesting tears down in reverse order, even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="learning-portal",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# ---------------------------------------------------------------------------
# Error rendering: bounded bodies, never another user's data
# ---------------------------------------------------------------------------


@app.exception_handler(AuthenticationMissing)
async def _authentication_missing(request: Request, exc: AuthenticationMissing) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "detail": exc.message,
            "login_url": f"{LOGIN_PATH}?next={quote(request.url.path, safe='/')}",
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(AuthorizationDenied)
async def _authorization_denied(_request: Request, exc: AuthorizationDenied) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": "access denied",
            "reason": exc.reason,
            "role": exc.actor.role,
            "user_id": exc.actor.user_id,
            "back_to": DENIAL_BACK_TO,
        },
    )


@app.exception_handler(PersistenceUnavailable)
async def _persistence_unavailable(_request: Request, _exc: PersistenceUnavailable) -> JSONResponse:
    # Already logged with full context where it was raised.
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "not saved"},
    )


@app.exception_handler(NotFound)
async def _not_found(_request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(InvalidAnswer)
async def _invalid_answer(_request: Request, exc: InvalidAnswer) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail},
    )


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(modules_router)
app.include_router(exercises_router)
app.include_router(assessments_router)
app.include_router(admin_router)

logger.info(
    "learning-portal started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
