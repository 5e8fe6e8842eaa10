"""FastAPI server for the FrameLord backend"""

from __future__ import annotations

import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from framelord.api.middleware.rate_limit import RateLimitMiddleware
from framelord.api.middleware.security_headers import SecurityHeadersMiddleware
from framelord.api.routes.billing import router as billing_router
from framelord.api.routes.contacts import router as contacts_router
from framelord.api.routes.credits import router as credits_router
from framelord.api.routes.framescan import router as framescan_router
from framelord.api.routes.health import router as health_router
from framelord.api.routes.llm import router as llm_router
from framelord.api.routes.messaging import router as messaging_router
from framelord.api.routes.notes import router as notes_router
from framelord.api.routes.psychometrics import router as psychometrics_router
from framelord.api.routes.system_log import router as system_log_router
from framelord.api.routes.tasks import router as tasks_router
from framelord.config import APP_VERSION, BASE_URL, RATE_LIMIT_RPH, RATE_LIMIT_RPM, is_development
from framelord.infrastructure.database import init_database
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter, log_event
from framelord.utils.redaction import redact

load_dotenv()

app = FastAPI(title="FrameLord API", version=APP_VERSION)

logger = get_logger(__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Sanitized 422: field names only, never the validation rules or input."""
    logger.warning("Validation error on %s: %s", redact(str(request.url)), exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


ALLOWED_ORIGINS = [
    BASE_URL,
    "https://www.framelord.com",
    "https://framelord.com",
]

if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys(ALLOWED_ORIGINS)),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Client-Id"],
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
)

app.add_middleware(SecurityHeadersMiddleware)

try:
    logger.info("Initializing database schema...")
    init_database()
    logger.info("Database initialization complete")
except FileNotFoundError as e:
    logger.critical("Database file not found: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(billing_router)
app.include_router(credits_router)
app.include_router(messaging_router)
app.include_router(llm_router)
app.include_router(framescan_router)
app.include_router(psychometrics_router)
app.include_router(contacts_router)
app.include_router(notes_router)
app.include_router(tasks_router)
app.include_router(system_log_router)

log_event("api.startup", service="framelord-api", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "FrameLord API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "integrations": "/api/health/integrations",
            "stripe": "/api/stripe",
            "credits": "/api/credits",
            "messaging": "/api/messaging",
            "llm": "/api/llm",
            "annotate": "/api/annotate",
            "framescan": "/api/framescan",
            "psychometrics": "/api/psychometrics",
            "contacts": "/api/contacts",
            "notes": "/api/notes",
            "tasks": "/api/tasks",
            "system_log": "/api/system-log",
        },
    }
