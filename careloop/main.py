from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from careloop.db.base import get_db
from careloop.core.config import settings
from careloop.core.logging import setup_logging
from careloop.routers import events as events_router
from careloop.routers import scheduling as scheduling_router
from careloop.routers import feeding as feeding_router
from careloop.routers import alerts as alerts_router
from careloop.core.errors import (
    CareLoopException,
    careloop_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="CareLoop API",
    description=(
        "**Household care-reminder scheduling engine**\n\n"
        "Turns prescriptions, feeding schedules, age-based lifecycle schedules and "
        "public-health alerts into deduplicated, prioritized care events; adjusts "
        "priorities from behavior and pays rewards on completion.\n\n"
        "Every request is scoped to the `X-Owner-Id` header. "
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CareLoopException, careloop_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(events_router.router)
app.include_router(scheduling_router.router)
app.include_router(feeding_router.router)
app.include_router(alerts_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
