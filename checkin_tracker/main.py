import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from checkin_tracker.core.config import settings
from checkin_tracker.core.logging_config import configure_logging
from checkin_tracker.routers import checkins as checkins_router
from checkin_tracker.routers import health as health_router
from checkin_tracker.storage import create_store
from checkin_tracker.core.errors import (
    CheckinException,
    checkin_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build and initialize the store before serving. Initialization failure is
    fatal: the exception propagates and the server never accepts traffic.
    A store already placed on app.state (tests) is used as-is.
    """
    store = getattr(app.state, "store", None)
    owned = store is None
    if owned:
        store = create_store(settings)
        # Off the event loop so the worker keeps heartbeating through backoff sleeps.
        await run_in_threadpool(store.initialize)
        app.state.store = store
    try:
        yield
    finally:
        if owned:
            logger.info("Shutting down, closing %s", store.backend_name)
            store.close()
            app.state.store = None


app = FastAPI(
    title="Check-in Tracker API",
    description=(
        "Daily check-ins: five ratings (1-10) per user per calendar day, "
        "with atomic CSV import/export of a user's full history.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
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
app.add_exception_handler(CheckinException, checkin_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(health_router.router)
app.include_router(checkins_router.router)
