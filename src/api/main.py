import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.adapters.dev_jobs import DevPaymentSweeper
from src.api.deps import get_payment_orchestrator, get_rules, get_settings
from src.app_shell.config import validate_ops_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = get_rules(settings)
        validate_ops_rules(rules, settings.base_dir)
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    sweeper: DevPaymentSweeper | None = None
    if rules.ops.run_sweeper:
        sweeper = DevPaymentSweeper(
            get_payment_orchestrator(settings, rules),
            poll_interval_seconds=rules.ops.sweep_interval_seconds,
        )
        sweeper.start()

    yield

    if sweeper is not None:
        sweeper.stop()


app = FastAPI(
    title="Lumora LMS API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import (  # noqa: E402
    admin_payments,
    courses,
    me,
    payment_callbacks,
    purchases,
)

app.include_router(courses.router, prefix="/api/courses", tags=["Courses"])
app.include_router(me.router, prefix="/api/me", tags=["Profile"])
app.include_router(purchases.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(payment_callbacks.router, prefix="/api/payments", tags=["Payment Callbacks"])
app.include_router(admin_payments.router, prefix="/api/admin/payments", tags=["Admin Payments"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
