"""FastAPI application entry point.

Wires the feature routers under ``/api/v1``, configures middleware and
starts the daily maintenance loop that pays allowances and expires stale
records.
"""

import os
import logging
import asyncio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from allowance_tracker.routes import (
    auth,
    families,
    children,
    transactions,
    budgets,
    allowances,
    savings,
    goals,
    achievements,
    tasks,
    notifications,
    devices,
    gift_links,
    gifts,
    thank_you_notes,
    analytics,
    wishlist,
    invites,
)
from allowance_tracker.database import create_db_and_tables, async_session
from allowance_tracker.crud import expire_old_invites
from allowance_tracker.services import (
    achievements as achievement_service,
    allowances as allowance_service,
    device_tokens,
    gifts as gift_service,
    savings_goals,
    tasks as task_service,
)

# The log level can be changed per deployment without code changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
DAILY_JOB_ENABLED = os.getenv("DAILY_JOB_ENABLED", "true").lower() == "true"
API_PREFIX = "/api/v1"

app = FastAPI(title="Allowance Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Create tables, seed the badge catalog and start the daily loop."""

    await create_db_and_tables()
    async with async_session() as session:
        await achievement_service.ensure_badge_catalog(session)
    if DAILY_JOB_ENABLED:
        asyncio.create_task(daily_maintenance_task())


# each step runs on its own so one failure does not block the rest
DAILY_STEPS = (
    ("allowances", allowance_service.process_all_pending_allowances),
    ("recurring tasks", task_service.generate_recurring_tasks),
    ("expired challenges", savings_goals.check_expired_challenges),
    ("expired gifts", gift_service.expire_old_gifts),
    ("expired invites", expire_old_invites),
    ("stale device tokens", device_tokens.cleanup_stale_tokens),
)


async def run_daily_maintenance() -> dict:
    results = {}
    async with async_session() as session:
        for name, step in DAILY_STEPS:
            try:
                results[name] = await step(session)
            except Exception:
                logger.exception("Daily step '%s' failed", name)
                await session.rollback()
    logger.info("Daily maintenance finished: %s", results)
    return results


async def daily_maintenance_task():
    """Background coroutine that runs the maintenance steps once a day."""

    logger.info("Starting daily maintenance task")
    while True:
        try:
            await run_daily_maintenance()
        except Exception as exc:
            logger.exception("Daily maintenance task failed: %s", exc)
        await asyncio.sleep(60 * 60 * 24)


for module in (
    auth,
    families,
    children,
    transactions,
    budgets,
    allowances,
    savings,
    goals,
    achievements,
    tasks,
    notifications,
    devices,
    gift_links,
    gifts,
    thank_you_notes,
    analytics,
    wishlist,
    invites,
):
    app.include_router(module.router, prefix=API_PREFIX)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Allowance Tracker API"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
