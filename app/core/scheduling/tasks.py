"""Centralised scheduling of the notification background jobs."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from app.core.config import settings
from app.core.database import SessionLocal
from app.modules.notifications.tasks import (
    check_subscription_expiry,
    process_due_notifications,
)

logger = logging.getLogger(__name__)


def start_scheduler(app: FastAPI) -> Optional[AsyncIOScheduler]:
    """
    Start the job scheduler on the running event loop; nothing is scheduled under test.
    """
    if settings.environment.lower() == "test":
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_due_notifications,
        "interval",
        seconds=settings.due_scan_interval_seconds,
        args=[app],
        id="due_notifications",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_subscription_expiry_check,
        "cron",
        hour=settings.subscription_check_hour,
        args=[app],
        id="subscription_expiry",
        coalesce=True,
    )
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info("Notification scheduler started")
    return scheduler


def stop_scheduler(app: FastAPI) -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        app.state.scheduler = None


async def run_due_notifications(app: FastAPI) -> None:
    gateway = getattr(app.state, "push_gateway", None)
    if gateway is None:
        logger.warning("Push gateway not initialised; due notifications left pending")
        return
    db = SessionLocal()
    try:
        await process_due_notifications(db, gateway)
    finally:
        db.close()


async def run_subscription_expiry_check(app: FastAPI) -> None:
    db = SessionLocal()
    try:
        await check_subscription_expiry(db, getattr(app.state, "push_gateway", None))
    finally:
        db.close()


__all__ = [
    "run_due_notifications",
    "run_subscription_expiry_check",
    "start_scheduler",
    "stop_scheduler",
]
