"""Background scheduler for monthly contribution reminders."""

import logging
from datetime import datetime
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from mandal.core.config import settings
from mandal.db.base import SessionLocal
from mandal.models.contribution import Contribution, ContributionStatus
from mandal.models.notification import Notification, NotificationCategory
from mandal.services.member import list_reminder_candidates
from mandal.services.notification import notify

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None

REMINDER_JOB_ID = "send_contribution_reminders"


def reminder_title(month: str) -> str:
    return f"Contribution reminder for {month}"


# ---------------------------------------------------------------------------
# Job: remind members who have not contributed this month
# ---------------------------------------------------------------------------

def send_contribution_reminders(db: Session, now: Optional[datetime] = None) -> List[dict]:
    """Notify and email every eligible member with nothing submitted for the current month.

    Runs only on days 1..REMINDER_LAST_DAY. A member who already has a
    reminder for the month is skipped, as is anyone whose contribution for
    the month is pending or done. Returns one dict per member reminded.
    """
    now = now or datetime.now()
    if now.day > settings.REMINDER_LAST_DAY:
        return []
    month = now.strftime("%Y-%m")
    title = reminder_title(month)

    contributed = {
        member_id for (member_id,) in db.query(Contribution.member_id).filter(
            Contribution.month == month,
            Contribution.status != ContributionStatus.REJECTED,
        ).all()
    }
    already_reminded = {
        user_id for (user_id,) in db.query(Notification.user_id).filter(
            Notification.category == NotificationCategory.SYSTEM,
            Notification.title == title,
        ).all()
    }

    reminded: List[dict] = []
    for member in list_reminder_candidates(db):
        if member.id in contributed or member.id in already_reminded:
            continue
        description = f"We have not received your contribution for {month} yet. Please upload your payment slip."
        if not notify(db, [member.id], title, description, NotificationCategory.SYSTEM):
            continue

        from mandal.core.email import send_contribution_reminder_email
        emailed = send_contribution_reminder_email(member.email, member.name, month, now.day)
        reminded.append({"member_id": str(member.id), "name": member.name, "emailed": emailed})

    if reminded:
        logger.info("Sent %d contribution reminder(s) for %s", len(reminded), month)
    return reminded


def run_scheduled_tasks() -> None:
    """Entry point for the interval job; owns its own session."""
    db = SessionLocal()
    try:
        send_contribution_reminders(db)
    except Exception:
        db.rollback()
        logger.exception("Error in scheduled tasks")
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Scheduler lifecycle helpers
# ---------------------------------------------------------------------------

def start_scheduler() -> None:
    """Create and start the background scheduler."""
    global scheduler
    interval = settings.SCHEDULER_INTERVAL_MINUTES

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_tasks,
        trigger=IntervalTrigger(minutes=interval),
        id=REMINDER_JOB_ID,
        name="Monthly contribution reminders",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Background scheduler started with interval=%d minutes", interval)


def stop_scheduler() -> None:
    """Shut down the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    """Return current scheduler state for the status API."""
    if not scheduler or not scheduler.running:
        return {"running": False, "interval_minutes": None, "jobs": []}

    jobs = []
    current_interval = settings.SCHEDULER_INTERVAL_MINUTES
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })
        if job.id == REMINDER_JOB_ID and hasattr(job.trigger, "interval"):
            current_interval = int(job.trigger.interval.total_seconds() / 60)

    return {
        "running": True,
        "interval_minutes": current_interval,
        "jobs": jobs,
    }
