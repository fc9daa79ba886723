"""Celery application configuration (scheduled lead maintenance)."""

from celery import Celery
from celery.schedules import crontab

from intake_core.config import get_settings

settings = get_settings()

app = Celery(
    "intake_core",
    broker=settings.redis.url,
    backend=settings.redis.url,
    include=[
        "intake_core.tasks.maintenance",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,  # 1 hour
)

# Celery Beat schedule (periodic tasks)
app.conf.beat_schedule = {
    # Expire pending matches past the expiry window every hour
    "expire-stale-matches": {
        "task": "intake_core.tasks.maintenance.expire_stale_matches",
        "schedule": crontab(minute=0),
    },
    # Reset monthly claim counters on the 1st at 00:05 UTC
    "reset-monthly-lead-usage": {
        "task": "intake_core.tasks.maintenance.reset_monthly_lead_usage",
        "schedule": crontab(minute=5, hour=0, day_of_month=1),
    },
}

if __name__ == "__main__":
    app.start()
