"""
Celery application configuration.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "orca",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.workers.payment_expiry",
        "app.workers.lease_expiry",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Africa/Lagos",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Expire checkouts that were never completed
    "hourly-payment-expiry": {
        "task": "app.workers.payment_expiry.expire_stale_payments",
        "schedule": crontab(minute=15, hour="*"),
    },
    # Daily lease expiry just after midnight
    "daily-lease-expiry": {
        "task": "app.workers.lease_expiry.update_expired_leases",
        "schedule": crontab(hour=0, minute=5),
    },
}
