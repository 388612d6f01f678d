from celery import Celery
from app.config import settings

celery_app = Celery(
    "hubisck",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    broker_connection_retry_on_startup=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # DNS polling is short and idempotent; ack late so a worker crash re-delivers
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={"app.tasks.domain_tasks.*": {"queue": "domains"}},
    beat_schedule={
        # restarts polling chains lost to worker restarts or broker outages
        "sweep-pending-domains": {
            "task": "app.tasks.domain_tasks.sweep_pending_domains_task",
            "schedule": float(settings.DOMAIN_SWEEP_INTERVAL_SECONDS),
        },
    },
)

# Explicitly import tasks to ensure they are registered
import app.tasks.domain_tasks  # noqa: F401, E402
