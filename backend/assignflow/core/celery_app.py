from celery import Celery
from celery.schedules import crontab
from assignflow.core.config import settings
import ssl

celery_app = Celery(
    "assignflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["assignflow.tasks.email_tasks", "assignflow.tasks.paysheet_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
)

# Managed Redis (rediss://) with self-signed certs
if settings.CELERY_BROKER_URL.startswith("rediss://"):
    celery_app.conf.update(
        broker_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
        redis_backend_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
    )

celery_app.conf.beat_schedule = {
    "backfill-paysheets": {
        "task": "assignflow.tasks.paysheet_tasks.backfill_paysheets",
        "schedule": crontab(minute=0, hour=settings.PAYSHEET_BACKFILL_HOUR),
    },
}
