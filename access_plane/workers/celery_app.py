from celery import Celery

from access_plane.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "access_plane",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "access_plane.workers.tasks.otc_notifications",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)


@celery_app.task(name="access_plane.workers.celery_app.ping")
def ping() -> str:
    return "pong"
