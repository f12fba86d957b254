from celery import Celery
from kombu import Exchange, Queue

from .channels import Channel
from .config import settings


broker_url = settings.CELERY_BROKER_URL or settings.RABBITMQ_URL
result_backend = settings.CELERY_RESULT_BACKEND or None

celery_app = Celery(
    "reminders",
    broker=broker_url,
    backend=result_backend,
)

exchange = Exchange(settings.RABBITMQ_EXCHANGE, type="direct", durable=True)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    task_default_queue=settings.RABBITMQ_QUEUE,
    task_default_exchange=settings.RABBITMQ_EXCHANGE,
    task_default_routing_key=settings.RABBITMQ_ROUTING_KEY,
    include=["assetminder.reminders.tasks"],
    task_queues=(
        Queue(settings.RABBITMQ_QUEUE, exchange=exchange, routing_key=settings.RABBITMQ_ROUTING_KEY, durable=True),
    ),
)

# One dispatcher pass per channel every interval, plus a daily retention sweep
celery_app.conf.beat_schedule = {
    **{
        f"dispatch-{channel.value}": {
            "task": "reminders.dispatch",
            "schedule": settings.DISPATCH_INTERVAL_SECONDS,
            "args": (channel.value,),
        }
        for channel in Channel
    },
    "sweep-expired": {
        "task": "reminders.sweep",
        "schedule": settings.RETENTION_INTERVAL_SECONDS,
    },
}
