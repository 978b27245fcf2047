from celery import Celery
from kombu import Exchange, Queue
from .config import settings


broker_url = settings.CELERY_BROKER_URL or settings.RABBITMQ_URL
result_backend = settings.CELERY_RESULT_BACKEND or None

celery_app = Celery(
    "expiry_reminders",
    broker=broker_url,
    backend=result_backend,
    include=["expiry_tracker.reminders.tasks"],
)

exchange = Exchange(settings.RABBITMQ_EXCHANGE, type="direct", durable=True)

# Reconciliation runs on its own queue, apart from deliveries
delivery_queue = Queue(
    settings.DELIVERY_QUEUE, exchange=exchange, routing_key=settings.DELIVERY_ROUTING_KEY, durable=True
)
maintenance_queue = Queue(
    settings.MAINTENANCE_QUEUE, exchange=exchange, routing_key=settings.MAINTENANCE_ROUTING_KEY, durable=True
)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    broker_connection_retry_on_startup=True,
    task_default_queue=delivery_queue.name,
    task_default_exchange=exchange.name,
    task_default_routing_key=settings.DELIVERY_ROUTING_KEY,
    task_queues=(delivery_queue, maintenance_queue),
    task_routes={
        "reminders.reconcile": {
            "queue": maintenance_queue.name,
            "routing_key": settings.MAINTENANCE_ROUTING_KEY,
        },
    },
)

celery_app.conf.beat_schedule = {
    "reconcile-expiry-reminders": {
        "task": "reminders.reconcile",
        "schedule": settings.RECONCILE_INTERVAL_SECONDS,
    },
}
