"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Only used when PRINT_DISPATCH=celery. The worker owns the receipt printer,
so it must run as a single process:

    celery -A app.celery_worker worker --pool=solo -Q printing
"""

from celery import Celery

from app.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'orderfood_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['app.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # All receipt jobs go to one queue consumed by the printer worker
    task_routes={'app.tasks.print_order_receipt': {'queue': 'printing'}},

    # Worker settings
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_concurrency=1,  # One printer handle per kiosk

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    # Fix for Celery 6.0 warning
    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
