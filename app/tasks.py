"""
Celery Tasks
Background receipt printing for PRINT_DISPATCH=celery.
"""

import asyncio
import logging
import time
from datetime import datetime

from app.celery_worker import celery_app
from app.services.print_jobs import run_standalone_print_job

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name='app.tasks.print_order_receipt')
def print_order_receipt(self, order_id: int) -> dict:
    """
    Print the receipt of a committed order.

    Not retried: a failed print is recorded on the order
    (print_status=error) and a reprint is a staff decision.

    Args:
        order_id: Primary key of the order

    Returns:
        dict: PrintResult fields plus task metadata
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: printing receipt for order #{order_id}")
    start_time = time.time()

    result = asyncio.run(run_standalone_print_job(order_id))

    elapsed = round(time.time() - start_time, 3)
    payload = result.to_dict()
    payload['order_id'] = order_id
    payload['task_id'] = task_id
    payload['processing_time_seconds'] = elapsed

    if result.success:
        logger.info(f"Task {task_id}: order #{order_id} printed in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: order #{order_id} not printed - {result.message}")

    return payload


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }
