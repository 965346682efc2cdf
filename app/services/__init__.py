"""
                        Services Module

Business logic of the kiosk. Hardware-facing services have a real and a
simulated implementation selected by configuration.

Services:
    - settings_store: JSON-encoded key/value settings
    - sequence: daily order numbering
    - orders: atomic order creation and print outcome tracking
    - receipt: thermal receipt layout
    - printing: printer devices and the driver adapter
    - print_jobs: post-commit receipt printing (local queue or Celery)
"""

from app.services.orders import OrderCreated, OrderLineInput, OrderService
from app.services.sequence import SequenceAllocator

__all__ = ["OrderCreated", "OrderLineInput", "OrderService", "SequenceAllocator"]
