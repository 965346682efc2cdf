"""
Receipt Print Jobs

Post-commit printing, decoupled from the order request:

    OrderService ──schedule(order_id)──▶ dispatcher ──▶ process_print_job()
                                                          │
                       load order ◀───────────────────────┘
                       render receipt
                       adapter.execute()   (worker thread)
                       record_print_outcome()

Dispatch modes (PRINT_DISPATCH):
    - local  → asyncio.Queue drained by one consumer task in the API process
    - celery → print_order_receipt task on a single-process worker

Both modes run at most one job against the printer at a time.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import PrintDispatchMode, get_printer_settings, get_settings
from app.database import async_session_maker, build_engine, build_session_maker
from app.services.orders import OrderService, load_order
from app.services.printing import PrintDriverAdapter, PrintJob, PrintResult, get_print_adapter
from app.services.receipt import (
    PaymentInfo,
    ReceiptLine,
    ReceiptOrder,
    StoreInfo,
    render_receipt,
)
from app.services.settings_store import STORE_NAME_EN, STORE_NAME_ZH, get_settings_map

logger = logging.getLogger(__name__)


# =============================================================================
# JOB PROCESSING
# =============================================================================

async def build_order_receipt(session: AsyncSession, order_id: int) -> Optional[PrintJob]:
    """Load a committed order and render its receipt; None if it does not exist."""
    order = await load_order(session, order_id=order_id)
    if order is None:
        return None

    names = await get_settings_map(session, (STORE_NAME_ZH, STORE_NAME_EN))
    store = StoreInfo(
        name_zh=str(names.get(STORE_NAME_ZH) or ""),
        name_en=str(names.get(STORE_NAME_EN) or ""),
    )

    payment = None
    if order.payment_method is not None:
        payment = PaymentInfo(
            name_zh=order.payment_method.name_zh or "",
            name_en=order.payment_method.name_en or "",
        )

    lines = [
        ReceiptLine(
            name=line.menu_item.display_name if line.menu_item else f"#{line.menu_item_id}",
            quantity=line.quantity,
            price=Decimal(line.price),
            subtotal=Decimal(line.subtotal),
        )
        for line in order.lines
    ]

    return render_receipt(
        ReceiptOrder(
            code=order.code,
            daily_sequence=order.daily_sequence,
            order_kind=order.order_kind,
            total_amount=Decimal(order.total_amount),
            ordered_at=order.created_at,
        ),
        lines,
        store,
        payment,
        default_encoding=get_printer_settings().text_encoding,
        currency=get_settings().currency_symbol,
    )


async def process_print_job(
    order_id: int,
    session_maker: async_sessionmaker[AsyncSession],
    adapter: PrintDriverAdapter,
) -> PrintResult:
    """
    Print the receipt of one committed order and record the outcome.

    Never raises: rendering and device faults end up on the order as
    print_status=error.
    """
    try:
        async with session_maker() as session:
            job = await build_order_receipt(session, order_id)
    except Exception as e:
        logger.exception(f"Could not prepare receipt for order #{order_id}")
        result = PrintResult(success=False, message=f"Receipt could not be prepared: {e}")
    else:
        if job is None:
            logger.warning(f"Print requested for unknown order #{order_id}")
            return PrintResult(success=False, message=f"Order #{order_id} not found")
        # Device calls block; keep them off the event loop.
        result = await asyncio.to_thread(adapter.execute, job)

    level = logging.INFO if result.success else logging.WARNING
    logger.log(level, f"Order #{order_id} print outcome: {result.message}")

    await OrderService(session_maker).record_print_outcome(
        order_id, result.success, result.message
    )
    return result


# =============================================================================
# DISPATCHERS
# =============================================================================

class BasePrintDispatcher(ABC):
    """Hands committed order ids to the print pipeline."""

    @property
    @abstractmethod
    def mode(self) -> str:
        pass

    @abstractmethod
    async def schedule(self, order_id: int) -> None:
        """Queue a receipt print. Must return without waiting for the printer."""
        pass

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class LocalPrintDispatcher(BasePrintDispatcher):
    """
    In-process queue with a single consumer task.

    Args:
        processor: Coroutine function printing one order id
    """

    def __init__(self, processor: Callable[[int], Awaitable[PrintResult]]):
        self._processor = processor
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def mode(self) -> str:
        return PrintDispatchMode.LOCAL.value

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name="receipt-printer")
        logger.info("Local print dispatcher started")

    async def schedule(self, order_id: int) -> None:
        if self._consumer is None or self._consumer.done():
            await self.start()
        self._queue.put_nowait(order_id)
        logger.debug(f"Receipt for order #{order_id} queued ({self.pending} waiting)")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        if self._consumer is None:
            return
        consumer, self._consumer = self._consumer, None
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
        if self.pending:
            logger.warning(f"Print dispatcher stopped with {self.pending} receipts unprinted")
        logger.info("Local print dispatcher stopped")

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            order_id = await queue.get()
            try:
                await self._processor(order_id)
            except Exception:
                logger.exception(f"Print job for order #{order_id} crashed")
            finally:
                queue.task_done()


class CeleryPrintDispatcher(BasePrintDispatcher):
    """Sends print jobs to the Celery worker."""

    @property
    def mode(self) -> str:
        return PrintDispatchMode.CELERY.value

    async def schedule(self, order_id: int) -> None:
        from app.tasks import print_order_receipt

        # Publishing may block on the broker connection
        task = await asyncio.to_thread(print_order_receipt.delay, order_id)
        logger.debug(f"Receipt for order #{order_id} sent to worker (task {task.id})")


@lru_cache()
def get_print_dispatcher() -> BasePrintDispatcher:
    """Get the process-wide print dispatcher for the configured mode."""
    settings = get_settings()

    if settings.print_dispatch == PrintDispatchMode.CELERY:
        logger.info("Print dispatch: celery worker")
        return CeleryPrintDispatcher()

    async def _process(order_id: int) -> PrintResult:
        return await process_print_job(order_id, async_session_maker, get_print_adapter())

    logger.info("Print dispatch: local queue")
    return LocalPrintDispatcher(_process)


async def run_standalone_print_job(order_id: int) -> PrintResult:
    """
    Print one order from a fresh event loop (Celery worker).

    Uses its own engine without pooling: pooled connections are bound to
    the loop that created them, and each task runs in a new loop.
    """
    settings = get_settings()
    engine = build_engine(settings.database_url, null_pool=True)
    try:
        return await process_print_job(order_id, build_session_maker(engine), get_print_adapter())
    finally:
        await engine.dispose()
