"""
Receipt Print Job Tests

Post-commit pipeline: load the order, render, print, record the outcome.
Plus the local queue dispatcher and the Celery task path.
"""
import asyncio
from decimal import Decimal
from functools import partial

from app.models import PrintStatus
from app.services.orders import OrderLineInput, OrderService, load_order
from app.services.print_jobs import (
    LocalPrintDispatcher,
    build_order_receipt,
    process_print_job,
)
from app.services.printing import PrinterStatus, PrintResult


async def place_order(order_service, quantity=2):
    return await order_service.create_order(
        [OrderLineInput(menu_item_id=5, quantity=quantity, price=Decimal("12.50"))],
        Decimal("12.50") * quantity,
        payment_method_id=1,
    )


# ============================================================================
# RECEIPT CONTENT
# ============================================================================

class TestBuildOrderReceipt:

    async def test_receipt_reflects_committed_order(self, order_service, session_maker):
        created = await place_order(order_service)

        async with session_maker() as session:
            job = await build_order_receipt(session, created.order_id)

        texts = [run.text for run in job.text_runs()]
        assert texts[0] == "測試門店 - Test Store"
        assert created.ticket_number in texts
        assert f"交易號(TN): {created.code}" in texts
        assert any(t.startswith("叉燒飯") for t in texts)
        assert any(t.startswith("合計 Total") and "$25.00" in t for t in texts)
        assert any(t.startswith("支付類型") and t.endswith("現金") for t in texts)
        assert job.reference == created.code

    async def test_unknown_order(self, session_maker, catalog):
        async with session_maker() as session:
            assert await build_order_receipt(session, 777) is None


# ============================================================================
# PROCESSING
# ============================================================================

class TestProcessPrintJob:
    """Outcome is written back to the order; the order itself never changes."""

    async def test_successful_print_is_recorded(self, order_service, session_maker, adapter, printer):
        created = await place_order(order_service)

        result = await process_print_job(created.order_id, session_maker, adapter)

        assert result.success
        assert "測試門店 - Test Store" in printer.printed_lines()
        async with session_maker() as session:
            order = await load_order(session, order_id=created.order_id)
        assert order.print_status == PrintStatus.SUCCESS
        assert order.print_message == "Printed on simulated device"

    async def test_paper_out_after_print(self, order_service, session_maker, adapter, printer):
        """
        Scenario: order commits, printer runs out of paper during the job.
        Expected: order intact, print_status=error with the device message.
        """
        created = await place_order(order_service)
        printer.queue_statuses(PrinterStatus.NORMAL, PrinterStatus.PAPER_OUT)

        result = await process_print_job(created.order_id, session_maker, adapter)

        assert not result.success
        async with session_maker() as session:
            order = await load_order(session, order_id=created.order_id)
        assert order.print_status == PrintStatus.ERROR
        assert "may be incomplete" in order.print_message
        assert order.total_amount == Decimal("25.00")
        assert len(order.lines) == 1

    async def test_printer_offline_before_print(self, order_service, session_maker, adapter, printer):
        created = await place_order(order_service)
        printer.queue_statuses(PrinterStatus.OFFLINE)

        await process_print_job(created.order_id, session_maker, adapter)

        async with session_maker() as session:
            order = await load_order(session, order_id=created.order_id)
        assert order.print_status == PrintStatus.ERROR
        assert "offline" in order.print_message
        assert printer.printed == []

    async def test_unknown_order_is_not_printed(self, session_maker, catalog, adapter, printer):
        result = await process_print_job(4242, session_maker, adapter)

        assert not result.success
        assert "not found" in result.message
        assert printer.calls == []


# ============================================================================
# LOCAL DISPATCHER
# ============================================================================

class TestLocalPrintDispatcher:
    """Single consumer, FIFO, survives crashing jobs."""

    async def test_jobs_run_in_order(self):
        handled = []

        async def processor(order_id):
            await asyncio.sleep(0)
            handled.append(order_id)
            return PrintResult(success=True, message="Printed")

        dispatcher = LocalPrintDispatcher(processor)
        for order_id in (1, 2, 3):
            await dispatcher.schedule(order_id)
        await dispatcher.join()

        assert handled == [1, 2, 3]
        assert dispatcher.pending == 0
        await dispatcher.stop()

    async def test_crashing_job_does_not_stop_consumer(self):
        handled = []

        async def processor(order_id):
            if order_id == 2:
                raise RuntimeError("renderer exploded")
            handled.append(order_id)

        dispatcher = LocalPrintDispatcher(processor)
        await dispatcher.start()
        for order_id in (1, 2, 3):
            await dispatcher.schedule(order_id)
        await dispatcher.join()

        assert handled == [1, 3]
        await dispatcher.stop()

    async def test_stop_is_idempotent(self):
        dispatcher = LocalPrintDispatcher(lambda order_id: None)
        await dispatcher.stop()
        await dispatcher.start()
        await dispatcher.stop()
        await dispatcher.stop()
        assert dispatcher.mode == "local"

    async def test_order_to_paper(self, session_maker, allocator, catalog, adapter, printer):
        """
        Scenario: order service wired to the local dispatcher.
        Expected: create_order returns at once, the queued job prints
        the receipt and marks the order printed.
        """
        dispatcher = LocalPrintDispatcher(
            partial(process_print_job, session_maker=session_maker, adapter=adapter)
        )
        service = OrderService(session_maker, allocator=allocator, dispatcher=dispatcher)

        created = await place_order(service, quantity=1)
        await dispatcher.join()
        await dispatcher.stop()

        assert created.ticket_number in printer.printed_lines()
        async with session_maker() as session:
            order = await load_order(session, order_id=created.order_id)
        assert order.print_status == PrintStatus.SUCCESS


# ============================================================================
# CELERY DISPATCH
# ============================================================================

class TestCeleryDispatch:
    """Worker task and the dispatcher that publishes it (no broker)."""

    async def test_dispatcher_publishes_task(self, monkeypatch):
        from app import tasks
        from app.services.print_jobs import CeleryPrintDispatcher

        published = []

        class FakeAsyncResult:
            id = "task-1"

        def fake_delay(order_id):
            published.append(order_id)
            return FakeAsyncResult()

        monkeypatch.setattr(tasks.print_order_receipt, "delay", fake_delay)

        dispatcher = CeleryPrintDispatcher()
        await dispatcher.schedule(12)

        assert published == [12]
        assert dispatcher.mode == "celery"

    def test_task_reports_print_result(self, monkeypatch):
        from app import tasks

        async def fake_job(order_id):
            return PrintResult(success=False, message="Printer is offline",
                               status=PrinterStatus.OFFLINE)

        monkeypatch.setattr(tasks, "run_standalone_print_job", fake_job)

        payload = tasks.print_order_receipt.apply(args=(12,)).get()

        assert payload["order_id"] == 12
        assert payload["success"] is False
        assert payload["status"] == "offline"
        assert "processing_time_seconds" in payload
