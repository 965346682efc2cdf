"""
Shared fixtures for the kiosk backend tests.

Every test gets its own SQLite file in a temp dir, created with the same
engine setup and startup seeding as the application.
"""
import os

# Must be set before app modules read their settings
os.environ["PRINTER_DRIVER"] = "simulated"
os.environ["PRINTER_LOG_FILE"] = ""
os.environ["PRINTER_CONFIG_FILE"] = os.path.join(os.path.dirname(__file__), "missing.printer.json")
os.environ["PRINT_DISPATCH"] = "local"

from datetime import datetime
from decimal import Decimal
import random

import pytest
from sqlalchemy import func, select

from app.core.config import PrinterSettings
from app.database import build_engine, build_session_maker, init_db
from app.models import MenuItem, Order, OrderLine, PaymentMethod
from app.services.orders import OrderService
from app.services.printing import PrintDriverAdapter, SimulatedPrinterDevice
from app.services.sequence import SequenceAllocator
from app.services.settings_store import STORE_NAME_EN, STORE_NAME_ZH, set_setting


# ============================================================================
# TEST DOUBLES
# ============================================================================

class FakeClock:
    """Settable local clock for the sequence allocator."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingDispatcher:
    """Collects scheduled order ids instead of printing."""

    mode = "recording"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.scheduled: list[int] = []

    async def schedule(self, order_id: int) -> None:
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.scheduled.append(order_id)


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'kiosk.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def catalog(session_maker):
    """
    Menu and payment methods used across tests.

    - #5 叉燒飯 12.50 and #6 奶茶 8.00 are orderable
    - #9 is retired (inactive)
    - payment #1 cash is active, #2 octopus is disabled
    """
    async with session_maker() as session:
        async with session.begin():
            session.add_all([
                MenuItem(id=5, name_zh="叉燒飯", name_en="BBQ Pork Rice",
                         price=Decimal("12.50"), category="rice", sort_order=1),
                MenuItem(id=6, name_zh="奶茶", name_en="Milk Tea",
                         price=Decimal("8.00"), category="drink", sort_order=2),
                MenuItem(id=9, name_zh="停售套餐", name_en="Retired Set",
                         price=Decimal("30.00"), category="rice", is_active=False),
                PaymentMethod(id=1, code="cash", name_zh="現金", name_en="Cash", sort_order=1),
                PaymentMethod(id=2, code="octopus", name_zh="八達通", name_en="Octopus",
                              is_active=False, sort_order=2),
            ])
            await set_setting(session, STORE_NAME_ZH, "測試門店")
            await set_setting(session, STORE_NAME_EN, "Test Store")


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 13, 45, 2))


@pytest.fixture
def allocator(clock):
    return SequenceAllocator(clock=clock, rng=random.Random(7))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def order_service(session_maker, allocator, dispatcher, catalog):
    return OrderService(session_maker, allocator=allocator, dispatcher=dispatcher)


@pytest.fixture
def printer_config():
    return PrinterSettings(driver="simulated", check_status=True, post_print_settle_seconds=0)


@pytest.fixture
def printer():
    return SimulatedPrinterDevice()


@pytest.fixture
def adapter(printer, printer_config):
    sleeps = []
    adapter = PrintDriverAdapter(printer, printer_config, sleep=sleeps.append)
    adapter.sleeps = sleeps
    return adapter


# ============================================================================
# HELPERS
# ============================================================================

@pytest.fixture
def count_rows(session_maker):
    """Return (orders, order_lines) row counts."""

    async def _count():
        async with session_maker() as session:
            orders = await session.scalar(select(func.count(Order.id)))
            lines = await session.scalar(select(func.count(OrderLine.id)))
            return orders, lines

    return _count
