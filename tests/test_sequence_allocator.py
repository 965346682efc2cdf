"""
Sequence Allocator Tests

Daily counters per order kind, day rollover, long-form code layout and
failure behaviour.
"""
import re
from datetime import datetime

import pytest

from app.core.exceptions import AllocationError
from app.models import OrderKind
from app.services.sequence import fallback_code, format_sequence, ticket_number
from app.services.settings_store import (
    DAILY_DINE_IN_SEQUENCE,
    DAILY_SEQUENCE_DATE,
    DAILY_TAKEOUT_SEQUENCE,
    STORE_NUMBER,
    get_setting,
    set_setting,
)

CODE_PATTERN = re.compile(r"^[DT]\d{3}\d{8}\d{6}\d{2}\d{4,}$")


@pytest.fixture
def allocate(session_maker, allocator):
    """Allocate in a committed transaction of its own."""

    async def _allocate(kind=OrderKind.DINE_IN, store_id=1):
        async with session_maker() as session:
            async with session.begin():
                return await allocator.allocate(session, kind, store_id)

    return _allocate


@pytest.fixture
def store_settings(session_maker):
    """Write settings directly, as an operator would."""

    async def _write(**values):
        async with session_maker() as session:
            async with session.begin():
                for key, value in values.items():
                    await set_setting(session, key, value)

    return _write


# ============================================================================
# DAILY COUNTER
# ============================================================================

class TestDailyCounter:
    """Counter state in the settings table."""

    async def test_first_order_of_the_day_is_one(self, allocate, session_maker):
        allocation = await allocate()

        assert allocation.daily_sequence == 1
        assert allocation.ticket_number == "D0001"
        async with session_maker() as session:
            assert await get_setting(session, DAILY_SEQUENCE_DATE) == "20261018"
            assert await get_setting(session, DAILY_DINE_IN_SEQUENCE) == 1

    async def test_same_day_increments_without_gaps(self, allocate):
        sequences = [(await allocate()).daily_sequence for _ in range(5)]
        assert sequences == [1, 2, 3, 4, 5]

    async def test_kinds_count_independently(self, allocate):
        assert (await allocate(OrderKind.DINE_IN)).daily_sequence == 1
        assert (await allocate(OrderKind.DINE_IN)).daily_sequence == 2
        assert (await allocate(OrderKind.TAKEOUT)).daily_sequence == 1
        assert (await allocate(OrderKind.DINE_IN)).daily_sequence == 3
        assert (await allocate(OrderKind.TAKEOUT)).daily_sequence == 2

    async def test_new_day_restarts_both_kinds(self, allocate, clock):
        """
        Scenario:
        - Day 1: three dine-in and two takeout orders
        - Day 2: one dine-in, then one takeout
        Expected: both kinds restart at 1 on day 2
        """
        for _ in range(3):
            await allocate(OrderKind.DINE_IN)
        for _ in range(2):
            await allocate(OrderKind.TAKEOUT)

        clock.now = datetime(2026, 10, 19, 8, 0, 0)

        dine_in = await allocate(OrderKind.DINE_IN)
        takeout = await allocate(OrderKind.TAKEOUT)

        assert dine_in.daily_sequence == 1
        assert takeout.daily_sequence == 1
        assert dine_in.code[4:12] == "20261019"

    async def test_new_day_restarts_takeout_first(self, allocate, clock):
        await allocate(OrderKind.DINE_IN)
        await allocate(OrderKind.TAKEOUT)

        clock.now = datetime(2026, 10, 19, 8, 0, 0)

        assert (await allocate(OrderKind.TAKEOUT)).daily_sequence == 1
        assert (await allocate(OrderKind.DINE_IN)).daily_sequence == 1
        assert (await allocate(OrderKind.DINE_IN)).daily_sequence == 2

    async def test_sequence_past_9999_keeps_all_digits(self, allocate, store_settings):
        await store_settings(**{DAILY_SEQUENCE_DATE: "20261018", DAILY_DINE_IN_SEQUENCE: 9999})

        allocation = await allocate()

        assert allocation.daily_sequence == 10000
        assert allocation.ticket_number == "D10000"
        assert allocation.code.endswith("10000")
        assert CODE_PATTERN.match(allocation.code)

    async def test_rolled_back_allocation_does_not_consume_a_number(
        self, session_maker, allocator, allocate
    ):
        with pytest.raises(RuntimeError):
            async with session_maker() as session:
                async with session.begin():
                    await allocator.allocate(session, OrderKind.DINE_IN, 1)
                    raise RuntimeError("insert failed")

        assert (await allocate()).daily_sequence == 1


# ============================================================================
# ORDER CODE
# ============================================================================

class TestOrderCode:
    """Long-form code layout."""

    @pytest.mark.parametrize("kind,letter", [
        (OrderKind.DINE_IN, "D"),
        (OrderKind.TAKEOUT, "T"),
    ])
    async def test_code_layout(self, allocate, kind, letter):
        code = (await allocate(kind)).code

        assert CODE_PATTERN.match(code)
        assert code[0] == letter
        assert code[1:4] == "001"
        assert code[4:12] == "20261018"
        assert code[12:18] == "134502"
        assert code[-4:] == "0001"

    async def test_store_number_setting_is_used(self, allocate, store_settings):
        await store_settings(**{STORE_NUMBER: "12"})
        assert (await allocate()).code[1:4] == "012"

    async def test_store_id_fallback_when_setting_empty(self, allocate):
        assert (await allocate(store_id=7)).code[1:4] == "007"

    async def test_malformed_store_number_falls_back(self, allocate, store_settings):
        await store_settings(**{STORE_NUMBER: "ABCD"})
        assert (await allocate(store_id=3)).code[1:4] == "003"

    def test_format_sequence(self):
        assert format_sequence(7) == "0007"
        assert format_sequence(12345) == "12345"

    def test_ticket_number(self):
        assert ticket_number(OrderKind.TAKEOUT, 42) == "T0042"

    def test_fallback_code(self):
        code = fallback_code(OrderKind.TAKEOUT, datetime(2026, 10, 18, 9, 5, 7, 123456))
        assert code == "T00120261018090507123"

    def test_fallback_code_store_number(self):
        code = fallback_code(OrderKind.DINE_IN, datetime(2026, 10, 18, 9, 5, 7), store_id=1042)
        assert code[:4] == "D042"


# ============================================================================
# FAILURES
# ============================================================================

class TestAllocationFailures:
    """Errors abort the caller's transaction."""

    async def test_requires_active_transaction(self, session_maker, allocator):
        async with session_maker() as session:
            with pytest.raises(AllocationError):
                await allocator.allocate(session, OrderKind.DINE_IN, 1)

    async def test_corrupt_counter_raises(self, allocate, store_settings, session_maker):
        await store_settings(**{DAILY_SEQUENCE_DATE: "20261018", DAILY_TAKEOUT_SEQUENCE: "abc"})

        with pytest.raises(AllocationError):
            await allocate(OrderKind.TAKEOUT)

        async with session_maker() as session:
            assert await get_setting(session, DAILY_TAKEOUT_SEQUENCE) == "abc"

    async def test_numeric_string_counter_is_accepted(self, allocate, store_settings):
        await store_settings(**{DAILY_SEQUENCE_DATE: "20261018", DAILY_DINE_IN_SEQUENCE: "41"})
        assert (await allocate()).daily_sequence == 42
