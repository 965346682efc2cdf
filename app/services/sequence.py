"""
Daily Sequence Allocator

Issues the per-day, per-kind order number and the long-form order code:

    D 001 20261018 134502 37 0007
    │ │   │        │      │  └─ daily sequence (4 digits, wider past 9999)
    │ │   │        │      └──── random 2 digits
    │ │   │        └─────────── HHMMSS
    │ │   └──────────────────── local calendar day
    │ └──────────────────────── store number
    └────────────────────────── D dine-in / T takeout

Counter state lives in the settings table and is read-modified-written in
the caller's transaction. The database transaction is the only guard
against concurrent allocations.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AllocationError
from app.models import OrderKind, Setting
from app.services.settings_store import (
    DAILY_DINE_IN_SEQUENCE,
    DAILY_SEQUENCE_DATE,
    DAILY_TAKEOUT_SEQUENCE,
    STORE_NUMBER,
    decode_value,
    lock_settings,
    set_setting,
)

logger = logging.getLogger(__name__)

COUNTER_KEYS: dict[OrderKind, str] = {
    OrderKind.DINE_IN: DAILY_DINE_IN_SEQUENCE,
    OrderKind.TAKEOUT: DAILY_TAKEOUT_SEQUENCE,
}


@dataclass(frozen=True)
class Allocation:
    """Result of one allocation."""
    code: str
    daily_sequence: int
    ticket_number: str
    allocated_at: datetime


def format_sequence(sequence: int) -> str:
    """Zero-pad to 4 digits; larger values keep all their digits."""
    return f"{sequence:04d}"


def ticket_number(order_kind: OrderKind, sequence: int) -> str:
    """Short customer-facing number, e.g. D0007."""
    return f"{order_kind.business_code}{format_sequence(sequence)}"


def fallback_code(
    order_kind: OrderKind, now: Optional[datetime] = None, store_id: int = 1
) -> str:
    """
    Timestamp-derived code for use outside a transaction (test receipts).
    Same shape as an allocated code up to the timestamp: business letter,
    3-digit store number, then the time.

    Not unique under load; never use it for real orders.
    """
    now = now or datetime.now()
    return (
        f"{order_kind.business_code}{store_id % 1000:03d}"
        f"{now:%Y%m%d%H%M%S}{now.microsecond // 1000:03d}"
    )


def _normalize_store_number(value, store_id: int) -> str:
    text = "" if value is None else str(value).strip()
    if text.isdigit() and len(text) <= 3:
        return text.zfill(3)
    if text:
        logger.warning(f"Ignoring malformed store_number setting {text!r}")
    return f"{store_id % 1000:03d}"


def _read_counter(row: Optional[Setting]) -> int:
    if row is None:
        return 0
    value = decode_value(row.value)
    if isinstance(value, bool):
        raise AllocationError(f"Counter {row.key} is corrupt: {row.value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise AllocationError(f"Counter {row.key} is corrupt: {row.value!r}")


class SequenceAllocator:
    """
    Allocates daily sequence numbers inside the caller's transaction.

    Args:
        clock: Returns the current local time (injectable for tests)
        rng: Random source for the 2-digit code salt
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
    ):
        self._clock = clock
        self._rng = rng or random.Random()

    async def allocate(
        self,
        session: AsyncSession,
        order_kind: OrderKind,
        store_id: int,
    ) -> Allocation:
        """
        Advance the counter for `order_kind` and compose the order code.

        Raises:
            AllocationError: No active transaction, or the counter could not
                be read or written. The caller must roll back.
        """
        if not session.in_transaction():
            raise AllocationError("Sequence allocation requires an active transaction")

        now = self._clock()
        today = now.strftime("%Y%m%d")
        counter_key = COUNTER_KEYS[order_kind]

        try:
            rows = await lock_settings(
                session,
                (DAILY_SEQUENCE_DATE, DAILY_DINE_IN_SEQUENCE, DAILY_TAKEOUT_SEQUENCE, STORE_NUMBER),
            )

            date_row = rows.get(DAILY_SEQUENCE_DATE)
            last_reset_date = decode_value(date_row.value) if date_row is not None else None

            if str(last_reset_date or "") != today:
                sequence = 1
                await set_setting(session, DAILY_SEQUENCE_DATE, today, existing=date_row)
                await set_setting(session, counter_key, sequence, existing=rows.get(counter_key))
                # The date key is shared, so the other kind restarts too.
                for other_kind, other_key in COUNTER_KEYS.items():
                    if other_kind is not order_kind:
                        await set_setting(session, other_key, 0, existing=rows.get(other_key))
                logger.info(
                    f"Daily sequence reset for {today} "
                    f"(previous date: {last_reset_date or 'none'})"
                )
            else:
                sequence = _read_counter(rows.get(counter_key)) + 1
                await set_setting(session, counter_key, sequence, existing=rows.get(counter_key))

            store_row = rows.get(STORE_NUMBER)
            store_number = _normalize_store_number(
                decode_value(store_row.value) if store_row is not None else None,
                store_id,
            )

            await session.flush()

        except AllocationError:
            raise
        except SQLAlchemyError as e:
            raise AllocationError(f"Daily counter unavailable: {e}") from e

        salt = self._rng.randint(0, 99)
        code = (
            f"{order_kind.business_code}{store_number}{today}"
            f"{now:%H%M%S}{salt:02d}{format_sequence(sequence)}"
        )

        logger.debug(f"Allocated {code} (sequence {sequence}, kind {order_kind.value})")

        return Allocation(
            code=code,
            daily_sequence=sequence,
            ticket_number=ticket_number(order_kind, sequence),
            allocated_at=now,
        )
