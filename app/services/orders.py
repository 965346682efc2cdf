"""
Order Service

Creates kiosk orders atomically:

    validate lines ─▶ BEGIN ─▶ allocate sequence ─▶ insert order ─▶
    insert lines ─▶ COMMIT ─▶ schedule receipt print (fire and forget)

Either the order and all of its lines exist afterwards, or nothing does.
Printing happens after the commit and can never undo an order; its
outcome is written back with record_print_outcome().
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.exceptions import AllocationError, PersistenceError, ValidationError
from app.models import (
    MenuItem,
    Order,
    OrderKind,
    OrderLine,
    PaymentMethod,
    PrintStatus,
    SettlementStatus,
)
from app.services.sequence import SequenceAllocator

logger = logging.getLogger(__name__)

PRINT_MESSAGE_MAX_LENGTH = 500

# Scale of the Numeric(10, 2) money columns; finer amounts would be rounded on save
MONEY_DECIMAL_PLACES = 2


@dataclass(frozen=True)
class OrderLineInput:
    """One requested line: catalog item, quantity and unit price."""
    menu_item_id: int
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class OrderCreated:
    """What the caller gets back once the order is committed."""
    order_id: int
    code: str
    daily_sequence: int
    ticket_number: str


def _fits_money_scale(value) -> bool:
    """True when `value` is finite with at most MONEY_DECIMAL_PLACES decimals."""
    amount = Decimal(value)
    return amount.is_finite() and amount.as_tuple().exponent >= -MONEY_DECIMAL_PLACES


def _validate_shape(lines: Sequence[OrderLineInput], total_amount) -> None:
    if not lines:
        raise ValidationError("Order must contain at least one item")
    if total_amount is None or not _fits_money_scale(total_amount):
        raise ValidationError(
            f"Order total amount must have at most {MONEY_DECIMAL_PLACES} decimal places"
        )
    if Decimal(total_amount) <= 0:
        raise ValidationError("Order total amount must be greater than zero")
    for line in lines:
        if not line.menu_item_id:
            raise ValidationError("Each order line needs a menu item id")
        if line.quantity is None or line.quantity <= 0:
            raise ValidationError("Item quantity must be greater than zero")
        if line.price is None or not _fits_money_scale(line.price):
            raise ValidationError(
                f"Item price must have at most {MONEY_DECIMAL_PLACES} decimal places"
            )
        if Decimal(line.price) < 0:
            raise ValidationError("Item price must not be negative")


async def load_order(
    session: AsyncSession,
    *,
    order_id: Optional[int] = None,
    code: Optional[str] = None,
) -> Optional[Order]:
    """Fetch an order with its lines, their catalog items and payment method."""
    query = select(Order).options(
        selectinload(Order.lines).selectinload(OrderLine.menu_item),
        selectinload(Order.payment_method),
    )
    if order_id is not None:
        query = query.where(Order.id == order_id)
    elif code is not None:
        query = query.where(Order.code == code)
    else:
        raise ValueError("order_id or code is required")
    result = await session.execute(query)
    return result.scalar_one_or_none()


class OrderService:
    """
    Order assembly on top of a session factory.

    Args:
        session_maker: Async session factory
        allocator: Daily sequence allocator
        dispatcher: Receives committed order ids for printing (optional)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        allocator: Optional[SequenceAllocator] = None,
        dispatcher=None,
    ):
        self._session_maker = session_maker
        self._allocator = allocator or SequenceAllocator()
        self._dispatcher = dispatcher

    async def _validate_references(
        self,
        lines: Sequence[OrderLineInput],
        payment_method_id: Optional[int],
    ) -> None:
        """Check catalog items and payment method; read-only, closed afterwards."""
        item_ids = {line.menu_item_id for line in lines}

        async with self._session_maker() as session:
            result = await session.execute(
                select(MenuItem.id).where(
                    MenuItem.id.in_(item_ids),
                    MenuItem.is_active.is_(True),
                )
            )
            found = set(result.scalars())
            missing = item_ids - found
            if missing:
                logger.warning(f"Order rejected, unavailable items: {sorted(missing)}")
                raise ValidationError(
                    "Some items do not exist or are no longer available",
                    detail=f"menu item ids: {sorted(missing)}",
                )

            if payment_method_id is not None:
                result = await session.execute(
                    select(PaymentMethod.id).where(
                        PaymentMethod.id == payment_method_id,
                        PaymentMethod.is_active.is_(True),
                    )
                )
                if result.scalar_one_or_none() is None:
                    raise ValidationError("Payment method does not exist or is disabled")

    async def create_order(
        self,
        lines: Sequence[OrderLineInput],
        total_amount: Decimal,
        store_id: int = 1,
        order_kind: OrderKind = OrderKind.DINE_IN,
        payment_method_id: Optional[int] = None,
    ) -> OrderCreated:
        """
        Validate, persist and number an order, then queue its receipt.

        Raises:
            ValidationError: Bad input; nothing was written
            AllocationError: Daily counter failed; transaction rolled back
            PersistenceError: Insert failed; transaction rolled back
        """
        _validate_shape(lines, total_amount)
        await self._validate_references(lines, payment_method_id)

        total_amount = Decimal(total_amount)
        line_total = sum(Decimal(line.price) * line.quantity for line in lines)
        if line_total != total_amount:
            logger.warning(
                f"Order total {total_amount} differs from line subtotals {line_total}; "
                "keeping the submitted total"
            )

        async with self._session_maker() as session:
            try:
                async with session.begin():
                    allocation = await self._allocator.allocate(session, order_kind, store_id)

                    order = Order(
                        code=allocation.code,
                        store_id=store_id,
                        daily_sequence=allocation.daily_sequence,
                        order_kind=order_kind,
                        total_amount=total_amount,
                        payment_method_id=payment_method_id,
                        status=SettlementStatus.PAID,
                        print_status=PrintStatus.PENDING,
                        created_at=allocation.allocated_at,
                    )
                    session.add(order)
                    await session.flush()

                    for line in lines:
                        price = Decimal(line.price)
                        session.add(
                            OrderLine(
                                order_id=order.id,
                                menu_item_id=line.menu_item_id,
                                quantity=line.quantity,
                                price=price,
                                subtotal=price * line.quantity,
                            )
                        )
                    await session.flush()
                    order_id = order.id

            except (AllocationError, ValidationError):
                raise
            except SQLAlchemyError as e:
                logger.error(f"Order insert failed, transaction rolled back: {e}")
                raise PersistenceError("Order could not be saved", detail=str(e)) from e

        created = OrderCreated(
            order_id=order_id,
            code=allocation.code,
            daily_sequence=allocation.daily_sequence,
            ticket_number=allocation.ticket_number,
        )
        logger.info(
            f"Order {created.code} saved (#{order_id}, ticket {created.ticket_number}, "
            f"{len(lines)} lines, total {total_amount})"
        )

        await self._schedule_print(order_id, created.code)
        return created

    async def _schedule_print(self, order_id: int, code: str) -> None:
        if self._dispatcher is None:
            return
        try:
            await self._dispatcher.schedule(order_id)
        except Exception as e:
            # The order stays valid; it keeps print_status=pending.
            logger.error(f"Could not queue receipt for order {code}: {e}")

    async def get_order(self, code: str) -> Optional[Order]:
        async with self._session_maker() as session:
            return await load_order(session, code=code)

    async def record_print_outcome(self, order_id: int, success: bool, message: str) -> bool:
        """
        Store the print result on the order. Best effort: failures are
        logged and reported as False, never raised.
        """
        status = PrintStatus.SUCCESS if success else PrintStatus.ERROR
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        update(Order)
                        .where(Order.id == order_id)
                        .values(
                            print_status=status,
                            print_message=(message or "")[:PRINT_MESSAGE_MAX_LENGTH],
                        )
                    )
            if result.rowcount == 0:
                logger.warning(f"Print outcome for unknown order #{order_id} dropped")
                return False
            return True
        except SQLAlchemyError as e:
            logger.error(f"Could not record print outcome for order #{order_id}: {e}")
            return False
