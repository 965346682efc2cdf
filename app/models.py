"""
SQLAlchemy Database Models

Kiosk ordering schema:
- Orders with daily sequence numbers and print outcome tracking
- Order lines with unit price snapshots
- Read-only catalog (menu items) and payment methods
- Key/value settings holding JSON-encoded scalars

Version: 1.0.0
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class OrderKind(str, enum.Enum):
    """Dine-in or takeout; each kind has its own daily counter."""
    DINE_IN = "dine_in"
    TAKEOUT = "takeout"

    @property
    def business_code(self) -> str:
        """Letter leading both the long code and the ticket number."""
        return "T" if self is OrderKind.TAKEOUT else "D"

    @property
    def wire_value(self) -> int:
        """Integer used by the kiosk front-end (0=dine-in, 1=takeout)."""
        return 1 if self is OrderKind.TAKEOUT else 0

    @classmethod
    def from_wire(cls, value) -> "OrderKind":
        """Map the front-end value; anything other than 1 is dine-in."""
        if isinstance(value, OrderKind):
            return value
        if value in (1, "1", "takeout", cls.TAKEOUT.value):
            return cls.TAKEOUT
        return cls.DINE_IN


class PrintStatus(str, enum.Enum):
    """Outcome of the asynchronous receipt print."""
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class SettlementStatus(str, enum.Enum):
    """Payment is recorded as already settled by the kiosk."""
    PAID = "paid"


class MenuItem(Base):
    """
    Catalog item shown on the kiosk.

    Read-only to the ordering core: only active items can be ordered.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name_zh = Column(String(100), nullable=False)
    name_en = Column(String(100), nullable=True)
    description_zh = Column(Text, nullable=True)
    description_en = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=True, index=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    @property
    def display_name(self) -> str:
        return self.name_zh or self.name_en or ""

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name_zh} - {self.price}>"


class PaymentMethod(Base):
    """Payment method offered at the kiosk (cash, card, wallet...)."""
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name_zh = Column(String(100), nullable=False)
    name_en = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<PaymentMethod {self.code}>"


class Setting(Base):
    """
    String-keyed setting. `value` holds a JSON-encoded scalar.

    Also stores the daily counter state, so allocation survives restarts
    and is shared between instances.
    """
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default="general")

    def __repr__(self):
        return f"<Setting {self.key}={self.value}>"


class Order(Base):
    """
    Kiosk order.

    Created once inside the allocation transaction; only the print fields
    change afterwards.
    """
    __tablename__ = "orders"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # IDENTIFICATION
    # =========================================================================
    code = Column(String(32), nullable=False, unique=True, index=True)
    store_id = Column(Integer, nullable=False, default=1)
    daily_sequence = Column(Integer, nullable=False)
    order_kind = Column(
        Enum(OrderKind),
        default=OrderKind.DINE_IN,
        nullable=False,
        index=True
    )

    # =========================================================================
    # PAYMENT
    # =========================================================================
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=True)
    status = Column(
        Enum(SettlementStatus),
        default=SettlementStatus.PAID,
        nullable=False
    )

    # =========================================================================
    # PRINTING
    # =========================================================================
    print_status = Column(
        Enum(PrintStatus),
        default=PrintStatus.PENDING,
        nullable=False,
        index=True
    )
    print_message = Column(Text, nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    lines = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )
    payment_method = relationship("PaymentMethod")

    @property
    def ticket_number(self) -> str:
        return f"{self.order_kind.business_code}{self.daily_sequence:04d}"

    def __repr__(self):
        return f"<Order {self.code} - {self.order_kind.value} - {self.print_status.value}>"


class OrderLine(Base):
    """One catalog item on an order, priced at order time."""
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="lines")
    menu_item = relationship("MenuItem")

    def __repr__(self):
        return f"<OrderLine order={self.order_id} item={self.menu_item_id} x{self.quantity}>"
