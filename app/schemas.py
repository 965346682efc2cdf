"""
Pydantic Schemas for Request/Response Validation

Field names follow the kiosk front-end (camelCase on the wire); the Python
attributes stay snake_case.

Version: 1.0.0
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models import OrderKind


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, accepts either spelling on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderLineCreate(CamelModel):
    """Single item in an order."""
    meal_id: int = Field(..., examples=[5])
    quantity: int = Field(..., examples=[2])
    price: Decimal = Field(..., examples=["12.50"])


class OrderCreate(CamelModel):
    """
    Request schema for creating a new order.

    Quantities, prices and totals are checked by the order service so that
    every rejection is reported the same way.
    """
    items: List[OrderLineCreate] = Field(default_factory=list)
    total_amount: Decimal = Field(..., examples=["25.00"])
    store_id: Optional[int] = Field(None, examples=[1])
    order_type: OrderKind = Field(
        default=OrderKind.DINE_IN,
        description="0 = dine-in, 1 = takeout; anything else is dine-in",
        examples=[0],
    )
    payment_method_id: Optional[int] = Field(None, examples=[1])

    @field_validator('order_type', mode='before')
    @classmethod
    def parse_order_type(cls, v: Any) -> OrderKind:
        return OrderKind.from_wire(v)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderCreateResponse(CamelModel):
    """Response after successfully creating an order."""
    success: bool = True
    message: str
    code: str
    daily_sequence: int
    ticket_number: str


class OrderLineResponse(CamelModel):
    meal_id: int
    name: Optional[str] = None
    quantity: int
    price: Decimal
    subtotal: Decimal


class OrderResponse(CamelModel):
    """Response schema for a single order."""
    code: str
    store_id: int
    daily_sequence: int
    ticket_number: str
    order_type: int
    total_amount: Decimal
    payment_method_id: Optional[int]
    status: str
    print_status: str
    print_message: Optional[str]
    created_at: datetime
    items: List[OrderLineResponse]


class MenuItemResponse(CamelModel):
    """Catalog item as shown on the kiosk (Chinese name is the primary one)."""
    id: int
    name: str
    name_en: Optional[str] = None
    desc: Optional[str] = None
    desc_en: Optional[str] = None
    price: float
    category: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_item(cls, item: Any) -> "MenuItemResponse":
        return cls(
            id=item.id,
            name=item.name_zh,
            name_en=item.name_en,
            desc=item.description_zh,
            desc_en=item.description_en,
            price=float(item.price),
            category=item.category,
            image_url=item.image_url,
        )


class PaymentMethodResponse(CamelModel):
    id: int
    code: str
    name: str
    name_en: Optional[str] = None

    @classmethod
    def from_method(cls, method: Any) -> "PaymentMethodResponse":
        return cls(id=method.id, code=method.code, name=method.name_zh, name_en=method.name_en)


class SettingsResponse(CamelModel):
    """One decoded value when a key was requested, else every setting."""
    success: bool = True
    data: Any


class PrinterStatusResponse(CamelModel):
    """Printer state as seen by the driver adapter."""
    provider: str
    driver_loaded: bool
    port_open: bool
    status: Optional[str] = None
    status_code: Optional[int] = None
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    printer: str
    print_dispatch: str
    timestamp: datetime
