"""
Receipt Renderer

Turns an order into the print primitives for an 80 mm thermal receipt
(48 ASCII columns at normal size). Pure: no I/O and no clock, so the same
input always renders the same job.

Width accounting: CJK ideographs take two columns, everything else one.
Every padding helper measures in these display units.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from app.core.config import TextEncoding
from app.models import OrderKind
from app.services.printing.base import (
    Alignment,
    Cut,
    LineFeed,
    MultiLineFeed,
    PrintJob,
    PrintPrimitive,
    TextRun,
    TextStyle,
)
from app.services.sequence import ticket_number

LINE_WIDTH = 48
SEPARATOR_LINE = "-" * LINE_WIDTH
ELLIPSIS = "…"

# Item table: 16 + 8 + 10 + 14 = 48
COL_WIDTH_NAME = 16
COL_WIDTH_QTY = 8
COL_WIDTH_PRICE = 10
COL_WIDTH_AMOUNT = 14

PAYMENT_LABEL_WIDTH = 12
PAYMENT_VALUE_ZH_MAX = 20
PAYMENT_VALUE_EN_MAX = 30

NORMAL_SCALE = 0.9
CAPTION_SCALE = 0.7
TICKET_SCALE = 1.0
AMOUNT_SCALE = 1.5
TRAILER_FEED_LINES = 4

CJK_ENCODING = TextEncoding.BIG5
DEFAULT_CURRENCY = "HK$"
TIME_FORMAT = "%Y/%m/%d %H:%M:%S"

_CJK_RANGES = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
    (0xF900, 0xFAFF),
)

_KIND_LABELS = {
    OrderKind.DINE_IN: "堂食(Dine-in)",
    OrderKind.TAKEOUT: "外賣(Takeout)",
}


# =============================================================================
# DISPLAY WIDTH HELPERS
# =============================================================================

def is_cjk(char: str) -> bool:
    code = ord(char)
    return any(low <= code <= high for low, high in _CJK_RANGES)


def contains_cjk(text: str) -> bool:
    return any(is_cjk(c) for c in text)


def display_width(text: str) -> int:
    """Columns `text` occupies on the receipt."""
    return sum(2 if is_cjk(c) else 1 for c in text)


def pad_right(text: str, width: int) -> str:
    """Left-align `text` in `width` columns."""
    return text + " " * max(0, width - display_width(text))


def pad_left(text: str, width: int) -> str:
    """Right-align `text` in `width` columns."""
    return " " * max(0, width - display_width(text)) + text


def pad_center(text: str, width: int) -> str:
    """Center `text` in `width` columns; odd padding goes to the right."""
    total = max(0, width - display_width(text))
    left = total // 2
    return " " * left + text + " " * (total - left)


def truncate(text: str, max_width: int) -> str:
    """Cut `text` to `max_width` columns, ending with an ellipsis when cut."""
    if not text:
        return ""
    if display_width(text) <= max_width:
        return text
    available = max_width - display_width(ELLIPSIS)
    kept = []
    used = 0
    for char in text:
        w = 2 if is_cjk(char) else 1
        if used + w > available:
            break
        kept.append(char)
        used += w
    return "".join(kept) + ELLIPSIS


def justify(left: str, right: str, width: int = LINE_WIDTH) -> str:
    """Put `left` and `right` at opposite ends, at least one space apart."""
    gap = max(1, width - display_width(left) - display_width(right))
    return left + " " * gap + right


def format_amount(value, currency: str = DEFAULT_CURRENCY) -> str:
    """Currency marker + the literal decimal; no rounding."""
    if isinstance(value, Decimal):
        literal = format(value, "f")
    else:
        literal = str(value)
    return f"{currency}{literal}"


def _literal(value) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def table_row(name: str, qty: str, price: str, amount: str, center_name: bool = False) -> str:
    """One row of the four-column item table."""
    name_part = pad_center(name, COL_WIDTH_NAME) if center_name else pad_right(name, COL_WIDTH_NAME)
    return (
        name_part
        + pad_center(qty, COL_WIDTH_QTY)
        + pad_center(price, COL_WIDTH_PRICE)
        + pad_center(amount, COL_WIDTH_AMOUNT)
    )


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class ReceiptOrder:
    code: str
    daily_sequence: int
    order_kind: OrderKind
    total_amount: Decimal
    ordered_at: datetime


@dataclass(frozen=True)
class ReceiptLine:
    name: str
    quantity: int
    price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class StoreInfo:
    name_zh: str = ""
    name_en: str = ""

    @property
    def display_name(self) -> str:
        if self.name_zh and self.name_en:
            return f"{self.name_zh} - {self.name_en}"
        return self.name_zh or self.name_en or ""


@dataclass(frozen=True)
class PaymentInfo:
    name_zh: str = ""
    name_en: str = ""


# =============================================================================
# RENDERER
# =============================================================================

class _JobBuilder:
    """Accumulates primitives; picks BIG-5 for any line containing CJK."""

    def __init__(self, default_encoding: TextEncoding):
        self.default_encoding = default_encoding
        self.primitives: list[PrintPrimitive] = []

    def encoding_for(self, text: str) -> TextEncoding:
        return CJK_ENCODING if contains_cjk(text) else self.default_encoding

    def line(
        self,
        text: str,
        *,
        align: Alignment = Alignment.LEFT,
        scale: float = NORMAL_SCALE,
        style: TextStyle = TextStyle.NORMAL,
    ) -> None:
        self.primitives.append(
            TextRun(
                text=text,
                encoding=self.encoding_for(text),
                align=align,
                width_scale=scale,
                height_scale=scale,
                font_type=0,
                style=style,
            )
        )
        self.primitives.append(LineFeed())

    def separator(self) -> None:
        self.line(SEPARATOR_LINE)

    def feed(self, lines: int = 1) -> None:
        if lines == 1:
            self.primitives.append(LineFeed())
        else:
            self.primitives.append(MultiLineFeed(lines))

    def cut(self) -> None:
        self.primitives.append(Cut())


def render_receipt(
    order: ReceiptOrder,
    lines: Sequence[ReceiptLine],
    store: StoreInfo,
    payment: Optional[PaymentInfo] = None,
    *,
    default_encoding: TextEncoding = TextEncoding.UTF8,
    currency: str = DEFAULT_CURRENCY,
) -> PrintJob:
    """
    Render the customer receipt for one order.

    Args:
        order: Order header (code, sequence, kind, total, time)
        lines: Order lines in print order
        store: Bilingual store name
        payment: Bilingual payment method name, if any
        default_encoding: Encoding for lines without CJK text
        currency: Marker printed before amounts

    Returns:
        PrintJob: Primitives in print order
    """
    payment = payment or PaymentInfo()
    job = _JobBuilder(default_encoding)

    # Header
    if store.display_name:
        job.line(store.display_name, align=Alignment.CENTER)
    job.line("***您的號碼(Your number)***", align=Alignment.CENTER, scale=CAPTION_SCALE)
    job.line(
        ticket_number(order.order_kind, order.daily_sequence),
        align=Alignment.CENTER,
        scale=TICKET_SCALE,
        style=TextStyle.BOLD,
    )
    job.separator()

    # Order details
    store_number = order.code[1:4] if len(order.code) >= 4 else "001"
    job.line(f"店號(Store No)：{store_number}")
    job.line(f"類型(Type)：{_KIND_LABELS[order.order_kind]}")
    job.line(truncate(f"交易時間(Time): {order.ordered_at.strftime(TIME_FORMAT)}", LINE_WIDTH))
    job.line(truncate(f"交易號(TN): {order.code}", LINE_WIDTH))
    job.separator()

    # Item table
    job.line(table_row("品項", "數量", "單價", "小計"), style=TextStyle.BOLD)
    job.line(table_row("Item", "Qty", "Unit Price", "Amount"), style=TextStyle.BOLD)
    if lines:
        for item in lines:
            job.line(
                table_row(
                    truncate(item.name, COL_WIDTH_NAME),
                    str(item.quantity),
                    _literal(item.price),
                    _literal(item.subtotal),
                )
            )
        job.feed()
    job.separator()

    total_quantity = sum(item.quantity for item in lines)
    job.line(
        table_row("合計 Total", str(total_quantity), "", format_amount(order.total_amount, currency)),
        style=TextStyle.BOLD,
    )
    job.separator()

    # Payment
    job.feed()
    job.line(
        pad_right("支付類型", PAYMENT_LABEL_WIDTH)
        + "  "
        + truncate(payment.name_zh, PAYMENT_VALUE_ZH_MAX)
    )
    if payment.name_en:
        job.line(
            pad_right("Payment type", PAYMENT_LABEL_WIDTH)
            + "  "
            + truncate(payment.name_en, PAYMENT_VALUE_EN_MAX)
        )
    job.separator()

    job.line(
        justify("支付金額", format_amount(order.total_amount, currency)),
        scale=AMOUNT_SCALE,
        style=TextStyle.BOLD,
    )
    job.separator()

    # Trailer
    job.feed()
    job.line("感謝您的惠顧", align=Alignment.CENTER)
    job.line("Thank You!", align=Alignment.CENTER)
    job.feed(TRAILER_FEED_LINES)
    job.cut()
    job.feed()

    return PrintJob(primitives=tuple(job.primitives), reference=order.code)
