"""
Printer Test Script

Initializes the configured printer (open, reset, self test) and prints a
sample receipt without touching the database. Useful when installing a
kiosk to check the port settings and CJK output.

Run from project root: python scripts/print_test_receipt.py [--takeout]

Version: 1.0.0
"""

import argparse
import os
import sys
from datetime import datetime
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import get_printer_settings, get_settings, setup_logging
from app.models import OrderKind
from app.services.printing import get_print_adapter, reset_print_adapter
from app.services.receipt import (
    PaymentInfo,
    ReceiptLine,
    ReceiptOrder,
    StoreInfo,
    render_receipt,
)
from app.services.sequence import fallback_code


def build_sample_receipt(order_kind: OrderKind):
    now = datetime.now()
    lines = [
        ReceiptLine(name="招牌叉燒飯", quantity=2, price=Decimal("12.50"), subtotal=Decimal("25.00")),
        ReceiptLine(name="Milk Tea (Hot)", quantity=1, price=Decimal("8.00"), subtotal=Decimal("8.00")),
    ]
    order = ReceiptOrder(
        code=fallback_code(order_kind, now, store_id=get_settings().default_store_id),
        daily_sequence=1,
        order_kind=order_kind,
        total_amount=Decimal("33.00"),
        ordered_at=now,
    )
    return render_receipt(
        order,
        lines,
        StoreInfo(name_zh="測試門店", name_en="Test Store"),
        PaymentInfo(name_zh="現金", name_en="Cash"),
        default_encoding=get_printer_settings().text_encoding,
        currency=get_settings().currency_symbol,
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Print a sample receipt")
    parser.add_argument("--takeout", action="store_true", help="Render a takeout receipt")
    parser.add_argument("--skip-init", action="store_true", help="Skip reset and self test")
    parser.add_argument("--preview", action="store_true", help="Also print the layout to stdout")
    args = parser.parse_args()

    setup_logging()
    adapter = get_print_adapter()

    print("=" * 60)
    print("🖨️  PRINTER TEST")
    print("=" * 60)
    print(f"   Driver: {adapter.provider_name} (loaded: {adapter.driver_loaded})")
    print(f"   Port: {adapter.config.port_type.value}:{adapter.config.port_name}")

    if not args.skip_init:
        init_result = adapter.initialize()
        print(f"   Initialize: {'✅' if init_result.success else '❌'} {init_result.message}")

    job = build_sample_receipt(OrderKind.TAKEOUT if args.takeout else OrderKind.DINE_IN)

    if args.preview:
        print("-" * 60)
        for line in job.lines():
            print(line)
        print("-" * 60)

    result = adapter.execute(job)
    print(f"   Receipt: {'✅' if result.success else '❌'} {result.message}")
    print("=" * 60)

    reset_print_adapter()
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
