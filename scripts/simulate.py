"""
Concurrency Simulation Script

Fires a burst of simultaneous kiosk orders at a running server and checks
the numbering invariants:
    - every order code is unique
    - per order kind, the returned daily sequences are contiguous

Run from project root: python scripts/simulate.py --orders 50

Version: 1.0.0
"""

import asyncio
import sys
import random
import time
import argparse
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:3001"
TOTAL_ORDERS = 50


def generate_order_payload(meals: list[dict], payment_methods: list[dict]) -> dict[str, Any]:
    """Random order over the live catalog; totals match the lines."""
    chosen = random.sample(meals, k=min(len(meals), random.randint(1, 3)))
    items = []
    total = Decimal("0")
    for meal in chosen:
        quantity = random.randint(1, 3)
        price = Decimal(str(meal["price"]))
        items.append({"mealId": meal["id"], "quantity": quantity, "price": str(price)})
        total += price * quantity

    payload = {
        "items": items,
        "totalAmount": str(total),
        "orderType": random.choice([0, 1]),
    }
    if payment_methods:
        payload["paymentMethodId"] = random.choice(payment_methods)["id"]
    return payload


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """Send one order and time it."""
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orderfood/orders",
            json=payload,
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 200:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "code": data.get("code"),
                "daily_sequence": data.get("dailySequence"),
                "ticket_number": data.get("ticketNumber"),
                "order_type": payload["orderType"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


def check_numbering(successful: list[dict]) -> list[str]:
    """Return a list of invariant violations (empty when all hold)."""
    problems = []

    codes = [r["code"] for r in successful]
    duplicates = {c for c in codes if codes.count(c) > 1}
    if duplicates:
        problems.append(f"Duplicate codes: {sorted(duplicates)}")

    by_kind = defaultdict(list)
    for r in successful:
        by_kind[r["order_type"]].append(r["daily_sequence"])

    for kind, sequences in by_kind.items():
        label = "takeout" if kind == 1 else "dine-in"
        sequences.sort()
        expected = list(range(sequences[0], sequences[0] + len(sequences)))
        if sequences != expected:
            problems.append(f"{label} sequences not contiguous: {sequences}")
        letter = "T" if kind == 1 else "D"
        wrong = [r["code"] for r in successful if r["order_type"] == kind and not r["code"].startswith(letter)]
        if wrong:
            problems.append(f"{label} codes with wrong prefix: {wrong}")

    return problems


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> bool:
    """Fire `num_orders` orders at once and verify the results."""
    print("=" * 70)
    print("🔥 CONCURRENCY SIMULATION - ORDER NUMBERING")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        meals = (await client.get(f"{API_BASE_URL}/api/orderfood/meals")).json()
        payment_methods = (await client.get(f"{API_BASE_URL}/api/orderfood/payment-methods")).json()
        if not meals:
            print("\n❌ The catalog is empty; add menu items first.")
            return False

        start_time = time.time()
        tasks = [
            send_order(client, i + 1, generate_order_payload(meals, payment_methods))
            for i in range(num_orders)
        ]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    problems = check_numbering(successful) if successful else []

    print("\n" + "=" * 70)
    print("🔍 NUMBERING VERIFICATION")
    print("=" * 70)
    if problems:
        for problem in problems:
            print(f"   ❌ {problem}")
    else:
        print("   ✅ Codes unique, sequences contiguous per order kind")
    print("=" * 70)

    return not failed and not problems


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    ok = asyncio.run(run_simulation(args.orders))
    sys.exit(0 if ok else 1)
