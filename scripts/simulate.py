"""
Rush Hour Simulation Script

Fires concurrent orders at a running server and checks what must hold under
load: every order gets a distinct order number, totals match the items, and
concurrent staff updates to one order all land or fail cleanly.

Needs a server in development mode (the script mints tokens through
/api/auth/dev-token) with demo tables, e.g.:

    SEED_DEMO_TABLES=10 uvicorn qrorder.main:app --port 8001
    python scripts/simulate.py --orders 100
"""

import argparse
import asyncio
import random
import sys
import time
from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50
TABLE_SLUGS = [f"table-{n}" for n in range(1, 11)]

MENU_ITEMS = [
    {"menu_item_id": "pho-bo", "name": "Pho Bo", "price": "9.50"},
    {"menu_item_id": "banh-mi", "name": "Banh Mi", "price": "6.25"},
    {"menu_item_id": "goi-cuon", "name": "Goi Cuon", "price": "4.99"},
    {"menu_item_id": "bun-cha", "name": "Bun Cha", "price": "10.75"},
    {"menu_item_id": "ca-phe", "name": "Ca Phe Sua Da", "price": "3.99"},
    {"menu_item_id": "tra-da", "name": "Tra Da", "price": "1.50"},
]
NOTES = ["", "", "", "No onions", "Extra chili", "Less ice"]
WORKFLOW = ["preparing", "ready", "served", "completed"]


def generate_random_items() -> list[dict[str, Any]]:
    """Generate random order lines."""
    items = []
    for _ in range(random.randint(1, 4)):
        item = random.choice(MENU_ITEMS).copy()
        item["qty"] = random.randint(1, 3)
        item["note"] = random.choice(NOTES)
        items.append(item)
    return items


def expected_total(items: list[dict[str, Any]]) -> Decimal:
    return sum((Decimal(i["price"]) * i["qty"] for i in items), Decimal("0"))


async def issue_token(client: httpx.AsyncClient, user_id: str, role: str) -> str:
    response = await client.post(
        f"{API_BASE_URL}/api/auth/dev-token",
        json={"user_id": user_id, "role": role},
    )
    response.raise_for_status()
    return response.json()["data"]["access_token"]


async def resolve_tables(client: httpx.AsyncClient) -> dict[str, str]:
    """Map QR slug -> table id for the demo tables that exist."""
    tables = {}
    for slug in TABLE_SLUGS:
        response = await client.get(f"{API_BASE_URL}/api/tables/qr/{slug}")
        if response.status_code == 200:
            tables[slug] = response.json()["data"]["id"]
    return tables


# =============================================================================
# ORDER PLACEMENT
# =============================================================================

async def place_order(
    client: httpx.AsyncClient,
    order_num: int,
    tables: dict[str, str],
    token: Optional[str],
) -> dict[str, Any]:
    """Place one order as a guest (no token) or as a customer."""
    items = generate_random_items()
    payload: dict[str, Any] = {"items": items}
    if tables:
        slug = random.choice(list(tables))
        payload["table_id"] = tables[slug]
        payload["meta"] = {"qr_slug": slug}

    headers = {"Authorization": f"Bearer {token}"} if token else {}
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            headers=headers,
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()["data"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "order_number": data["order_number"],
                "total": Decimal(str(data["totals"])),
                "expected": expected_total(items),
                "time": elapsed,
                "mode": "customer" if token else "guest",
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
            "mode": "customer" if token else "guest",
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
            "mode": "customer" if token else "guest",
        }


# =============================================================================
# CONCURRENT STAFF UPDATES
# =============================================================================

async def status_storm(client: httpx.AsyncClient, order_id: str, staff_token: str, rounds: int) -> Counter:
    """Send many status updates to one order at once; tally response codes."""
    headers = {"Authorization": f"Bearer {staff_token}"}
    tasks = [
        client.patch(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": random.choice(WORKFLOW)},
            headers=headers,
            timeout=30.0,
        )
        for _ in range(rounds)
    ]
    responses = await asyncio.gather(*tasks, return_exceptions=True)
    return Counter(
        r.status_code if isinstance(r, httpx.Response) else type(r).__name__
        for r in responses
    )


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS, storm_rounds: int = 20) -> dict[str, Any]:
    print("=" * 70)
    print("RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        print(f"\nHealth: {health.json().get('status')} ({health.json().get('payment_provider')})")

        tables = await resolve_tables(client)
        print(f"Tables resolved: {len(tables)}")

        customer_tokens = [await issue_token(client, f"sim-customer-{n}", "customer") for n in range(5)]
        staff_token = await issue_token(client, "sim-staff", "staff")

        start_time = time.time()
        tasks = [
            place_order(client, i + 1, tables, random.choice(customer_tokens) if i % 2 else None)
            for i in range(num_orders)
        ]
        results = await asyncio.gather(*tasks)
        total_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        storm = Counter()
        if successful and storm_rounds:
            storm = await status_storm(client, successful[0]["order_id"], staff_token, storm_rounds)

    numbers = Counter(r["order_number"] for r in successful)
    duplicates = [n for n, count in numbers.items() if count > 1]
    mispriced = [r for r in successful if r["total"] != r["expected"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    if successful:
        times = [r["time"] for r in successful]
        print("\nPerformance Metrics:")
        print(f"   Average Response: {round(sum(times) / len(times), 3)}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")
        print(f"   Total Revenue: ${sum(r['total'] for r in successful):.2f}")

    print("\nChecks:")
    print(f"   Unique order numbers: {'OK' if not duplicates else f'FAILED {duplicates[:5]}'}")
    print(f"   Totals match items:   {'OK' if not mispriced else f'FAILED ({len(mispriced)} orders)'}")
    if storm:
        print(f"   Status storm codes:   {dict(storm)}")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "duplicates": duplicates,
        "mispriced": len(mispriced),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--storm", type=int, default=20, help="Concurrent status updates on one order (0 disables)")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    summary = asyncio.run(run_simulation(args.orders, args.storm))

    if summary["duplicates"] or summary["mispriced"]:
        sys.exit(1)
