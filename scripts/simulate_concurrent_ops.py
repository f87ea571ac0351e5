"""Manual concurrency stress test for FIFO stock reduction.

Usage:
    python scripts/simulate_concurrent_ops.py

Prerequisites:
    - API server running on localhost:8000 backed by PostgreSQL
    - A fresh product is created for every run
"""

import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000/api"


def create_test_product(batch_quantities: list[int]) -> dict:
    """Create a product with one batch per quantity, expiring a week apart."""
    response = httpx.post(
        f"{BASE_URL}/products/",
        json={
            "product_code": f"SIM{int(time.time() * 1000) % 10**8:08d}",
            "product_name": "Simulation Paracetamol 500mg",
            "reorder_level": 0,
        },
        timeout=10,
    )
    response.raise_for_status()
    product = response.json()

    for index, quantity in enumerate(batch_quantities):
        httpx.post(
            f"{BASE_URL}/products/{product['id']}/batches",
            json={
                "batch_number": f"SIM-LOT-{index + 1:03d}",
                "expiration_date": (date.today() + timedelta(days=30 + 7 * index)).isoformat(),
                "quantity_received": quantity,
                "unit_cost": "1.00",
                "sale_price": "2.50",
            },
            timeout=10,
        ).raise_for_status()

    return product


def reduce_stock(product_id: int, qty: int, worker_id: int) -> dict:
    """Attempt to reduce stock on a product."""
    try:
        response = httpx.post(
            f"{BASE_URL}/products/{product_id}/reduce",
            json={"quantity": qty, "reason": "simulation", "notes": f"SIM-{worker_id:04d}"},
            timeout=10,
        )
        return {
            "worker_id": worker_id,
            "status_code": response.status_code,
            "success": response.status_code == 200,
        }
    except httpx.HTTPError as e:
        return {"worker_id": worker_id, "status_code": -1, "error": str(e), "success": False}


def run_simulation(
    batch_quantities: list[int],
    qty_per_request: int = 15,
    num_workers: int = 10,
) -> None:
    """Run concurrent stock reduction simulation."""
    total_stock = sum(batch_quantities)
    print(f"\n{'=' * 60}")
    print("Concurrent Stock Reduction Simulation")
    print(f"{'=' * 60}")
    print(f"Batches: {batch_quantities} (total {total_stock} units)")
    print(f"Units per request: {qty_per_request}")
    print(f"Number of workers: {num_workers}")
    print(f"Expected max successes: {total_stock // qty_per_request}")
    print(f"{'=' * 60}\n")

    print("Creating test product...")
    product = create_test_product(batch_quantities)
    product_id = product["id"]
    print(f"Created product ID: {product_id} (code: {product['product_code']})")

    print(f"\nLaunching {num_workers} concurrent reduce requests...")
    start_time = time.time()
    results = []

    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        futures = {
            executor.submit(reduce_stock, product_id, qty_per_request, i): i
            for i in range(num_workers)
        }
        for future in as_completed(futures):
            results.append(future.result())

    elapsed = time.time() - start_time

    successes = [r for r in results if r["success"]]
    failures = [r for r in results if not r["success"]]
    conflicts = [r for r in results if r.get("status_code") == 409]

    print(f"\n{'=' * 60}")
    print(f"Results (completed in {elapsed:.2f}s):")
    print(f"  Successful reductions: {len(successes)}")
    print(f"  Conflicts (409): {len(conflicts)}")
    print(f"  Other failures: {len(failures) - len(conflicts)}")

    total_reduced = len(successes) * qty_per_request
    final = httpx.get(f"{BASE_URL}/products/{product_id}", timeout=10).json()
    remaining = final["available_stock"]

    print(f"\n  Total reduced: {total_reduced} units")
    print(f"  Remaining (API): {remaining} units")
    print(
        "  Integrity check: "
        f"{'PASS' if total_reduced + remaining == total_stock else 'FAIL'}"
    )
    print(f"{'=' * 60}\n")


if __name__ == "__main__":
    try:
        httpx.get(f"{BASE_URL.replace('/api', '')}/health", timeout=5).raise_for_status()
    except httpx.HTTPError:
        print(f"ERROR: Cannot connect to API at {BASE_URL.replace('/api', '')}")
        print("Make sure the API server is running: uvicorn pharmacy_inventory.main:app")
        sys.exit(1)

    run_simulation(batch_quantities=[40, 60], qty_per_request=15, num_workers=10)
    run_simulation(batch_quantities=[200, 300, 500], qty_per_request=5, num_workers=50)
