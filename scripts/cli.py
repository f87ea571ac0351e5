#!/usr/bin/env python3
"""Command-line interface for the Pharmacy Batch Inventory API.

Usage examples:
    python scripts/cli.py list --search amox --stock-status low_stock
    python scripts/cli.py get 1
    python scripts/cli.py create --code P1042 --name "Amoxicillin 500mg" --reorder-level 20
    python scripts/cli.py update 1 --reorder-level 30
    python scripts/cli.py add-batch 1 --batch-number LOT-0415 --expires 2027-04-30 \\
        --quantity 100 --unit-cost 1.20 --sale-price 2.75
    python scripts/cli.py update-batch 1 3f9c... --quantity-remaining 95
    python scripts/cli.py batches 1
    python scripts/cli.py allocate 1 --qty 30
    python scripts/cli.py reduce 1 --qty 30 --reason pos_sale
    python scripts/cli.py low-stock
    python scripts/cli.py expiring --days 60
    python scripts/cli.py movements 1
    python scripts/cli.py delete 1
"""

import argparse
import json
import sys

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0


def format_output(data: object) -> None:
    """Pretty-print a JSON-serialisable object."""
    print(json.dumps(data, indent=2, default=str))


def handle_response(response: httpx.Response) -> dict:
    """Return the JSON body or exit with an error message."""
    try:
        body = response.json()
    except ValueError:
        body = {"detail": response.text}

    if response.status_code >= 400:
        print(
            f"Error {response.status_code}: {body.get('detail', 'Unknown error')}",
            file=sys.stderr,
        )
        sys.exit(1)

    return body


def products_url(base_url: str, *parts: object) -> str:
    return "/".join([f"{base_url}/api/products", *(str(p) for p in parts)])


def cmd_list(args: argparse.Namespace, base_url: str) -> None:
    """List products with optional pagination."""
    params: dict[str, object] = {"skip": args.skip, "limit": args.limit}
    if args.search:
        params["search"] = args.search
    if args.stock_status:
        params["stock_status"] = args.stock_status
    resp = httpx.get(products_url(base_url, ""), params=params, timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_get(args: argparse.Namespace, base_url: str) -> None:
    """Retrieve a single product by ID."""
    resp = httpx.get(products_url(base_url, args.id), timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_create(args: argparse.Namespace, base_url: str) -> None:
    """Create a new product."""
    data: dict[str, object] = {"product_name": args.name}
    if args.code:
        data["product_code"] = args.code
    if args.generic_name:
        data["generic_name"] = args.generic_name
    if args.supplier_id:
        data["supplier_id"] = args.supplier_id
    if args.reorder_level is not None:
        data["reorder_level"] = args.reorder_level
    resp = httpx.post(products_url(base_url, ""), json=data, timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_update(args: argparse.Namespace, base_url: str) -> None:
    """Change product details."""
    fields = {
        "product_name": args.name,
        "generic_name": args.generic_name,
        "supplier_id": args.supplier_id,
        "reorder_level": args.reorder_level,
    }
    data = {key: value for key, value in fields.items() if value is not None}
    if not data:
        print("Nothing to update.", file=sys.stderr)
        sys.exit(1)
    resp = httpx.patch(products_url(base_url, args.id), json=data, timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_add_batch(args: argparse.Namespace, base_url: str) -> None:
    """Receive a batch for a product."""
    data: dict[str, object] = {
        "batch_number": args.batch_number,
        "expiration_date": args.expires,
        "quantity_received": args.quantity,
        "unit_cost": args.unit_cost,
        "sale_price": args.sale_price,
    }
    if args.received_date:
        data["received_date"] = args.received_date
    if args.supplier_id:
        data["supplier_id"] = args.supplier_id
    if args.notes:
        data["notes"] = args.notes
    resp = httpx.post(
        products_url(base_url, args.id, "batches"),
        json=data,
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_update_batch(args: argparse.Namespace, base_url: str) -> None:
    """Correct fields of a batch."""
    fields = {
        "batch_number": args.batch_number,
        "expiration_date": args.expires,
        "quantity_remaining": args.quantity_remaining,
        "unit_cost": args.unit_cost,
        "sale_price": args.sale_price,
        "notes": args.notes,
    }
    data = {key: value for key, value in fields.items() if value is not None}
    if not data:
        print("Nothing to update.", file=sys.stderr)
        sys.exit(1)
    resp = httpx.patch(
        products_url(base_url, args.id, "batches", args.batch_id),
        json=data,
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_batches(args: argparse.Namespace, base_url: str) -> None:
    """Show available and expired batches."""
    resp = httpx.get(products_url(base_url, args.id, "batches"), timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_allocate(args: argparse.Namespace, base_url: str) -> None:
    """Preview a FIFO allocation."""
    resp = httpx.post(
        products_url(base_url, args.id, "allocate"),
        json={"quantity": args.qty},
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_reduce(args: argparse.Namespace, base_url: str) -> None:
    """Consume stock FIFO."""
    data: dict[str, object] = {"quantity": args.qty, "reason": args.reason}
    if args.notes:
        data["notes"] = args.notes
    resp = httpx.post(
        products_url(base_url, args.id, "reduce"),
        json=data,
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_low_stock(args: argparse.Namespace, base_url: str) -> None:
    """List products at or below their reorder level."""
    resp = httpx.get(products_url(base_url, "low-stock"), timeout=DEFAULT_TIMEOUT)
    format_output(handle_response(resp))


def cmd_expiring(args: argparse.Namespace, base_url: str) -> None:
    """List products with batches expiring soon."""
    params = {"days": args.days} if args.days else None
    resp = httpx.get(
        products_url(base_url, "expiring"),
        params=params,
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_movements(args: argparse.Namespace, base_url: str) -> None:
    """Show a product's stock movement log."""
    resp = httpx.get(
        products_url(base_url, args.id, "movements"),
        params={"limit": args.limit},
        timeout=DEFAULT_TIMEOUT,
    )
    format_output(handle_response(resp))


def cmd_delete(args: argparse.Namespace, base_url: str) -> None:
    """Delete a product without sellable stock."""
    resp = httpx.delete(products_url(base_url, args.id), timeout=DEFAULT_TIMEOUT)
    if resp.status_code == 204:
        print(f"Product {args.id} deleted successfully.")
    else:
        handle_response(resp)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cli.py",
        description="Pharmacy Batch Inventory CLI",
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"API base URL (default: {DEFAULT_BASE_URL})",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    # --- list ---
    p_list = sub.add_parser("list", help="List products")
    p_list.add_argument("--skip", type=int, default=0, help="Pagination offset")
    p_list.add_argument("--limit", type=int, default=100, help="Page size")
    p_list.add_argument("--search", help="Match product name, code or generic name")
    p_list.add_argument(
        "--stock-status",
        choices=["in_stock", "low_stock", "out_of_stock"],
        help="Filter by current stock status",
    )

    # --- get ---
    p_get = sub.add_parser("get", help="Get product by ID")
    p_get.add_argument("id", type=int, help="Product ID")

    # --- create ---
    p_create = sub.add_parser("create", help="Create a product")
    p_create.add_argument("--code", help="Unique product code (generated when omitted)")
    p_create.add_argument("--name", required=True, help="Product name")
    p_create.add_argument("--generic-name", help="Generic (INN) name")
    p_create.add_argument("--supplier-id", help="Default supplier ID")
    p_create.add_argument("--reorder-level", type=int, help="Low-stock threshold")

    # --- update ---
    p_update_product = sub.add_parser("update", help="Change product details")
    p_update_product.add_argument("id", type=int, help="Product ID")
    p_update_product.add_argument("--name", help="Product name")
    p_update_product.add_argument("--generic-name", help="Generic (INN) name")
    p_update_product.add_argument("--supplier-id", help="Default supplier ID")
    p_update_product.add_argument("--reorder-level", type=int, help="Low-stock threshold")

    # --- add-batch ---
    p_add = sub.add_parser("add-batch", help="Receive a batch")
    p_add.add_argument("id", type=int, help="Product ID")
    p_add.add_argument("--batch-number", required=True, help="Supplier lot code")
    p_add.add_argument("--expires", required=True, help="Expiration date (YYYY-MM-DD)")
    p_add.add_argument("--quantity", type=int, required=True, help="Units received")
    p_add.add_argument("--unit-cost", required=True, help="Cost per unit")
    p_add.add_argument("--sale-price", required=True, help="Sale price per unit")
    p_add.add_argument("--received-date", help="Receipt date (default: today)")
    p_add.add_argument("--supplier-id", help="Supplier ID (default: product supplier)")
    p_add.add_argument("--notes", help="Free-text notes")

    # --- update-batch ---
    p_update = sub.add_parser("update-batch", help="Correct a batch")
    p_update.add_argument("id", type=int, help="Product ID")
    p_update.add_argument("batch_id", help="Batch ID")
    p_update.add_argument("--batch-number", help="Supplier lot code")
    p_update.add_argument("--expires", help="Expiration date (YYYY-MM-DD)")
    p_update.add_argument("--quantity-remaining", type=int, help="Units on hand")
    p_update.add_argument("--unit-cost", help="Cost per unit")
    p_update.add_argument("--sale-price", help="Sale price per unit")
    p_update.add_argument("--notes", help="Free-text notes")

    # --- batches ---
    p_batches = sub.add_parser("batches", help="Show available and expired batches")
    p_batches.add_argument("id", type=int, help="Product ID")

    # --- allocate ---
    p_allocate = sub.add_parser("allocate", help="Preview a FIFO allocation")
    p_allocate.add_argument("id", type=int, help="Product ID")
    p_allocate.add_argument("--qty", type=int, required=True, help="Units to allocate")

    # --- reduce ---
    p_reduce = sub.add_parser("reduce", help="Consume stock FIFO")
    p_reduce.add_argument("id", type=int, help="Product ID")
    p_reduce.add_argument("--qty", type=int, required=True, help="Units to remove")
    p_reduce.add_argument("--reason", default="sale", help="Reason (default: sale)")
    p_reduce.add_argument("--notes", help="Free-text notes")

    # --- low-stock ---
    sub.add_parser("low-stock", help="List low-stock products")

    # --- expiring ---
    p_expiring = sub.add_parser("expiring", help="List products with batches expiring soon")
    p_expiring.add_argument("--days", type=int, help="Look-ahead window in days")

    # --- movements ---
    p_movements = sub.add_parser("movements", help="Show stock movement log")
    p_movements.add_argument("id", type=int, help="Product ID")
    p_movements.add_argument("--limit", type=int, default=100, help="Maximum entries")

    # --- delete ---
    p_delete = sub.add_parser("delete", help="Delete a product")
    p_delete.add_argument("id", type=int, help="Product ID")

    return parser


def main() -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    base_url: str = args.base_url

    dispatch = {
        "list": cmd_list,
        "get": cmd_get,
        "create": cmd_create,
        "update": cmd_update,
        "add-batch": cmd_add_batch,
        "update-batch": cmd_update_batch,
        "batches": cmd_batches,
        "allocate": cmd_allocate,
        "reduce": cmd_reduce,
        "low-stock": cmd_low_stock,
        "expiring": cmd_expiring,
        "movements": cmd_movements,
        "delete": cmd_delete,
    }

    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    handler(args, base_url)


if __name__ == "__main__":
    main()
