"""Storefront command line.

Usage:
    python -m storefront.cli cart                    # Show the persisted cart
    python -m storefront.cli watch --scope active    # Follow the kitchen board
    python -m storefront.cli advance 42              # Move ticket 42 to its next status
"""

import argparse
import asyncio
import sys

from storefront.config import StorefrontSettings
from storefront.fulfillment.state_machine import STATUS_LABELS, action_label
from storefront.session import StorefrontSession
from storefront.tracking.tracker import OrderListSnapshot, TrackerScope
from storefront.utils.logging import add_context, clear_context, configure_logging


def _session(settings: StorefrontSettings) -> StorefrontSession:
    return StorefrontSession(settings, token_provider=lambda: settings.api_token)


async def show_cart(settings: StorefrontSettings) -> int:
    async with _session(settings) as session:
        snapshot = session.cart.snapshot()
        if snapshot.is_empty:
            print("Cart is empty.")
            return 0
        for line in snapshot.lines:
            print(f"  {line.quantity:>3} x {line.name:<30} {line.subtotal:>8.2f}")
        print(f"  {snapshot.item_count:>3} item(s){'':<24} {snapshot.total:>8.2f} {settings.currency.upper()}")
        points = session.loyalty.view()
        suffix = " (pending confirmation)" if points.unconfirmed else ""
        print(f"Loyalty points: {points.points}{suffix}")
    return 0


def _print_snapshot(snapshot: OrderListSnapshot) -> None:
    stamp = snapshot.fetched_at.strftime("%H:%M:%S") if snapshot.fetched_at else "--:--:--"
    warning = "  [connection problem, showing last known orders]" if snapshot.poll_failed else ""
    print(f"[{stamp}] {len(snapshot.orders)} order(s){warning}")
    for order in snapshot.orders:
        action = action_label(order.status)
        hint = f"  -> {action}" if action else ""
        total = f"{order.total_to_pay:.2f}" if order.total_to_pay is not None else "-"
        print(f"  #{order.id:<6} {STATUS_LABELS[order.status]:<18} {total:>8}{hint}")


async def watch(settings: StorefrontSettings, scope: TrackerScope) -> int:
    async with _session(settings) as session:
        tracker = session.customer_tracker() if scope is TrackerScope.MINE else session.kitchen_tracker()
        stream = tracker.subscribe()
        try:
            async for snapshot in stream:
                _print_snapshot(snapshot)
        finally:
            await stream.aclose()
    return 0


async def advance(settings: StorefrontSettings, order_id: str) -> int:
    async with _session(settings) as session:
        snapshot = await session.kitchen.tracker.poll()
        if snapshot.poll_failed:
            print(f"Could not load orders: {snapshot.error.user_message}", file=sys.stderr)
            return 1
        order = snapshot.get(order_id)
        if order is None:
            print(f"Order {order_id} is not on the kitchen board.", file=sys.stderr)
            return 1

        result = await session.kitchen.advance(order)
        if not result.ok:
            print(f"{result.user_message} ({result.message})", file=sys.stderr)
            return 1
        print(f"Order #{order_id}: {STATUS_LABELS[result.value.status]}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Storefront order lifecycle client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("cart", help="Show the persisted cart and loyalty balance")

    watch_parser = subparsers.add_parser("watch", help="Poll orders until interrupted")
    watch_parser.add_argument(
        "--scope",
        choices=[scope.value for scope in TrackerScope],
        default=TrackerScope.MINE.value,
        help="mine: the signed-in customer's orders; active: every open order (staff)",
    )

    advance_parser = subparsers.add_parser("advance", help="Advance a kitchen ticket to its next status")
    advance_parser.add_argument("order_id")

    args = parser.parse_args(argv)

    settings = StorefrontSettings.from_env()
    configure_logging(settings)
    add_context(command=args.command, environment=settings.environment)

    try:
        if args.command == "cart":
            return asyncio.run(show_cart(settings))
        if args.command == "watch":
            try:
                return asyncio.run(watch(settings, TrackerScope(args.scope)))
            except KeyboardInterrupt:
                return 0
        if args.command == "advance":
            return asyncio.run(advance(settings, args.order_id))

        parser.print_help()
        return 1
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
