from __future__ import annotations

import argparse
import logging
import time

from services.api.app.db.init_db import init_db
from services.api.app.services.storefront import build_storefront


def main() -> int:
    parser = argparse.ArgumentParser(description="Show local orders and sync them with the shop")
    parser.add_argument("--list-only", action="store_true", help="Only print the local queue")
    parser.add_argument(
        "--poll",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Keep reconciling on this interval until interrupted",
    )
    parser.add_argument(
        "--retry-rejected",
        action="store_true",
        help="Also resubmit orders the shop refused earlier",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()
    storefront = build_storefront()
    tracker = storefront.tracker

    if not args.list_only:
        report = tracker.reconcile(retry_rejected=args.retry_rejected)
        print(
            f"submitted={len(report.submitted)} updated={len(report.updated)} "
            f"failed={len(report.failed)} skipped={len(report.skipped)}"
        )
        for order_ref, error in report.failed.items():
            print(f"  ! {order_ref}: {error}")

    for order in tracker.refresh():
        display = tracker.display(order.status)
        remote = order.remote_id or "-"
        print(
            f"{order.order_ref}  {order.created_at:%Y-%m-%d %H:%M}  "
            f"{display.label:<22} PHP {order.total:>10}  remote={remote}"
        )

    if args.poll is None or args.list_only:
        return 0

    poller = tracker.start_polling(args.poll)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        poller.cancel()
        poller.join(timeout=args.poll)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
