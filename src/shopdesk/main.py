from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from typing import Optional

from shopdesk.application.container import AppContainer, build_container
from shopdesk.config import get_app_paths, load_settings
from shopdesk.domain.errors import AppError
from shopdesk.logging_config import setup_logging
from shopdesk.services.dashboard_service import DashboardFilter, Period, TypeFilter
from shopdesk.ui.console import ConsoleDashboard, render_sale_metrics

log = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="shopdesk", description="Inventory & sales client")
    parser.add_argument("--user", default=os.environ.get("SHOPDESK_USER"), help="Username (or SHOPDESK_USER)")
    parser.add_argument(
        "--password",
        default=os.environ.get("SHOPDESK_PASSWORD"),
        help="Password (or SHOPDESK_PASSWORD)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    dash = sub.add_parser("dashboard", help="Live income/expense dashboard")
    dash.add_argument("--period", choices=[p.value for p in Period if p is not Period.CUSTOM], default="7d")
    dash.add_argument("--type", choices=[t.value for t in TypeFilter], default="ALL")
    dash.add_argument("--duration", type=float, default=0, help="Seconds to run (0 = until Ctrl+C)")

    export = sub.add_parser("export", help="Export the dashboard window to Excel")
    export.add_argument("--period", choices=[p.value for p in Period if p is not Period.CUSTOM], default="7d")
    export.add_argument("--type", choices=[t.value for t in TypeFilter], default="ALL")
    export.add_argument("--out", default=None, help="Target .xlsx path")

    preview = sub.add_parser("sale-preview", help="Show sale totals and stock projection")
    preview.add_argument("--product", type=int, required=True)
    preview.add_argument("--qty", type=int, default=1)
    preview.add_argument("--price", default=None, help="Override unit price")

    return parser.parse_args(argv)


async def run_dashboard(app: AppContainer, flt: DashboardFilter, duration: float) -> None:
    scheduler = app.new_dashboard()
    view = ConsoleDashboard()
    view.attach(scheduler)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except NotImplementedError:
        pass  # Windows event loops

    scheduler.start(app.settings.poll_interval_ms, flt)
    try:
        if duration > 0:
            await asyncio.wait_for(stop.wait(), timeout=duration)
        else:
            await stop.wait()
    except asyncio.TimeoutError:
        pass
    finally:
        scheduler.stop()
        await scheduler.wait_idle()
        view.detach()


async def run_export(app: AppContainer, flt: DashboardFilter, out: str) -> None:
    scheduler = app.new_dashboard()
    errors: list[AppError] = []
    scheduler.errors.subscribe(errors.append)
    scheduler.start(app.settings.poll_interval_ms, flt)
    try:
        await scheduler.wait_idle()
    finally:
        scheduler.stop()
    if errors:
        raise errors[0]
    app.reporting.export_transactions_excel(out, scheduler.state.value)
    print(f"Exported {len(scheduler.state.value.transactions)} transactions to {out}")


async def run_sale_preview(app: AppContainer, product_id: int, qty: int, price: Optional[str]) -> None:
    engine = app.new_sale_engine()
    await engine.load_products()
    engine.set_product(product_id)
    if engine.product is None:
        print(f"Product {product_id} is not available for sale.")
        return
    if price is not None:
        engine.set_unit_price(price)
    metrics = engine.set_quantity(qty)
    print(f"{engine.product.name} x{engine.draft.quantity} @ {engine.draft.unit_price}")
    render_sale_metrics(metrics)
    for e in engine.validate_for_submit().errors:
        print(f"! {e.user_message}")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=settings.log_level)

    app = build_container(settings)
    try:
        app.auth.login(args.user or "", args.password or "")
        flt = DashboardFilter(type=TypeFilter(getattr(args, "type", "ALL")), period=Period(getattr(args, "period", "7d")))

        if args.command == "dashboard":
            asyncio.run(run_dashboard(app, flt, args.duration))
        elif args.command == "export":
            out = args.out or str(paths.exports_dir / f"transactions_{flt.period.value}.xlsx")
            asyncio.run(run_export(app, flt, out))
        elif args.command == "sale-preview":
            asyncio.run(run_sale_preview(app, args.product, args.qty, args.price))
    except AppError as e:
        log.error("command_failed command=%s kind=%s error=%s", args.command, e.kind, e)
        print(f"Error: {e.user_message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
