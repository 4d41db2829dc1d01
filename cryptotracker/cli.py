"""
Crypto Tracker - CLI Entry Point
================================

Usage:
    # Run the alert monitor (checks every 60s)
    cryptotracker monitor

    # One check, console output only
    cryptotracker monitor --once --dry-run

    # Manage alerts
    cryptotracker alert set bitcoin 50000
    cryptotracker alert list
    cryptotracker alert remove bitcoin

    # Market data, chart, portfolio
    cryptotracker lookup ethereum --chart
    cryptotracker chart solana --timeframe 30d
    cryptotracker portfolio add solana 10
    cryptotracker portfolio show

    # Check notification setup
    cryptotracker test-notify
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path

from .chart import ChartState
from .config import config
from .context import AppContext
from .errors import CoinNotFoundError, PriceSourceError, TrackerError
from .portfolio import fetch_portfolio_prices, value_portfolio
from .utils import format_usd

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = None, log_file: str = None):
    """Configure logging: date-stamped file plus console."""
    log_level = (log_level or config.log_level).upper()
    log_path = Path(log_file or config.log_file)

    # Create date-stamped log file (e.g., logs/tracker_2026-01-18.log)
    date_str = datetime.now().strftime("%Y-%m-%d")
    dated_log_file = log_path.parent / f"{log_path.stem}_{date_str}{log_path.suffix}"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(dated_log_file)
    except OSError as e:
        root_logger.warning(f"Cannot write log file {dated_log_file}, logging to console only: {e}")
    else:
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.debug(f"Logging to: {dated_log_file}")

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def ask_permission() -> bool:
    """Interactive y/n prompt for desktop notifications."""
    answer = input("Allow desktop notifications for price alerts? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _prompt_for_terminal():
    return ask_permission if sys.stdin.isatty() else None


# =============================================================================
# Commands
# =============================================================================

async def cmd_monitor(ctx: AppContext, args) -> int:
    ctx.notifier.request_permission()

    if args.once:
        result = await ctx.monitor.check_once()
        if not result.checked:
            print("No alerts set.")
        elif result.failure:
            print(f"Price check failed ({result.failure.value}); alerts unchanged.")
        else:
            print(f"Checked {len(result.checked)} alert(s), {len(result.triggered)} triggered.")
        return 0

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl+C surfaces as KeyboardInterrupt in main()
            pass

    print("\n" + "=" * 60)
    print("CRYPTO PRICE ALERT MONITOR")
    print("=" * 60)
    print(f"Alerts:         {len(ctx.alerts)}")
    print(f"Check interval: {ctx.monitor.interval:g} seconds")
    print(f"Notifications:  {ctx.notifier.name} ({ctx.notifier.permission.value})")
    print("=" * 60)
    print("Press Ctrl+C to stop\n")

    ctx.monitor.start()
    await stop_event.wait()
    logger.info("Shutdown signal received, stopping monitor...")
    return 0


async def cmd_alert(ctx: AppContext, args) -> int:
    if args.alert_command == "set":
        target = ctx.register_alert(args.coin, args.target)
        print(f"Alert set: {args.coin.strip().lower()} at {format_usd(target)}")
    elif args.alert_command == "remove":
        if ctx.alerts.remove_alert(args.coin.strip()):
            print(f"Alert removed: {args.coin.strip().lower()}")
        else:
            print(f"No alert for {args.coin}")
            return 1
    else:
        entries = ctx.alerts.entries()
        if not entries:
            print("No alerts set.")
        for entry in entries:
            print(f"  {entry.coin_id:<20} {format_usd(entry.target_price):>18}")
    return 0


async def cmd_lookup(ctx: AppContext, args) -> int:
    coin_id = args.coin.strip().lower()
    try:
        coin = await ctx.price_source.get_coin(coin_id)
    except CoinNotFoundError:
        print("Coin not found. Please select a valid coin.")
        return 1
    except PriceSourceError as e:
        logger.debug(f"Lookup failed: {e}")
        print("Failed to fetch data. Please check your internet connection or try again later.")
        return 1

    rows = [
        ("Name", f"{coin.name} ({coin.symbol})"),
        ("Price", format_usd(coin.price)),
        ("Market Cap", format_usd(coin.market_cap) if coin.market_cap is not None else "-"),
        ("Volume (24hrs)", format_usd(coin.total_volume) if coin.total_volume is not None else "-"),
        ("Change (24hrs)", f"{coin.change_24h_pct:+.2f}%" if coin.change_24h_pct is not None else "-"),
        ("24h High", format_usd(coin.high_24h) if coin.high_24h is not None else "-"),
        ("24h Low", format_usd(coin.low_24h) if coin.low_24h is not None else "-"),
        ("Last Updated", coin.last_updated.strftime("%Y-%m-%d %H:%M:%S %Z") if coin.last_updated else "-"),
    ]
    target = ctx.alerts.get(coin.coin_id)
    if target is not None:
        rows.append(("Current target", format_usd(target)))

    for label, value in rows:
        print(f"  {label:<16} {value}")

    ctx.selected_coin.set(coin.coin_id)
    if args.chart:
        return await _show_chart(ctx, args.timeframe)
    return 0


async def _show_chart(ctx: AppContext, timeframe: str) -> int:
    chart = ChartState(timeframe=timeframe)
    chart.bind(ctx.selected_coin)
    if not await chart.load(ctx.price_source):
        print(chart.error)
        return 1

    print(f"\n  {chart.coin_id} ({chart.timeframe}): {len(chart.points)} points")
    if chart.points:
        print(f"  Low {format_usd(chart.low)}  High {format_usd(chart.high)}", end="")
        if chart.change_pct is not None:
            print(f"  Change {chart.change_pct:+.2f}%")
        else:
            print()
    return 0


async def cmd_chart(ctx: AppContext, args) -> int:
    ctx.selected_coin.set(args.coin.strip().lower())
    return await _show_chart(ctx, args.timeframe)


async def cmd_portfolio(ctx: AppContext, args) -> int:
    if args.portfolio_command == "add":
        holding = ctx.portfolio.add_holding(args.coin, args.quantity)
        print(f"{holding.coin_id}: {holding.quantity:g}")
        return 0

    holdings = ctx.portfolio.holdings
    prices = await fetch_portfolio_prices(ctx.price_source, holdings)
    valuation = value_portfolio(holdings, prices)

    print(f"  {'Coin':<16} {'Price':>16} {'Quantity':>12} {'Total Value':>18} {'Alert':>16}")
    for row in valuation.rows:
        target = ctx.alerts.get(row.coin_id)
        price = format_usd(row.price) + ("*" if row.from_fallback else "")
        print(
            f"  {row.coin_id:<16} {price:>16} {row.quantity:>12g} "
            f"{format_usd(row.total_value):>18} {format_usd(target) if target else '-':>16}"
        )
    print(f"  {'Grand Total':<46} {format_usd(valuation.total_value):>18}")
    if any(row.from_fallback for row in valuation.rows):
        print("  * live price unavailable, showing a fallback price")
    return 0


async def cmd_test_notify(ctx: AppContext, args) -> int:
    ctx.notifier.request_permission()
    delivered = ctx.notifier.notify(config.notification_title, "Test notification from Crypto Tracker")
    if delivered:
        print("Test notification sent.")
        return 0
    print(f"Notification not sent (permission: {ctx.notifier.permission.value}).")
    return 1


COMMANDS = {
    "monitor": cmd_monitor,
    "alert": cmd_alert,
    "lookup": cmd_lookup,
    "chart": cmd_chart,
    "portfolio": cmd_portfolio,
    "test-notify": cmd_test_notify,
}


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cryptotracker",
        description="Crypto price lookup, portfolio and price alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help=f'Log level (default: {config.log_level})'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print alerts to console instead of sending notifications'
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    monitor = subparsers.add_parser("monitor", help="Run the price alert monitor")
    monitor.add_argument(
        '--interval',
        type=float,
        default=config.alert_poll_interval_sec,
        help=f'Seconds between checks (default: {config.alert_poll_interval_sec:g})'
    )
    monitor.add_argument('--once', action='store_true', help='Run a single check and exit')

    alert = subparsers.add_parser("alert", help="Manage price alerts")
    alert_sub = alert.add_subparsers(dest="alert_command", required=True)
    alert_set = alert_sub.add_parser("set", help="Set or replace the alert for a coin")
    alert_set.add_argument("coin")
    alert_set.add_argument("target", help="Target price in USD")
    alert_remove = alert_sub.add_parser("remove", help="Remove the alert for a coin")
    alert_remove.add_argument("coin")
    alert_sub.add_parser("list", help="List alerts")

    timeframes = list(config.chart_timeframes)
    lookup = subparsers.add_parser("lookup", help="Show current market data for a coin")
    lookup.add_argument("coin")
    lookup.add_argument('--chart', action='store_true', help='Also show the price history')
    lookup.add_argument('--timeframe', choices=timeframes, default=config.default_timeframe)

    chart = subparsers.add_parser("chart", help="Show price history for a coin")
    chart.add_argument("coin")
    chart.add_argument('--timeframe', choices=timeframes, default=config.default_timeframe)

    portfolio = subparsers.add_parser("portfolio", help="Show or edit the portfolio")
    portfolio_sub = portfolio.add_subparsers(dest="portfolio_command", required=True)
    portfolio_sub.add_parser("show", help="Show holdings with live valuation")
    portfolio_add = portfolio_sub.add_parser("add", help="Add a quantity of a coin")
    portfolio_add.add_argument("coin")
    portfolio_add.add_argument("quantity")

    subparsers.add_parser("test-notify", help="Send a test notification")

    return parser


async def run(args) -> int:
    ctx = AppContext.create(
        dry_run=args.dry_run,
        prompt=_prompt_for_terminal(),
        interval_sec=getattr(args, "interval", None),
    )
    try:
        return await COMMANDS[args.command](ctx, args)
    finally:
        await ctx.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\nStopped by user")
        return 0
    except ValueError as e:
        # Validation errors from the alert/portfolio boundary
        print(f"Error: {e}")
        return 2
    except TrackerError as e:
        logger.exception(f"Tracker error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
