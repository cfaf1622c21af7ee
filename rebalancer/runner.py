"""
Main runner module for the Solana rebalancing bot.
"""

import argparse
import dataclasses
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from rich.console import Console
from rich.table import Table
from solders.keypair import Keypair

from execution import JupiterClient, SolanaRpcClient, SwapExecutor

from . import config
from .state import BaselineState, BaselineStore, PortfolioSnapshot, TokenSnapshot
from .utils import (
    RebalancePnL,
    SwapOrder,
    calculate_allocations,
    calculate_deviation,
    calculate_portfolio_value,
    calculate_profit,
    calculate_rebalance_only_pnl,
    calculate_rebalance_swap,
    calculate_token_deltas,
    format_currency,
    format_percent,
    load_keypair,
    setup_logging,
)

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class BotContext:
    """Settings and external collaborators shared by every tick."""
    settings: config.Settings
    keypair: Keypair
    jupiter: JupiterClient
    rpc: SolanaRpcClient
    swaps: SwapExecutor


@dataclass
class TickResult:
    """Outcome of one portfolio check."""
    status: str
    values: Dict[str, float] = field(default_factory=dict)
    total_value: float = 0.0
    allocation_a: Optional[float] = None
    allocation_b: Optional[float] = None
    deviation: Optional[float] = None
    profit: Optional[float] = None
    profit_percent: Optional[float] = None
    rebalance_pnl: Optional[RebalancePnL] = None
    swap: Optional[SwapOrder] = None
    signature: Optional[str] = None


def build_context(settings: config.Settings) -> BotContext:
    """Create the keypair and API clients from validated settings."""
    jupiter = JupiterClient(timeout=settings.price_timeout_seconds)
    rpc = SolanaRpcClient(settings.rpc_url)
    return BotContext(
        settings=settings,
        keypair=load_keypair(settings.keypair_secret),
        jupiter=jupiter,
        rpc=rpc,
        swaps=SwapExecutor(jupiter, rpc),
    )


def check_portfolio(ctx: BotContext, state: BaselineState) -> TickResult:
    """
    Value the portfolio, report PnL and swap back toward 50/50 if needed.

    Args:
        ctx: Settings and collaborators
        state: Baseline state, filled write-once on the first priced tick

    Returns:
        TickResult describing what happened
    """
    settings = ctx.settings
    token_a, token_b = settings.token_mints
    mints = [token_a, token_b]

    wallet_address = str(ctx.keypair.pubkey())
    logger.info(f"Wallet: {wallet_address}")

    price_map = ctx.jupiter.get_token_prices(
        mints,
        retries=settings.price_retries,
        delay=settings.price_retry_delay_seconds,
    ) or {}
    price_a = price_map[token_a].price if token_a in price_map else None
    price_b = price_map[token_b].price if token_b in price_map else None

    if price_a is None or price_b is None or price_a <= 0 or price_b <= 0:
        logger.error("One or both token prices not found. Skipping this check.")
        return TickResult(status="skipped")

    balance_map = ctx.rpc.get_token_balances(wallet_address, mints)
    prices = {token_a: price_a, token_b: price_b}
    balances = {mint: balance_map[mint].balance if mint in balance_map else 0.0 for mint in mints}
    decimals = {mint: balance_map[mint].decimals if mint in balance_map else 0 for mint in mints}

    values = {mint: balances[mint] * prices[mint] for mint in mints}
    total_value = calculate_portfolio_value(balances, prices)

    logger.info(f"{format_currency(values[token_a])} (Token A)")
    logger.info(f"{format_currency(values[token_b])} (Token B)")
    logger.info(f"Total portfolio value: {format_currency(total_value)}")

    if state.initial_snapshot is None:
        snapshot = PortfolioSnapshot(
            timestamp=datetime.now(timezone.utc).isoformat(),
            tokens={
                mint: TokenSnapshot(balance=balances[mint], price=prices[mint], decimals=decimals[mint])
                for mint in mints
            },
        )
        if state.capture_snapshot(snapshot):
            logger.info("Initial token snapshot recorded.")

    token_deltas, delta_values, impact = calculate_token_deltas(balances, prices, state.initial_snapshot)
    logger.info(f"Token deltas — A: {token_deltas[token_a]}, B: {token_deltas[token_b]}")
    logger.info(
        f"Rebalance value impact: {format_currency(impact)} "
        f"(A: {format_currency(delta_values[token_a])}, B: {format_currency(delta_values[token_b])})"
    )

    rebalance_pnl = calculate_rebalance_only_pnl(balances, state.initial_snapshot)
    if rebalance_pnl is not None:
        logger.info(
            f"Rebalance-only PnL at initial prices: {format_currency(rebalance_pnl.profit_usd)} "
            f"({format_percent(rebalance_pnl.profit_percent)}), portfolio value at initial prices "
            f"{format_currency(rebalance_pnl.value_at_initial_prices)}"
        )

    if state.capture_initial_value(total_value):
        logger.info(f"Initial portfolio value recorded: {format_currency(total_value)}")

    profit, profit_percent, profit_status = calculate_profit(total_value, state.initial_value)
    logger.info(f"{profit_status}: {format_currency(profit)} ({format_percent(profit_percent)})")

    result = TickResult(
        status="balanced",
        values=values,
        total_value=total_value,
        profit=profit,
        profit_percent=profit_percent,
        rebalance_pnl=rebalance_pnl,
    )

    if total_value <= 0:
        logger.warning("Portfolio has no value. Nothing to rebalance.")
        result.status = "empty"
        return result

    threshold = settings.threshold_percent
    result.allocation_a, result.allocation_b = calculate_allocations(values[token_a], values[token_b])
    result.deviation = calculate_deviation(result.allocation_a, result.allocation_b)

    logger.info(
        f"Allocations — Token A: {format_percent(result.allocation_a)}, "
        f"Token B: {format_percent(result.allocation_b)}"
    )
    logger.info(f"Current threshold deviation: {format_percent(result.deviation)} (limit: {threshold}%)")

    order = calculate_rebalance_swap(token_a, token_b, values, prices, decimals, threshold)
    result.swap = order

    if order is None:
        logger.info("Portfolio is balanced. No swap needed.")
        return result

    if order.amount <= 0:
        logger.warning(
            f"Skip swap {order.direction}: excess {format_currency(order.excess_value)} "
            f"is less than one whole token."
        )
        result.status = "swap_skipped"
        return result

    logger.info(
        f"Swapping {order.tokens_to_swap} tokens ({order.amount} base units) from {order.direction}"
    )

    if settings.dry_run:
        logger.info(f"[DRY RUN] Would swap {order.amount} {order.input_mint} -> {order.output_mint}")
        result.status = "dry_run"
        return result

    result.signature = ctx.swaps.quote_and_swap(ctx.keypair, order.amount, order.input_mint, order.output_mint)
    result.status = "swapped" if result.signature else "swap_failed"
    return result


def run_tick_safely(ctx: BotContext, state: BaselineState) -> Optional[TickResult]:
    """Run one check, logging and swallowing any exception."""
    try:
        return check_portfolio(ctx, state)
    except Exception:
        logger.exception("❌ Portfolio check failed")
        return None


def display_portfolio_summary(
    mints,
    balances: Dict[str, float],
    prices: Dict[str, float],
    total_value: float,
):
    """Display a summary table of the current holdings."""

    table = Table(title="Portfolio Summary")
    table.add_column("Token", style="cyan")
    table.add_column("Mint")
    table.add_column("Balance", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Allocation", justify="right")

    for label, mint in zip("AB", mints):
        price = prices.get(mint)
        if price is None:
            table.add_row(label, mint, f"{balances.get(mint, 0.0)}", "[red]n/a[/red]", "-", "-")
            continue

        value = balances.get(mint, 0.0) * price
        allocation = format_percent(value / total_value * 100) if total_value > 0 else "[dim]-[/dim]"
        table.add_row(
            label,
            mint,
            f"{balances.get(mint, 0.0)}",
            format_currency(price),
            format_currency(value),
            allocation,
        )

    console.print(table)


def start_scheduler(ctx: BotContext, state: BaselineState):
    """Start the rebalancing scheduler."""
    interval = ctx.settings.check_interval_seconds

    scheduler = BlockingScheduler()

    # max_instances=1 keeps ticks from overlapping on the baseline state
    scheduler.add_job(
        func=run_tick_safely,
        args=[ctx, state],
        trigger=IntervalTrigger(seconds=interval),
        id='rebalance_job',
        name='Portfolio Rebalancing',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info("🚀 Starting Smart Rebalance Bot...")
    logger.info(f"   Tokens: {', '.join(ctx.settings.token_mints)}")
    logger.info(f"   Interval: {interval} seconds")
    logger.info(f"   Threshold: {ctx.settings.threshold_percent}%")
    logger.info(f"   Dry run: {ctx.settings.dry_run}")
    logger.info(f"   Next run: {datetime.now() + timedelta(seconds=interval)}")

    # Run once immediately
    run_tick_safely(ctx, state)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        logger.info("🛑 Rebalance bot stopped by user")
        scheduler.shutdown(wait=False)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Solana two-token 50/50 rebalancing bot")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single portfolio check and exit (don't start scheduler)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log swaps instead of executing them"
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit"
    )

    args = parser.parse_args()
    setup_logging()

    try:
        settings = config.validate_config()
        if args.dry_run:
            settings = dataclasses.replace(settings, dry_run=True)
        ctx = build_context(settings)
    except ValueError as e:
        logger.error(f"❌ Configuration error: {e}")
        sys.exit(1)

    if args.validate:
        logger.info("✅ Configuration is valid")
        logger.info(f"   Wallet: {ctx.keypair.pubkey()}")
        logger.info(f"   Threshold: {settings.threshold_percent}%")
        return

    state = BaselineState.load(BaselineStore(settings.value_file, settings.snapshot_file))

    try:
        if args.once:
            run_tick_safely(ctx, state)
        else:
            start_scheduler(ctx, state)
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
