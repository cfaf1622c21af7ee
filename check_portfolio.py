"""
Print the wallet's current balances, prices and allocation without trading.
"""

import sys

from rebalancer import config
from rebalancer.runner import build_context, display_portfolio_summary
from rebalancer.utils import (
    calculate_allocations,
    calculate_deviation,
    calculate_portfolio_value,
    format_currency,
    format_percent,
)


def check_portfolio():
    try:
        settings = config.validate_config()
        ctx = build_context(settings)
    except ValueError as e:
        print(f'Configuration error: {e}')
        return 1

    wallet = str(ctx.keypair.pubkey())
    mints = list(settings.token_mints)

    print(f'🔍 Checking portfolio for {wallet}...')
    price_map = ctx.jupiter.get_token_prices(mints, retries=0) or {}
    prices = {mint: entry.price for mint, entry in price_map.items()}
    balance_map = ctx.rpc.get_token_balances(wallet, mints)
    balances = {mint: balance_map[mint].balance for mint in mints}

    if any(mint not in prices for mint in mints):
        display_portfolio_summary(mints, balances, prices, 0.0)
        print('⚠️ Prices unavailable for one or both tokens')
        return 1

    values = [balances[mint] * prices[mint] for mint in mints]
    total_value = calculate_portfolio_value(balances, prices)
    display_portfolio_summary(mints, balances, prices, total_value)
    print(f'Total portfolio value: {format_currency(total_value)}')

    if total_value > 0:
        allocation_a, allocation_b = calculate_allocations(*values)
        deviation = calculate_deviation(allocation_a, allocation_b)
        print(f'Deviation from 50/50: {format_percent(deviation)} (limit: {settings.threshold_percent}%)')
    return 0


if __name__ == "__main__":
    sys.exit(check_portfolio())
