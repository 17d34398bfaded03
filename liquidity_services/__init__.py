"""Public facade over the liquidity kernel."""

from liquidity_services.liquidity_pool import LiquidityPool

__all__ = ["LiquidityPool"]
