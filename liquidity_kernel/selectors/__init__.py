"""Read-only selectors returning DTOs."""

from liquidity_kernel.selectors.pool_selector import PoolSelector

__all__ = ["PoolSelector"]
