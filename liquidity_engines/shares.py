"""
Module: liquidity_engines.shares
Responsibility:
    Convert between underlying assets and proportional shares for tranche
    vaults and first-loss cover reserves.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - SHARE_BACKING: conversions floor, so a holder never receives more
      value than the pool holds. An empty ledger (zero supply) mints 1:1.

Failure modes:
    - ZeroSharesMintedError when a deposit would mint zero shares,
      including a ledger whose assets were wiped out while shares remain.
"""

from __future__ import annotations

from liquidity_kernel.domain.values import mul_div
from liquidity_kernel.exceptions import ZeroSharesMintedError


def convert_to_shares(assets: int, total_assets: int, total_supply: int) -> int:
    """Shares worth ``assets`` at current pricing (floor)."""
    if total_supply == 0:
        return assets
    if total_assets == 0:
        return 0
    return mul_div(assets, total_supply, total_assets)


def convert_to_assets(shares: int, total_assets: int, total_supply: int) -> int:
    """Assets backing ``shares`` at current pricing (floor)."""
    if total_supply == 0:
        return shares
    return mul_div(shares, total_assets, total_supply)


def shares_for_deposit(assets: int, total_assets: int, total_supply: int) -> int:
    """Shares to mint for a deposit priced before the transfer lands.

    Raises:
        ZeroSharesMintedError: the deposit would mint nothing.
    """
    shares = convert_to_shares(assets, total_assets, total_supply)
    if shares == 0:
        raise ZeroSharesMintedError(assets, total_assets, total_supply)
    return shares
