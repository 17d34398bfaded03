"""
Fees -- Reference platform fee splitter.

Responsibility:
    Deducts a flat platform fee (protocol, pool owner and EA combined) from
    gross profit before the tranche waterfall sees it.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Implements ``FeeSplitter``.

Non-goals:
    Splitting the fee among protocol, pool owner and EA, and withdrawing it,
    belong to the fee manager outside this kernel.
"""

from liquidity_kernel.domain.values import HUNDRED_PERCENT_IN_BPS, mul_div


class PlatformFeeSplitter:
    """Flat fee in basis points; keeps a running total of fees taken."""

    def __init__(self, fee_in_bps: int = 0):
        if not 0 <= fee_in_bps <= HUNDRED_PERCENT_IN_BPS:
            raise ValueError(f"fee_in_bps must be within [0, {HUNDRED_PERCENT_IN_BPS}]")
        self.fee_in_bps = fee_in_bps
        self.accrued_fees = 0

    def apply_platform_fees(self, profit: int) -> int:
        fees = mul_div(profit, self.fee_in_bps, HUNDRED_PERCENT_IN_BPS)
        self.accrued_fees += fees
        return profit - fees
