"""
Kernel Invariants Contract.

These invariants are structural law for every pool. No pool configuration
may override them. This module only declares them; enforcement lives in the
tranche policies, the pool service, the vault and epoch services, and the
ORM listeners in ``liquidity_kernel.db.immutability``.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Configuration may change rates, caps and calendars, but never whether
    these rules apply.
    """

    WATERFALL_PRECEDENCE = "waterfall_precedence"
    """Losses hit first-loss covers, then junior, then senior. Recoveries
    restore junior, then senior, then covers in reverse order. Enforced by
    liquidity_engines.tranches_policy and PoolService.refresh."""

    NO_LEAKAGE = "no_leakage"
    """Every profit, loss and recovery split sums exactly to its input.
    Remainders of integer division always land on the last recipient."""

    SINGLE_WRITER_TRANCHE_ASSETS = "single_writer_tranche_assets"
    """Tranche assets are mutated only by PoolService, and explicit updates
    must present the current refresh sequence number."""

    SHARE_BACKING = "share_backing"
    """Shares are minted at pre-transfer pricing and never mint for zero
    shares, so existing holders are never diluted by a deposit."""

    EPOCH_IMMUTABILITY = "epoch_immutability"
    """Once an epoch summary has processed shares it is closed and its
    figures never change. Enforced by ORM listeners."""

    EPOCH_CONSERVATION = "epoch_conservation"
    """Unprocessed shares of a closed epoch roll into the next epoch
    unchanged; processed shares never exceed requested shares."""

    FIXED_WIDTH_RANGES = "fixed_width_ranges"
    """Tranche figures fit in 96 bits and timestamps and epoch ids in 64 bits.
    Enforced by liquidity_kernel.domain.values.require_uint."""

    ATOMIC_CALLS = "atomic_calls"
    """Each public pool call commits completely or not at all."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "liquidity_services",
    "liquidity_config",
)
