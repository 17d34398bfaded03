"""
Typed Exception Hierarchy for the Liquidity Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection surfaces to the caller with a specific reason code. Callers
catch by type and read structured attributes, never by parsing messages:

    try:
        pool.deposit(SENIOR_TRANCHE, lender, amount)
    except TrancheCapExceededError as e:
        respond(code=e.code, available=e.available_cap)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LiquidityKernelError (base)
    |
    +-- ValidationError              rejected before any state change
    |   +-- ZeroAmountError
    |   +-- ZeroAddressError
    |   +-- UnauthorizedCallerError
    |   +-- DepositAmountTooLowError
    |   +-- TrancheCapExceededError
    |   +-- CoverLiquidityCapExceededError
    |   +-- LenderNotApprovedError
    |   +-- NotCoverProviderError
    |   +-- AlreadyCoverProviderError
    |   +-- InsufficientSharesError
    |   +-- ZeroSharesMintedError
    |   +-- AmountOutOfRangeError
    |   +-- UnknownTrancheError
    |   +-- TooManyCoverProvidersError
    |   +-- TooManyLendersError
    |   +-- NonTransferableSharesError
    |
    +-- PolicyError                  rejected by pool policy; retry later
    |   +-- WithdrawTooEarlyError
    |   +-- LiquidityRequirementError
    |   +-- RedemptionCancellationDisabledError
    |   +-- CoverRedemptionNotAllowedError
    |   +-- EpochClosedTooEarlyError
    |   +-- PoolNotOnError
    |   +-- PoolNotClosedError
    |   +-- PoolAlreadyEnabledError
    |   +-- InsufficientAdminCoverError
    |   +-- CoverProviderHasBalanceError
    |
    +-- InvariantViolationError      fatal; the whole call is rolled back
    |   +-- ArithmeticUnderflowError
    |   +-- StaleTrancheAssetsError
    |   +-- PoolStateNotFoundError
    |   +-- ImmutabilityViolationError
    |
    +-- CustodyError                 collaborator transfer failures
    |   +-- TransferRejectedError
    |   +-- InsufficientBalanceError
    |   +-- InsufficientLiquidityError
    |
    +-- ConfigError
        +-- InvalidPoolConfigError
        +-- ConfigFileNotFoundError

===============================================================================
PROPAGATION
===============================================================================

Validation and policy errors surface unchanged to the caller. Invariant
violations abort the operation; the transaction scope that wraps every
public pool call rolls back so nothing is partially applied. CustodyError
raised for one recipient during a yield payout is caught by the payout loop
and reported, so other recipients are still paid.
"""


class LiquidityKernelError(Exception):
    """
    Base exception for all liquidity kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LIQUIDITY_KERNEL_ERROR"


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class ValidationError(LiquidityKernelError):
    """Base exception for input rejected before any state change."""

    code: str = "VALIDATION_ERROR"


class ZeroAmountError(ValidationError):
    """An amount or share count of zero was supplied."""

    code: str = "ZERO_AMOUNT"

    def __init__(self, field: str = "amount"):
        self.field = field
        super().__init__(f"{field} must be greater than zero")


class ZeroAddressError(ValidationError):
    """An empty account identifier was supplied."""

    code: str = "ZERO_ADDRESS"

    def __init__(self, field: str = "account"):
        self.field = field
        super().__init__(f"{field} must be a non-empty account id")


class UnauthorizedCallerError(ValidationError):
    """Caller lacks the capability required for the operation."""

    code: str = "UNAUTHORIZED_CALLER"

    def __init__(self, caller: str, required_role: str):
        self.caller = caller
        self.required_role = required_role
        super().__init__(f"{caller} is not authorized as {required_role}")


class DepositAmountTooLowError(ValidationError):
    """Deposit is below the configured minimum."""

    code: str = "DEPOSIT_AMOUNT_TOO_LOW"

    def __init__(self, amount: int, min_amount: int):
        self.amount = amount
        self.min_amount = min_amount
        super().__init__(
            f"Deposit {amount} is below minimum deposit {min_amount}"
        )


class TrancheCapExceededError(ValidationError):
    """Deposit would exceed the tranche's available capacity."""

    code: str = "TRANCHE_CAP_EXCEEDED"

    def __init__(self, tranche: int, amount: int, available_cap: int):
        self.tranche = tranche
        self.amount = amount
        self.available_cap = available_cap
        super().__init__(
            f"Deposit {amount} into tranche {tranche} exceeds "
            f"available cap {available_cap}"
        )


class CoverLiquidityCapExceededError(ValidationError):
    """Cover deposit would push reserve assets above its ceiling."""

    code: str = "COVER_LIQUIDITY_CAP_EXCEEDED"

    def __init__(self, cover_id: str, amount: int, cover_assets: int, max_liquidity: int):
        self.cover_id = cover_id
        self.amount = amount
        self.cover_assets = cover_assets
        self.max_liquidity = max_liquidity
        super().__init__(
            f"Cover {cover_id}: deposit {amount} on top of {cover_assets} "
            f"exceeds max liquidity {max_liquidity}"
        )


class LenderNotApprovedError(ValidationError):
    """Lender is not on the tranche's approval list."""

    code: str = "LENDER_NOT_APPROVED"

    def __init__(self, lender: str, tranche: int):
        self.lender = lender
        self.tranche = tranche
        super().__init__(f"Lender {lender} is not approved for tranche {tranche}")


class NotCoverProviderError(ValidationError):
    """Account is not on the cover's provider allow-list."""

    code: str = "NOT_COVER_PROVIDER"

    def __init__(self, cover_id: str, account: str):
        self.cover_id = cover_id
        self.account = account
        super().__init__(f"{account} is not a provider of cover {cover_id}")


class AlreadyCoverProviderError(ValidationError):
    """Account is already on the cover's provider allow-list."""

    code: str = "ALREADY_COVER_PROVIDER"

    def __init__(self, cover_id: str, account: str):
        self.cover_id = cover_id
        self.account = account
        super().__init__(f"{account} is already a provider of cover {cover_id}")


class InsufficientSharesError(ValidationError):
    """Request refers to more shares than the holder owns."""

    code: str = "INSUFFICIENT_SHARES"

    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"{holder} requested {requested} shares but holds {available}"
        )


class ZeroSharesMintedError(ValidationError):
    """Deposit would mint zero shares (empty or defaulted tranche)."""

    code: str = "ZERO_SHARES_MINTED"

    def __init__(self, assets: int, total_assets: int, total_supply: int):
        self.assets = assets
        self.total_assets = total_assets
        self.total_supply = total_supply
        super().__init__(
            f"Depositing {assets} mints zero shares "
            f"(total assets {total_assets}, supply {total_supply})"
        )


class AmountOutOfRangeError(ValidationError):
    """Value does not fit its fixed-width integer range."""

    code: str = "AMOUNT_OUT_OF_RANGE"

    def __init__(self, field: str, value: int, max_value: int):
        self.field = field
        self.value = value
        self.max_value = max_value
        super().__init__(f"{field}={value} is outside [0, {max_value}]")


class UnknownTrancheError(ValidationError):
    """Tranche index is neither senior nor junior."""

    code: str = "UNKNOWN_TRANCHE"

    def __init__(self, tranche: int):
        self.tranche = tranche
        super().__init__(f"Unknown tranche index: {tranche}")


class TooManyCoverProvidersError(ValidationError):
    """Provider allow-list is full."""

    code: str = "TOO_MANY_COVER_PROVIDERS"

    def __init__(self, cover_id: str, max_providers: int):
        self.cover_id = cover_id
        self.max_providers = max_providers
        super().__init__(
            f"Cover {cover_id} already has {max_providers} providers"
        )


class TooManyLendersError(ValidationError):
    """Tranche approval list is full."""

    code: str = "TOO_MANY_LENDERS"

    def __init__(self, tranche: int, max_lenders: int):
        self.tranche = tranche
        self.max_lenders = max_lenders
        super().__init__(f"Tranche {tranche} already has {max_lenders} lenders")


class NonTransferableSharesError(ValidationError):
    """Cover shares only move through deposit and redeem."""

    code: str = "NON_TRANSFERABLE_SHARES"

    def __init__(self, cover_id: str):
        self.cover_id = cover_id
        super().__init__(f"Shares of cover {cover_id} are not transferable")


# ---------------------------------------------------------------------------
# Policy errors
# ---------------------------------------------------------------------------


class PolicyError(LiquidityKernelError):
    """Base exception for requests rejected by pool policy."""

    code: str = "POLICY_ERROR"


class WithdrawTooEarlyError(PolicyError):
    """Redemption requested inside the post-deposit lockout window."""

    code: str = "WITHDRAW_TOO_EARLY"

    def __init__(self, lender: str, last_deposit_ts: int, unlock_ts: int):
        self.lender = lender
        self.last_deposit_ts = last_deposit_ts
        self.unlock_ts = unlock_ts
        super().__init__(
            f"Lender {lender} cannot redeem before {unlock_ts} "
            f"(last deposit {last_deposit_ts})"
        )


class LiquidityRequirementError(PolicyError):
    """Admin redemption would breach its required liquidity."""

    code: str = "LIQUIDITY_REQUIREMENT"

    def __init__(self, lender: str, remaining_assets: int, required_assets: int):
        self.lender = lender
        self.remaining_assets = remaining_assets
        self.required_assets = required_assets
        super().__init__(
            f"{lender} must keep {required_assets}, "
            f"redemption leaves {remaining_assets}"
        )


class RedemptionCancellationDisabledError(PolicyError):
    """Pool configuration does not allow cancelling redemption requests."""

    code: str = "REDEMPTION_CANCELLATION_DISABLED"

    def __init__(self, lender: str):
        self.lender = lender
        super().__init__("Redemption cancellation is disabled for this pool")


class CoverRedemptionNotAllowedError(PolicyError):
    """Cover redemption while not ready and below the liquidity floor."""

    code: str = "COVER_REDEMPTION_NOT_ALLOWED"

    def __init__(self, cover_id: str, assets: int, cover_assets: int, min_liquidity: int):
        self.cover_id = cover_id
        self.assets = assets
        self.cover_assets = cover_assets
        self.min_liquidity = min_liquidity
        super().__init__(
            f"Cover {cover_id}: redeeming {assets} of {cover_assets} "
            f"breaches minimum liquidity {min_liquidity}"
        )


class EpochClosedTooEarlyError(PolicyError):
    """Epoch close attempted before the epoch's end time."""

    code: str = "EPOCH_CLOSED_TOO_EARLY"

    def __init__(self, epoch_id: int, end_time: int, now: int):
        self.epoch_id = epoch_id
        self.end_time = end_time
        self.now = now
        super().__init__(
            f"Epoch {epoch_id} ends at {end_time}; cannot close at {now}"
        )


class PoolNotOnError(PolicyError):
    """Operation requires the pool to be enabled."""

    code: str = "POOL_NOT_ON"

    def __init__(self, pool_id: str, status: str):
        self.pool_id = pool_id
        self.status = status
        super().__init__(f"Pool {pool_id} is {status}, expected ON")


class PoolNotClosedError(PolicyError):
    """Operation requires the pool to be closed."""

    code: str = "POOL_NOT_CLOSED"

    def __init__(self, pool_id: str, status: str):
        self.pool_id = pool_id
        self.status = status
        super().__init__(f"Pool {pool_id} is {status}, expected CLOSED")


class PoolAlreadyEnabledError(PolicyError):
    """Pool can only be enabled from the OFF state."""

    code: str = "POOL_ALREADY_ENABLED"

    def __init__(self, pool_id: str, status: str):
        self.pool_id = pool_id
        self.status = status
        super().__init__(f"Pool {pool_id} is {status}, cannot enable")


class InsufficientAdminCoverError(PolicyError):
    """An admin cover provider has not met its required assets."""

    code: str = "INSUFFICIENT_ADMIN_COVER"

    def __init__(self, provider: str, assets: int, required: int):
        self.provider = provider
        self.assets = assets
        self.required = required
        super().__init__(
            f"Admin provider {provider} holds {assets} cover assets, "
            f"needs {required}"
        )


class CoverProviderHasBalanceError(PolicyError):
    """Providers can only be removed once they hold no shares."""

    code: str = "COVER_PROVIDER_HAS_BALANCE"

    def __init__(self, cover_id: str, account: str, shares: int):
        self.cover_id = cover_id
        self.account = account
        self.shares = shares
        super().__init__(
            f"{account} still holds {shares} shares of cover {cover_id}"
        )


# ---------------------------------------------------------------------------
# Invariant violations
# ---------------------------------------------------------------------------


class InvariantViolationError(LiquidityKernelError):
    """Base exception for states the validation layer should make unreachable."""

    code: str = "INVARIANT_VIOLATION"


class ArithmeticUnderflowError(InvariantViolationError):
    """Checked subtraction would go below zero."""

    code: str = "ARITHMETIC_UNDERFLOW"

    def __init__(self, field: str, minuend: int, subtrahend: int):
        self.field = field
        self.minuend = minuend
        self.subtrahend = subtrahend
        super().__init__(f"{field}: {minuend} - {subtrahend} underflows")


class StaleTrancheAssetsError(InvariantViolationError):
    """Tranche assets set with a token from an earlier refresh."""

    code: str = "STALE_TRANCHE_ASSETS"

    def __init__(self, expected_seq: int, received_seq: int):
        self.expected_seq = expected_seq
        self.received_seq = received_seq
        super().__init__(
            f"Tranche asset update uses refresh #{received_seq}, "
            f"current is #{expected_seq}"
        )


class PoolStateNotFoundError(InvariantViolationError):
    """Pool has not been initialized in the store."""

    code: str = "POOL_STATE_NOT_FOUND"

    def __init__(self, pool_id: str):
        self.pool_id = pool_id
        super().__init__(f"Pool state not found: {pool_id}")


# ---------------------------------------------------------------------------
# Custody errors
# ---------------------------------------------------------------------------


class CustodyError(LiquidityKernelError):
    """Base exception for underlying-asset transfer failures."""

    code: str = "CUSTODY_ERROR"


class TransferRejectedError(CustodyError):
    """Recipient refuses transfers (e.g. blocked account)."""

    code: str = "TRANSFER_REJECTED"

    def __init__(self, recipient: str, amount: int):
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {recipient} rejected")


class InsufficientBalanceError(CustodyError):
    """Sender does not hold enough underlying assets."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, holder: str, amount: int, balance: int):
        self.holder = holder
        self.amount = amount
        self.balance = balance
        super().__init__(f"{holder} holds {balance}, cannot send {amount}")


class InsufficientLiquidityError(CustodyError):
    """Pool safe cannot release the amount without touching reserved profit."""

    code: str = "INSUFFICIENT_LIQUIDITY"

    def __init__(self, amount: int, available: int):
        self.amount = amount
        self.available = available
        super().__init__(f"Safe has {available} available, cannot release {amount}")


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigError(LiquidityKernelError):
    """Base exception for pool configuration problems."""

    code: str = "CONFIG_ERROR"


class InvalidPoolConfigError(ConfigError):
    """Pool configuration failed validation."""

    code: str = "INVALID_POOL_CONFIG"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            f"Invalid pool configuration ({len(self.errors)} error(s)): "
            + "; ".join(self.errors)
        )


class ConfigFileNotFoundError(ConfigError):
    """Pool configuration file does not exist."""

    code: str = "CONFIG_FILE_NOT_FOUND"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Pool configuration file not found: {path}")


class ImmutabilityViolationError(InvariantViolationError):
    """Attempt to modify or delete a closed, immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is immutable: {reason}")
