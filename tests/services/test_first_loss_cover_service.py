"""
FirstLossCoverService tests.

Provider allow-list, deposits and redemptions priced on the reserve's
assets, the waterfall hooks used by PoolService, and surplus payout.
"""

import pytest

from liquidity_kernel.exceptions import (
    AlreadyCoverProviderError,
    CoverLiquidityCapExceededError,
    CoverProviderHasBalanceError,
    CoverRedemptionNotAllowedError,
    DepositAmountTooLowError,
    InsufficientSharesError,
    NonTransferableSharesError,
    NotCoverProviderError,
    TooManyCoverProvidersError,
    UnauthorizedCallerError,
    ZeroAddressError,
    ZeroAmountError,
)
from liquidity_kernel.services.pool_components import orchestrator_id
from tests.conftest import (
    OPERATOR,
    POOL_ID,
    POOL_OWNER,
    make_cover_terms,
    make_pool_terms,
)

ORCHESTRATOR = orchestrator_id(POOL_ID)


@pytest.fixture
def pool_terms():
    return make_pool_terms(
        covers=(
            make_cover_terms("borrower", max_liquidity=100_000, max_providers=2),
            make_cover_terms(
                "admin",
                max_liquidity=200_000,
                min_liquidity=50_000,
                min_deposit_amount=100,
                cover_rate_per_loss_in_bps=5_000,
                cover_cap_per_loss=30_000,
            ),
        )
    )


@pytest.fixture
def admin_cover(components):
    return components.cover("admin")


@pytest.fixture
def borrower_cover(components):
    return components.cover("borrower")


def _provide(components, cover, provider: str, amount: int, min_required: int = 0) -> int:
    if not cover.is_provider(provider):
        cover.add_cover_provider(POOL_OWNER, provider, min_required)
    components.ledger.mint(provider, amount)
    return cover.deposit_cover(provider, amount)


class TestCoverProviders:
    """Only the pool owner manages the provider allow-list."""

    def test_add_provider(self, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice", 1_000)

        info = admin_cover.provider_info("alice")
        assert info.min_required_assets == 1_000
        assert info.shares == 0

    def test_add_provider_requires_pool_owner(self, admin_cover):
        with pytest.raises(UnauthorizedCallerError):
            admin_cover.add_cover_provider(OPERATOR, "alice")

    def test_duplicate_provider_rejected(self, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")

        with pytest.raises(AlreadyCoverProviderError):
            admin_cover.add_cover_provider(POOL_OWNER, "alice")

    def test_provider_limit(self, borrower_cover):
        borrower_cover.add_cover_provider(POOL_OWNER, "a")
        borrower_cover.add_cover_provider(POOL_OWNER, "b")

        with pytest.raises(TooManyCoverProvidersError):
            borrower_cover.add_cover_provider(POOL_OWNER, "c")

    def test_remove_requires_zero_balance(self, components, borrower_cover):
        _provide(components, borrower_cover, "alice", 1_000)

        with pytest.raises(CoverProviderHasBalanceError):
            borrower_cover.remove_cover_provider(POOL_OWNER, "alice")

    def test_remove_provider(self, borrower_cover):
        borrower_cover.add_cover_provider(POOL_OWNER, "alice")
        borrower_cover.remove_cover_provider(POOL_OWNER, "alice")

        assert not borrower_cover.is_provider("alice")
        with pytest.raises(NotCoverProviderError):
            borrower_cover.remove_cover_provider(POOL_OWNER, "alice")

    def test_is_sufficient(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 60_000, min_required=50_000)
        _provide(components, admin_cover, "bob", 1_000, min_required=5_000)

        assert admin_cover.is_sufficient("alice")
        assert not admin_cover.is_sufficient("bob")

    def test_non_provider_is_not_sufficient(self, admin_cover):
        assert not admin_cover.is_sufficient("stranger")


class TestCoverDeposit:
    """Deposits mint at pre-transfer pricing and respect the ceiling."""

    def test_first_deposit_mints_one_to_one(self, components, admin_cover):
        shares = _provide(components, admin_cover, "alice", 60_000)

        assert shares == 60_000
        assert admin_cover.total_assets() == 60_000
        assert components.ledger.balance_of("alice") == 0
        assert components.ledger.balance_of(admin_cover.account) == 60_000

    def test_deposit_after_profit_mints_fewer_shares(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 60_000)
        components.ledger.mint(components.safe.account, 60_000)
        admin_cover.add_cover_profit(ORCHESTRATOR, 60_000)

        shares = _provide(components, admin_cover, "bob", 30_000)

        assert shares == 15_000
        assert admin_cover.convert_to_assets(admin_cover.total_shares()) == 150_000

    def test_non_provider_rejected(self, components, admin_cover):
        components.ledger.mint("mallory", 1_000)

        with pytest.raises(NotCoverProviderError):
            admin_cover.deposit_cover("mallory", 1_000)

    def test_zero_deposit_rejected(self, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")

        with pytest.raises(ZeroAmountError):
            admin_cover.deposit_cover("alice", 0)

    def test_below_minimum_rejected(self, components, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")
        components.ledger.mint("alice", 99)

        with pytest.raises(DepositAmountTooLowError):
            admin_cover.deposit_cover("alice", 99)

    def test_manager_deposits_for_provider(self, components, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")
        components.ledger.mint(POOL_OWNER, 5_000)

        shares = admin_cover.deposit_cover_for(POOL_OWNER, "alice", 5_000)

        assert shares == 5_000
        assert admin_cover.balance_of("alice") == 5_000
        assert admin_cover.balance_of(POOL_OWNER) == 0
        assert components.ledger.balance_of(POOL_OWNER) == 0
        assert admin_cover.total_assets() == 5_000

    def test_deposit_for_requires_manager(self, components, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")
        components.ledger.mint("mallory", 5_000)

        with pytest.raises(UnauthorizedCallerError):
            admin_cover.deposit_cover_for("mallory", "alice", 5_000)

    def test_deposit_for_empty_receiver(self, admin_cover):
        with pytest.raises(ZeroAddressError):
            admin_cover.deposit_cover_for(OPERATOR, "", 5_000)

    def test_deposit_for_non_provider(self, components, admin_cover):
        components.ledger.mint(OPERATOR, 5_000)

        with pytest.raises(NotCoverProviderError):
            admin_cover.deposit_cover_for(OPERATOR, "stranger", 5_000)

    def test_deposit_for_zero_and_below_minimum(self, components, admin_cover):
        admin_cover.add_cover_provider(POOL_OWNER, "alice")
        components.ledger.mint(OPERATOR, 99)

        with pytest.raises(ZeroAmountError):
            admin_cover.deposit_cover_for(OPERATOR, "alice", 0)
        with pytest.raises(DepositAmountTooLowError):
            admin_cover.deposit_cover_for(OPERATOR, "alice", 99)

    def test_ceiling_enforced(self, components, borrower_cover):
        _provide(components, borrower_cover, "alice", 90_000)
        components.ledger.mint("alice", 20_000)

        with pytest.raises(CoverLiquidityCapExceededError) as exc_info:
            borrower_cover.deposit_cover("alice", 20_000)

        assert exc_info.value.code == "COVER_LIQUIDITY_CAP_EXCEEDED"
        assert borrower_cover.total_assets() == 90_000


class TestCoverRedeem:
    """Redemptions keep the reserve above its minimum until withdrawal is allowed."""

    def test_redeem_above_minimum(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 80_000)

        assets = admin_cover.redeem_cover("alice", 30_000, "alice")

        assert assets == 30_000
        assert admin_cover.total_assets() == 50_000
        assert components.ledger.balance_of("alice") == 30_000

    def test_redeem_below_minimum_rejected(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 80_000)

        with pytest.raises(CoverRedemptionNotAllowedError):
            admin_cover.redeem_cover("alice", 30_001, "alice")

    def test_full_redeem_once_ready(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 80_000)
        components.pool.set_ready_for_cover_withdrawal(POOL_OWNER, True)

        assert admin_cover.redeem_cover("alice", 80_000, "alice-cold") == 80_000
        assert components.ledger.balance_of("alice-cold") == 80_000
        admin_cover.remove_cover_provider(POOL_OWNER, "alice")

    def test_redeem_more_than_held(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 80_000)

        with pytest.raises(InsufficientSharesError):
            admin_cover.redeem_cover("alice", 80_001, "alice")

    def test_shares_not_transferable(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 80_000)

        with pytest.raises(NonTransferableSharesError):
            admin_cover.transfer("alice", "bob", 1)
        assert admin_cover.balance_of("bob") == 0


class TestCoverWaterfallHooks:
    """cover_loss, recover_loss and add_cover_profit, as PoolService calls them."""

    def test_cover_loss_moves_assets_into_safe(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 100_000)

        step = admin_cover.cover_loss(ORCHESTRATOR, 40_000)

        # 50% rate of 40,000 = 20,000, under the 30,000 per-loss cap.
        assert step.covered == 20_000
        assert step.remaining_loss == 20_000
        assert admin_cover.covered_loss() == 20_000
        assert admin_cover.total_assets() == 80_000
        assert components.safe.get_pool_balance() == 20_000

    def test_cover_loss_capped_per_loss(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 100_000)

        step = admin_cover.cover_loss(ORCHESTRATOR, 100_000)

        assert step.covered == 30_000
        assert step.remaining_loss == 70_000

    def test_cover_loss_requires_orchestrator(self, admin_cover):
        with pytest.raises(UnauthorizedCallerError):
            admin_cover.cover_loss(POOL_OWNER, 1)

    def test_recovery_returns_up_to_covered_loss(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 100_000)
        admin_cover.cover_loss(ORCHESTRATOR, 40_000)

        remaining = admin_cover.recover_loss(ORCHESTRATOR, 25_000)

        assert remaining == 5_000
        assert admin_cover.covered_loss() == 0
        assert admin_cover.total_assets() == 100_000

    def test_recovery_without_covered_loss(self, admin_cover):
        assert admin_cover.recover_loss(ORCHESTRATOR, 7) == 7

    def test_profit_raises_share_price(self, components, admin_cover):
        _provide(components, admin_cover, "alice", 100_000)
        components.ledger.mint(components.safe.account, 10_000)

        admin_cover.add_cover_profit(ORCHESTRATOR, 10_000)

        assert admin_cover.provider_info("alice").assets == 110_000
        assert admin_cover.total_shares() == 100_000


class TestCoverPayout:
    """Assets above the ceiling are paid out to providers by share."""

    def _fill(self, components, cover):
        _provide(components, cover, "alice", 60_000)
        _provide(components, cover, "bob", 40_000)
        components.ledger.mint(components.safe.account, 10_000)
        cover.add_cover_profit(ORCHESTRATOR, 10_000)

    def test_surplus_paid_pro_rata(self, components, borrower_cover):
        self._fill(components, borrower_cover)

        result = borrower_cover.payout_yield()

        assert result.total_paid == 10_000
        assert components.ledger.balance_of("alice") == 6_000
        assert components.ledger.balance_of("bob") == 4_000
        assert borrower_cover.total_assets() == 100_000

    def test_nothing_to_pay_under_ceiling(self, components, borrower_cover):
        _provide(components, borrower_cover, "alice", 60_000)

        result = borrower_cover.payout_yield()

        assert result.paid == ()
        assert result.failed == ()

    def test_failed_transfer_isolated(self, components, borrower_cover, captured_logs):
        self._fill(components, borrower_cover)
        components.ledger.set_blocked("alice", True)
        assert components.ledger.is_blocked("alice")

        result = borrower_cover.payout_yield()

        assert [p.account for p in result.paid] == ["bob"]
        assert [f.account for f in result.failed] == ["alice"]
        assert result.failed[0].code == "TRANSFER_REJECTED"
        assert components.ledger.balance_of("bob") == 4_000
        assert borrower_cover.total_assets() == 106_000
        failures = [r for r in captured_logs() if r["message"] == "yield_payout_failed"]
        assert len(failures) == 1
        assert failures[0]["account"] == "alice"
        assert failures[0]["exc_code"] == "TRANSFER_REJECTED"
