"""
End-to-end waterfall and redemption scenarios through the LiquidityPool facade.

Each scenario commits every step through its own transaction, so the
assertions read committed state exactly as a host process would see it.
"""

import pytest

from liquidity_kernel.domain.terms import TranchesPolicyKind
from liquidity_kernel.domain.values import (
    JUNIOR_TRANCHE,
    SECONDS_IN_A_YEAR,
    SENIOR_TRANCHE,
    TranchePair,
)
from tests.conftest import OPERATOR, make_liquidity_terms, make_pool_terms

BORROWER = "borrower-1"
HALF_DAY = 43_200


@pytest.fixture
def uncovered_pool(make_pool, enable_pool, lend):
    """No first-loss covers; junior 100,000 and senior 200,000, all drawn."""
    pool = enable_pool(make_pool(make_pool_terms(covers=())))
    lend(pool, JUNIOR_TRANCHE, "alice", 100_000)
    lend(pool, SENIOR_TRANCHE, "bob", 200_000)
    pool.drawdown(BORROWER, 300_000)
    return pool


class TestLossScenarios:

    def test_loss_within_junior(self, uncovered_pool):
        uncovered_pool.write_off(OPERATOR, 50_000)

        result = uncovered_pool.refresh(OPERATOR)

        assert result.tranche_assets == TranchePair(200_000, 50_000)
        assert result.tranche_losses == TranchePair(0, 50_000)
        assert uncovered_pool.current_tranche_assets() == TranchePair(200_000, 50_000)

    def test_loss_beyond_junior_reaches_senior(self, uncovered_pool):
        uncovered_pool.write_off(OPERATOR, 150_000)

        result = uncovered_pool.refresh(OPERATOR)

        assert result.tranche_assets == TranchePair(150_000, 0)
        assert result.tranche_losses == TranchePair(50_000, 100_000)

    def test_recovery_restores_junior_first(self, uncovered_pool):
        uncovered_pool.write_off(OPERATOR, 150_000)
        uncovered_pool.refresh(OPERATOR)
        uncovered_pool.fund(BORROWER, 120_000)
        uncovered_pool.recover(BORROWER, 120_000)

        result = uncovered_pool.refresh(OPERATOR)

        assert result.tranche_assets == TranchePair(170_000, 100_000)
        assert result.tranche_losses == TranchePair(30_000, 0)

    def test_lower_price_after_loss(self, uncovered_pool):
        uncovered_pool.write_off(OPERATOR, 50_000)
        uncovered_pool.refresh(OPERATOR)

        assert uncovered_pool.convert_to_assets(JUNIOR_TRANCHE, 100_000) == 50_000
        assert uncovered_pool.total_assets_of(JUNIOR_TRANCHE, "alice") == 50_000


class TestFixedSeniorYieldScenario:

    def test_one_year_accrual(self, make_pool, enable_pool, lend, clock):
        liquidity = make_liquidity_terms(
            tranches_policy=TranchesPolicyKind.FIXED_SENIOR_YIELD,
            fixed_senior_yield_in_bps=1_000,
        )
        pool = enable_pool(make_pool(make_pool_terms(liquidity=liquidity, covers=())))
        lend(pool, JUNIOR_TRANCHE, "alice", 100_000)
        lend(pool, SENIOR_TRANCHE, "bob", 200_000)

        clock.advance(SECONDS_IN_A_YEAR)
        pool.refresh(OPERATOR)

        tracker = pool.senior_yield_tracker()
        assert tracker.total_assets == 200_000
        assert tracker.unpaid_yield == 20_000


class TestRolloverScenario:

    def test_partial_epoch_rolls_remaining_shares(self, make_pool, enable_pool, lend, clock):
        pool = enable_pool(make_pool(make_pool_terms(covers=())))
        clock.advance(HALF_DAY)
        pool.close_epoch(OPERATOR)
        for _ in range(3):
            clock.advance_days(1)
            pool.close_epoch(OPERATOR)
        assert pool.current_epoch().epoch_id == 5

        lend(pool, JUNIOR_TRANCHE, "alice", 100_000)
        lend(pool, SENIOR_TRANCHE, "bob", 200_000)
        pool.drawdown(BORROWER, 296_000)
        pool.add_redemption_request(SENIOR_TRANCHE, "bob", 10_000)
        clock.advance_days(1)

        result = pool.close_epoch(OPERATOR)

        assert result.closed_epoch_id == 5
        record = pool.redemption_record(SENIOR_TRANCHE, "bob")
        assert record.next_epoch_id_to_process == 6
        assert record.num_shares_requested == 6_000
        assert record.total_amount_processed == 4_000
        assert pool.disburse(SENIOR_TRANCHE, "bob") == 4_000
        assert pool.asset_balance("bob") == 4_000
