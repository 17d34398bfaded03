"""
Domain value and terms tests.

Fixed-width ranges, checked arithmetic, tranche vectors, the frozen terms
objects, role checks, the fee splitter and the deterministic clock.
"""

from datetime import datetime, timezone

import pytest

from liquidity_kernel.domain.authorization import (
    PoolRole,
    RoleRegistry,
    require_any_role,
    require_role,
)
from liquidity_kernel.domain.clock import DeterministicClock
from liquidity_kernel.domain.fees import PlatformFeeSplitter
from liquidity_kernel.domain.terms import (
    AdminTerms,
    CoverTerms,
    LiquidityTerms,
    PoolTerms,
    TranchesPolicyKind,
)
from liquidity_kernel.domain.values import (
    MAX_UINT64,
    MAX_UINT96,
    ProfitLossRecovery,
    TranchePair,
    ceil_div,
    checked_sub,
    mul_div,
    require_uint,
    require_uint64,
    tranche_name,
)
from liquidity_kernel.exceptions import (
    AmountOutOfRangeError,
    ArithmeticUnderflowError,
    UnauthorizedCallerError,
    UnknownTrancheError,
    ZeroAddressError,
)


class TestIntegerHelpers:

    def test_mul_div_floors_without_intermediate_rounding(self):
        assert mul_div(MAX_UINT96, MAX_UINT96, MAX_UINT96) == MAX_UINT96
        assert mul_div(7, 3, 2) == 10

    def test_ceil_div(self):
        assert ceil_div(0, 5) == 0
        assert ceil_div(10, 5) == 2
        assert ceil_div(11, 5) == 3

    def test_division_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)
        with pytest.raises(ZeroDivisionError):
            ceil_div(1, 0)

    def test_checked_sub_underflow(self):
        with pytest.raises(ArithmeticUnderflowError) as exc_info:
            checked_sub(5, 6, "shares")

        assert exc_info.value.code == "ARITHMETIC_UNDERFLOW"
        assert checked_sub(6, 5, "shares") == 1

    def test_require_uint_range(self):
        assert require_uint(MAX_UINT96, "amount") == MAX_UINT96
        with pytest.raises(AmountOutOfRangeError):
            require_uint(MAX_UINT96 + 1, "amount")
        with pytest.raises(AmountOutOfRangeError):
            require_uint(-1, "amount")

    def test_require_uint_rejects_bool_and_float(self):
        with pytest.raises(TypeError):
            require_uint(True, "amount")
        with pytest.raises(TypeError):
            require_uint(1.5, "amount")

    def test_require_uint64_range(self):
        assert require_uint64(MAX_UINT64, "epoch_id") == MAX_UINT64
        with pytest.raises(AmountOutOfRangeError) as exc_info:
            require_uint64(MAX_UINT64 + 1, "end_time")

        assert exc_info.value.field == "end_time"
        assert exc_info.value.max_value == MAX_UINT64


class TestTranchePair:

    def test_indexing(self):
        pair = TranchePair(200, 100)

        assert pair[0] == 200
        assert pair[1] == 100
        assert pair.total == 300
        assert pair.as_list() == [200, 100]

    def test_with_value(self):
        assert TranchePair(1, 2).with_value(1, 9) == TranchePair(1, 9)
        assert TranchePair(1, 2).with_value(0, 9) == TranchePair(9, 2)

    def test_unknown_tranche(self):
        with pytest.raises(UnknownTrancheError):
            TranchePair(1, 2)[2]
        with pytest.raises(UnknownTrancheError):
            tranche_name(5)

    def test_negative_rejected(self):
        with pytest.raises(AmountOutOfRangeError):
            TranchePair(-1, 0)

    def test_from_list(self):
        assert TranchePair.from_list([3, 4]) == TranchePair(3, 4)
        with pytest.raises(ValueError):
            TranchePair.from_list([1, 2, 3])

    def test_profit_loss_recovery_empty(self):
        assert ProfitLossRecovery().is_empty
        assert not ProfitLossRecovery(loss=1).is_empty


class TestTerms:

    def test_cover_capacity_is_larger_of_caps(self):
        cover = CoverTerms(
            cover_id="borrower",
            cover_rate_per_loss_in_bps=10_000,
            cover_cap_per_loss=100,
            max_liquidity=1_000,
            max_percent_of_pool_value_in_bps=1_000,
        )

        assert cover.capacity(5_000) == 1_000
        assert cover.capacity(50_000) == 5_000

    def test_cover_rate_out_of_range(self):
        with pytest.raises(ValueError):
            CoverTerms("x", 10_001, 0, 0)

    def test_liquidity_terms_record_round_trip(self):
        terms = LiquidityTerms(
            liquidity_cap=2**80,
            max_senior_junior_ratio=4,
            tranches_policy=TranchesPolicyKind.FIXED_SENIOR_YIELD,
            fixed_senior_yield_in_bps=800,
            allow_redemption_cancellation=False,
        )

        record = terms.to_record()

        assert record["tranches_policy"] == "fixed_senior_yield"
        assert LiquidityTerms.from_record(record) == terms

    def test_admin_required_junior_assets(self):
        admin = AdminTerms(
            pool_owner_treasury="treasury",
            evaluation_agent="ea",
            admin_cover_id="admin",
            liquidity_rate_in_bps_by_pool_owner=200,
            liquidity_rate_in_bps_by_ea=100,
        )

        assert admin.required_junior_assets("treasury", 1_000_000) == 20_000
        assert admin.required_junior_assets("ea", 1_000_000) == 10_000
        assert admin.required_junior_assets("lender", 1_000_000) == 0

    def test_lockout_seconds(self):
        terms = LiquidityTerms(
            liquidity_cap=1, max_senior_junior_ratio=4, withdrawal_lockout_period_in_days=2
        )

        assert terms.withdrawal_lockout_seconds == 172_800

    def test_pool_terms_reject_duplicate_covers(self, terms_factory):
        cover = terms_factory.cover("admin")
        with pytest.raises(ValueError):
            terms_factory.pool(covers=(cover, cover))

    def test_pool_terms_require_configured_admin_cover(self, terms_factory):
        with pytest.raises(ValueError):
            terms_factory.pool(covers=(terms_factory.cover("borrower"),))

    def test_pool_terms_lookup(self, pool_terms):
        assert pool_terms.cover_ids == ("borrower", "admin")
        assert pool_terms.cover("admin").cover_id == "admin"
        with pytest.raises(KeyError):
            pool_terms.cover("missing")

    def test_with_liquidity_returns_new_terms(self, pool_terms, terms_factory):
        updated = pool_terms.with_liquidity(terms_factory.liquidity(liquidity_cap=5))

        assert updated.liquidity.liquidity_cap == 5
        assert pool_terms.liquidity.liquidity_cap == 10_000_000
        assert isinstance(updated, PoolTerms)


class TestRoleRegistry:

    def test_membership_is_explicit(self):
        roles = RoleRegistry(pool_owners=["owner"], operators=["op"])

        assert roles.is_pool_owner("owner")
        assert not roles.is_operator("owner")
        assert roles.is_operator("op")
        assert not roles.is_orchestrator("op")

    def test_grant_and_revoke(self):
        roles = RoleRegistry()
        roles.grant(PoolRole.ORCHESTRATOR, "bot")
        assert roles.is_orchestrator("bot")

        roles.revoke(PoolRole.ORCHESTRATOR, "bot")
        assert not roles.is_orchestrator("bot")

    def test_require_role(self):
        roles = RoleRegistry(pool_owners=["owner"])

        require_role(roles, PoolRole.POOL_OWNER, "owner")
        with pytest.raises(UnauthorizedCallerError) as exc_info:
            require_role(roles, PoolRole.POOL_OWNER, "stranger")
        assert exc_info.value.required_role == "pool_owner"

    def test_require_any_role(self):
        roles = RoleRegistry(operators=["op"])

        require_any_role(roles, (PoolRole.POOL_OWNER, PoolRole.OPERATOR), "op")
        with pytest.raises(UnauthorizedCallerError):
            require_any_role(roles, (PoolRole.POOL_OWNER,), "op")

    def test_empty_actor_rejected(self):
        with pytest.raises(ZeroAddressError):
            require_role(RoleRegistry(), PoolRole.OPERATOR, "")


class TestPlatformFeeSplitter:

    def test_fee_deducted_and_accumulated(self):
        splitter = PlatformFeeSplitter(1_500)

        assert splitter.apply_platform_fees(10_000) == 8_500
        assert splitter.apply_platform_fees(1_000) == 850
        assert splitter.accrued_fees == 1_650

    def test_invalid_fee(self):
        with pytest.raises(ValueError):
            PlatformFeeSplitter(10_001)


class TestDeterministicClock:

    def test_advance_days(self):
        clock = DeterministicClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        clock.advance_days(2)

        assert clock.now() == datetime(2024, 1, 3, tzinfo=timezone.utc)
        assert clock.now_ts() == 1_704_240_000

    def test_cannot_move_backwards(self):
        clock = DeterministicClock()
        with pytest.raises(ValueError):
            clock.set_time(datetime(2000, 1, 1, tzinfo=timezone.utc))
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_timestamp_before_unix_epoch_rejected(self):
        clock = DeterministicClock(datetime(1969, 12, 31, tzinfo=timezone.utc))

        with pytest.raises(AmountOutOfRangeError):
            clock.now_ts()
