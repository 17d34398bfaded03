"""Epoch calendar, share conversion and engine tracing."""

from datetime import datetime, timezone

import pytest

from liquidity_engines.calendar import start_of_next_period
from liquidity_engines.shares import convert_to_assets, convert_to_shares, shares_for_deposit
from liquidity_engines.tracer import compute_input_fingerprint
from liquidity_engines.tranches_policy import distribute_loss
from liquidity_kernel.domain.terms import PayPeriodUnit
from liquidity_kernel.domain.values import TranchePair
from liquidity_kernel.exceptions import ZeroSharesMintedError


def _ts(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


class TestStartOfNextPeriod:

    @pytest.mark.parametrize(
        "now, unit, length, expected",
        [
            (_ts(2024, 1, 15, 12), PayPeriodUnit.DAY, 1, _ts(2024, 1, 16)),
            (_ts(2024, 1, 15, 0), PayPeriodUnit.DAY, 7, _ts(2024, 1, 22)),
            (_ts(2024, 1, 15, 12), PayPeriodUnit.MONTH, 1, _ts(2024, 2, 1)),
            (_ts(2024, 11, 30), PayPeriodUnit.MONTH, 3, _ts(2025, 2, 1)),
            (_ts(2024, 12, 31, 23, 59, 59), PayPeriodUnit.MONTH, 1, _ts(2025, 1, 1)),
            (_ts(2024, 2, 1), PayPeriodUnit.MONTH, 1, _ts(2024, 3, 1)),
        ],
    )
    def test_boundaries(self, now, unit, length, expected):
        assert start_of_next_period(unit, length, now) == expected

    def test_non_positive_length_rejected(self):
        with pytest.raises(ValueError):
            start_of_next_period(PayPeriodUnit.DAY, 0, _ts(2024, 1, 1))


class TestShareConversion:

    def test_empty_ledger_mints_one_to_one(self):
        assert convert_to_shares(1_000, 0, 0) == 1_000
        assert convert_to_assets(1_000, 0, 0) == 1_000

    def test_conversion_floors(self):
        assert convert_to_shares(100, 300, 200) == 66
        assert convert_to_assets(100, 200, 300) == 66

    def test_wiped_out_ledger_prices_shares_at_zero(self):
        assert convert_to_shares(1_000, 0, 500) == 0
        assert convert_to_assets(500, 0, 500) == 0

    def test_deposit_minting_nothing_rejected(self):
        with pytest.raises(ZeroSharesMintedError) as exc_info:
            shares_for_deposit(1, 300, 200)

        assert exc_info.value.code == "ZERO_SHARES_MINTED"

    def test_deposit_priced_on_existing_ledger(self):
        assert shares_for_deposit(1_000, 2_000, 1_000) == 500


class TestEngineTracer:

    def test_fingerprint_is_deterministic(self):
        args = {"loss": 10, "assets": TranchePair(1, 2)}

        first = compute_input_fingerprint(("loss", "assets"), args)
        second = compute_input_fingerprint(("assets", "loss"), args)

        assert first == compute_input_fingerprint(("loss", "assets"), dict(args))
        assert first != second
        assert len(first) == 16

    def test_traced_engine_emits_trace(self, captured_logs):
        distribute_loss(5, TranchePair(10, 10))

        traces = [r for r in captured_logs() if r["message"] == "LIQUIDITY_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "tranches_policy.loss"
        assert traces[-1]["engine_version"] == "1.0"
        assert len(traces[-1]["input_fingerprint"]) == 16
