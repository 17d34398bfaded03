"""
Pool configuration tests: YAML loading, parsing, validation and
compilation into PoolTerms.
"""

from dataclasses import replace

import pytest
import yaml

from liquidity_config import (
    DEFAULT_CONFIG_PATH,
    compile_pool_terms,
    get_default_config,
    load_pool_config,
    validate_pool_config,
)
from liquidity_config.loader import compute_checksum, parse_int, parse_pool_config
from liquidity_kernel.domain.terms import PayPeriodUnit, TranchesPolicyKind
from liquidity_kernel.exceptions import ConfigFileNotFoundError, InvalidPoolConfigError


def _raw_config(**sections) -> dict:
    data = {
        "config_id": "test_pool",
        "version": 3,
        "pool": {"pool_id": "p-1", "pay_period_unit": "day", "pay_period_length": 7},
        "lp_config": {"liquidity_cap": "1_000_000", "max_senior_junior_ratio": 4},
        "first_loss_covers": [
            {
                "cover_id": "borrower",
                "cover_rate_per_loss_in_bps": 10_000,
                "cover_cap_per_loss": 50_000,
                "max_liquidity": 100_000,
            },
            {
                "cover_id": "admin",
                "cover_rate_per_loss_in_bps": 5_000,
                "cover_cap_per_loss": 50_000,
                "max_liquidity": 200_000,
            },
        ],
        "admin": {
            "pool_owner_treasury": "treasury",
            "evaluation_agent": "ea",
            "admin_cover_id": "admin",
        },
        "fees": {"platform_fee_in_bps": 250},
    }
    data.update(sections)
    return data


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict, name: str = "pool.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestParseInt:

    def test_plain_and_underscored(self):
        assert parse_int({"a": 5}, "a") == 5
        assert parse_int({"a": "1_000_000"}, "a") == 1_000_000

    def test_default(self):
        assert parse_int({}, "a", 7) == 7

    def test_missing_required(self):
        with pytest.raises(KeyError):
            parse_int({}, "a")

    @pytest.mark.parametrize("value", [True, 1.5, "ten", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValueError):
            parse_int({"a": value}, "a")


class TestParsePoolConfig:

    def test_parses_sections(self):
        config = parse_pool_config(_raw_config())

        assert config.pool_id == "p-1"
        assert config.pool.pay_period_unit == "DAY"
        assert config.lp.liquidity_cap == 1_000_000
        assert config.lp.tranches_policy == "risk_adjusted"
        assert config.lp.allow_redemption_cancellation is True
        assert config.cover_ids == ("borrower", "admin")
        assert config.fees.platform_fee_in_bps == 250

    def test_checksum_is_stable(self):
        assert parse_pool_config(_raw_config()).checksum == compute_checksum(_raw_config())
        assert (
            parse_pool_config(_raw_config(version=4)).checksum
            != parse_pool_config(_raw_config()).checksum
        )

    def test_covers_are_optional(self):
        config = parse_pool_config(_raw_config(first_loss_covers=None))

        assert config.covers == ()


class TestValidatePoolConfig:

    def test_valid(self):
        result = validate_pool_config(parse_pool_config(_raw_config()))

        assert result.is_valid
        assert result.errors == []

    def test_collects_every_error(self):
        config = parse_pool_config(
            _raw_config(
                pool={"pool_id": "p-1", "pay_period_unit": "week", "pay_period_length": 0},
                fees={"platform_fee_in_bps": 10_001},
            )
        )

        result = validate_pool_config(config)

        assert not result.is_valid
        assert len(result.errors) == 3
        assert any("pay_period_unit" in e for e in result.errors)
        assert any("pay_period_length" in e for e in result.errors)
        assert any("platform_fee_in_bps" in e for e in result.errors)

    def test_duplicate_cover(self):
        raw = _raw_config()
        raw["first_loss_covers"][1]["cover_id"] = "borrower"
        raw["admin"]["admin_cover_id"] = "borrower"

        result = validate_pool_config(parse_pool_config(raw))

        assert any("duplicated" in e for e in result.errors)

    def test_unknown_admin_cover(self):
        raw = _raw_config()
        raw["admin"]["admin_cover_id"] = "missing"

        result = validate_pool_config(parse_pool_config(raw))

        assert any("admin_cover_id" in e for e in result.errors)

    def test_admin_minimums_without_covers(self):
        raw = _raw_config(first_loss_covers=[])
        raw["admin"]["pool_owner_min_cover_assets"] = 1

        result = validate_pool_config(parse_pool_config(raw))

        assert not result.is_valid

    def test_unknown_policy(self):
        raw = _raw_config()
        raw["lp_config"]["tranches_policy"] = "waterfall"

        result = validate_pool_config(parse_pool_config(raw))

        assert any("tranches_policy" in e for e in result.errors)

    def test_ignored_policy_field_warns(self):
        raw = _raw_config()
        raw["lp_config"]["fixed_senior_yield_in_bps"] = 500

        result = validate_pool_config(parse_pool_config(raw))

        assert result.is_valid
        assert any("ignored" in w for w in result.warnings)

    def test_amount_range(self):
        config = parse_pool_config(_raw_config())
        config = replace(config, lp=replace(config.lp, liquidity_cap=2**96))

        result = validate_pool_config(config)

        assert any("96-bit" in e for e in result.errors)


class TestCompilePoolTerms:

    def test_compiles_terms(self):
        terms = compile_pool_terms(parse_pool_config(_raw_config()))

        assert terms.pool_id == "p-1"
        assert terms.liquidity.tranches_policy == TranchesPolicyKind.RISK_ADJUSTED
        assert terms.calendar.pay_period_unit == PayPeriodUnit.DAY
        assert terms.calendar.pay_period_length == 7
        assert terms.cover_ids == ("borrower", "admin")
        assert terms.cover("admin").cover_rate_per_loss_in_bps == 5_000
        assert terms.admin.admin_cover_id == "admin"
        assert terms.platform_fee_in_bps == 250

    def test_admin_cover_defaults_to_first_cover(self):
        raw = _raw_config()
        del raw["admin"]["admin_cover_id"]

        terms = compile_pool_terms(parse_pool_config(raw))

        assert terms.admin.admin_cover_id == "borrower"

    def test_invalid_config_rejected(self):
        raw = _raw_config()
        raw["lp_config"]["max_senior_junior_ratio"] = -1

        with pytest.raises(InvalidPoolConfigError) as exc_info:
            compile_pool_terms(parse_pool_config(raw))

        assert exc_info.value.code == "INVALID_POOL_CONFIG"
        assert len(exc_info.value.errors) == 1

    def test_compile_logs_trace(self, captured_logs):
        compile_pool_terms(parse_pool_config(_raw_config()))

        compiled = [r for r in captured_logs() if r["message"] == "LIQUIDITY_CONFIG_COMPILED"]
        assert compiled[-1]["config_id"] == "test_pool"
        assert compiled[-1]["covers"] == ["borrower", "admin"]


class TestLoadPoolConfig:

    def test_load_from_file(self, write_config):
        config = load_pool_config(write_config(_raw_config()))

        assert config.config_id == "test_pool"
        assert config.version == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            load_pool_config(tmp_path / "nope.yaml")

        assert exc_info.value.code == "CONFIG_FILE_NOT_FOUND"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("pool: [unclosed\n")

        with pytest.raises(InvalidPoolConfigError):
            load_pool_config(path)

    def test_missing_section(self, write_config):
        raw = _raw_config()
        del raw["lp_config"]

        with pytest.raises(InvalidPoolConfigError) as exc_info:
            load_pool_config(write_config(raw))

        assert "lp_config" in exc_info.value.errors[0]

    def test_bad_value(self, write_config):
        raw = _raw_config()
        raw["lp_config"]["allow_redemption_cancellation"] = "yes please"

        with pytest.raises(InvalidPoolConfigError):
            load_pool_config(write_config(raw))

    def test_validation_errors_raised(self, write_config):
        raw = _raw_config()
        raw["fees"]["platform_fee_in_bps"] = 20_000

        with pytest.raises(InvalidPoolConfigError):
            load_pool_config(write_config(raw))


class TestDefaultConfig:

    def test_bundled_default_compiles(self):
        config = get_default_config()
        terms = compile_pool_terms(config)

        assert DEFAULT_CONFIG_PATH.is_file()
        assert config.config_id == "default_pool"
        assert terms.pool_id == "default-pool"
        assert terms.liquidity.tranches_policy == TranchesPolicyKind.FIXED_SENIOR_YIELD
        assert terms.liquidity.liquidity_cap == 10_000_000_000_000
        assert terms.calendar.pay_period_unit == PayPeriodUnit.MONTH
        assert terms.cover_ids == ("borrower", "admin")
        assert terms.platform_fee_in_bps == 1_500
