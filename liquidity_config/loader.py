"""
Configuration Loader (``liquidity_config.loader``).

Responsibility
--------------
Loads a pool configuration YAML file and parses it into the frozen
``liquidity_config.schema`` dataclasses.  Callers normally go through
``liquidity_config.load_pool_config`` which also validates.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel
services, models or engines.

Invariants enforced
-------------------
* Parse errors raise ``KeyError`` or ``ValueError`` with the offending
  key; required fields never get silent defaults.
* Integer fields reject booleans and floats, so ``1e6`` or ``true`` in a
  YAML file cannot slip into an amount.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from liquidity_config.schema import (
    AdminRequirements,
    FeeConfig,
    FirstLossCoverConfig,
    LPConfig,
    PoolConfig,
    PoolSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_int(data: dict[str, Any], key: str, default: int | None = None) -> int:
    """Read an integer field.  Underscored strings such as ``"1_000_000"`` are accepted."""
    if key not in data:
        if default is None:
            raise KeyError(key)
        return default
    value = data[key]
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.replace("_", ""))
        except ValueError as exc:
            raise ValueError(f"{key}: cannot parse integer from {value!r}") from exc
    raise ValueError(f"{key}: expected integer, got {type(value).__name__}")


def parse_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected boolean, got {value!r}")
    return value


def parse_pool_settings(data: dict[str, Any]) -> PoolSettings:
    return PoolSettings(
        pool_id=str(data["pool_id"]),
        pay_period_unit=str(data.get("pay_period_unit", "MONTH")).upper(),
        pay_period_length=parse_int(data, "pay_period_length", 1),
        min_deposit_amount=parse_int(data, "min_deposit_amount", 0),
        max_lenders_per_tranche=parse_int(data, "max_lenders_per_tranche", 100),
    )


def parse_lp_config(data: dict[str, Any]) -> LPConfig:
    return LPConfig(
        liquidity_cap=parse_int(data, "liquidity_cap"),
        max_senior_junior_ratio=parse_int(data, "max_senior_junior_ratio"),
        tranches_policy=str(data.get("tranches_policy", "risk_adjusted")).lower(),
        fixed_senior_yield_in_bps=parse_int(data, "fixed_senior_yield_in_bps", 0),
        tranches_risk_adjustment_in_bps=parse_int(data, "tranches_risk_adjustment_in_bps", 0),
        withdrawal_lockout_period_in_days=parse_int(data, "withdrawal_lockout_period_in_days", 0),
        allow_redemption_cancellation=parse_bool(data, "allow_redemption_cancellation", True),
    )


def parse_cover(data: dict[str, Any]) -> FirstLossCoverConfig:
    return FirstLossCoverConfig(
        cover_id=str(data["cover_id"]),
        cover_rate_per_loss_in_bps=parse_int(data, "cover_rate_per_loss_in_bps"),
        cover_cap_per_loss=parse_int(data, "cover_cap_per_loss"),
        max_liquidity=parse_int(data, "max_liquidity"),
        max_percent_of_pool_value_in_bps=parse_int(data, "max_percent_of_pool_value_in_bps", 0),
        min_liquidity=parse_int(data, "min_liquidity", 0),
        risk_yield_multiplier_in_bps=parse_int(data, "risk_yield_multiplier_in_bps", 0),
        min_deposit_amount=parse_int(data, "min_deposit_amount", 0),
    )


def parse_admin(data: dict[str, Any]) -> AdminRequirements:
    return AdminRequirements(
        pool_owner_treasury=str(data["pool_owner_treasury"]),
        evaluation_agent=str(data["evaluation_agent"]),
        admin_cover_id=data.get("admin_cover_id"),
        liquidity_rate_in_bps_by_pool_owner=parse_int(
            data, "liquidity_rate_in_bps_by_pool_owner", 0
        ),
        liquidity_rate_in_bps_by_ea=parse_int(data, "liquidity_rate_in_bps_by_ea", 0),
        pool_owner_min_cover_assets=parse_int(data, "pool_owner_min_cover_assets", 0),
        ea_min_cover_assets=parse_int(data, "ea_min_cover_assets", 0),
    )


def parse_fees(data: dict[str, Any]) -> FeeConfig:
    return FeeConfig(platform_fee_in_bps=parse_int(data, "platform_fee_in_bps", 0))


def parse_pool_config(data: dict[str, Any]) -> PoolConfig:
    """
    Parse a complete ``PoolConfig`` from the root mapping of a YAML file.

    Expected top-level keys: ``config_id``, ``version``, ``pool``,
    ``lp_config``, ``admin``, and optionally ``first_loss_covers`` and
    ``fees``.
    """
    return PoolConfig(
        config_id=str(data["config_id"]),
        version=parse_int(data, "version", 1),
        pool=parse_pool_settings(data["pool"]),
        lp=parse_lp_config(data["lp_config"]),
        admin=parse_admin(data["admin"]),
        covers=tuple(parse_cover(c) for c in data.get("first_loss_covers") or ()),
        fees=parse_fees(data.get("fees") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
