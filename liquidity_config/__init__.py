"""
liquidity_config -- YAML configuration for liquidity pools.

Responsibility:
    Loads a pool configuration file, validates it and compiles it into the
    kernel's ``PoolTerms``.  Configuration is always passed explicitly to
    the pool; nothing in the kernel reads files or environment variables.

Architecture position:
    Configuration -- sits above ``liquidity_kernel`` and below
    ``liquidity_services``.  The kernel MUST NEVER import from
    ``liquidity_config``.

Failure modes:
    - ``ConfigFileNotFoundError`` -- the path does not exist.
    - ``InvalidPoolConfigError`` -- missing keys, malformed values or
      validation errors, all listed together.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from liquidity_config.compiler import compile_pool_terms
from liquidity_config.loader import load_yaml_file, parse_pool_config
from liquidity_config.schema import (
    AdminRequirements,
    FeeConfig,
    FirstLossCoverConfig,
    LPConfig,
    PoolConfig,
    PoolSettings,
)
from liquidity_config.validator import ConfigValidationResult, validate_pool_config
from liquidity_kernel.exceptions import ConfigFileNotFoundError, InvalidPoolConfigError
from liquidity_kernel.logging_config import get_logger

logger = get_logger("config")

# Bundled configuration sets
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "default_pool.yaml"


def load_pool_config(path: Path | str) -> PoolConfig:
    """
    Load and validate a pool configuration file.

    Raises:
        ConfigFileNotFoundError: ``path`` does not exist.
        InvalidPoolConfigError: the file cannot be parsed or fails validation.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFoundError(str(path))

    try:
        config = parse_pool_config(load_yaml_file(path))
    except KeyError as exc:
        raise InvalidPoolConfigError([f"missing required key: {exc.args[0]}"]) from exc
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        raise InvalidPoolConfigError([str(exc)]) from exc

    validation = validate_pool_config(config)
    if not validation.is_valid:
        raise InvalidPoolConfigError(validation.errors)

    logger.info(
        "LIQUIDITY_CONFIG_TRACE",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
            "path": str(path),
            "cover_count": len(config.covers),
        },
    )
    return config


def get_default_config() -> PoolConfig:
    """The bundled default pool configuration."""
    return load_pool_config(DEFAULT_CONFIG_PATH)


__all__ = [
    "AdminRequirements",
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "FeeConfig",
    "FirstLossCoverConfig",
    "LPConfig",
    "PoolConfig",
    "PoolSettings",
    "compile_pool_terms",
    "get_default_config",
    "load_pool_config",
    "validate_pool_config",
]
