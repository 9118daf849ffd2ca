"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .cell import Address

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class ContractsConfig:
    singleton: str = ""
    stablecoin_minter: str = ""
    liquidator_jetton_wallet: str = ""
    collaterals: dict[str, str] = field(default_factory=dict)
    wanted_collaterals: tuple[str, ...] = ()


@dataclass(frozen=True)
class PriceFeedConfig:
    base_url: str = "https://test.tonstable.xyz"
    timeout: int = 30


@dataclass(frozen=True)
class LiquidatorConfig:
    wallet_address: str = ""
    funding_value: int = 0
    confirm_max_retry: int = 10
    confirm_interval_seconds: float = 3.0
    page_size: int = 100


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    price_feed: PriceFeedConfig = field(default_factory=PriceFeedConfig)
    liquidator: LiquidatorConfig = field(default_factory=LiquidatorConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        # unset ${VAR} endpoints interpolate to ""
        rpc_endpoints=tuple(e for e in raw.get("rpc_endpoints", []) if e),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        singleton=raw.get("singleton", ""),
        stablecoin_minter=raw.get("stablecoin_minter", ""),
        liquidator_jetton_wallet=raw.get("liquidator_jetton_wallet", ""),
        collaterals=dict(raw.get("collaterals", {})),
        wanted_collaterals=tuple(raw.get("wanted_collaterals", [])),
    )


def _build_price_feed(raw: dict[str, Any]) -> PriceFeedConfig:
    return PriceFeedConfig(
        base_url=raw.get("base_url", "https://test.tonstable.xyz"),
        timeout=int(raw.get("timeout", 30)),
    )


def _build_liquidator(raw: dict[str, Any]) -> LiquidatorConfig:
    return LiquidatorConfig(
        wallet_address=raw.get("wallet_address", ""),
        funding_value=int(raw.get("funding_value", 0)),
        confirm_max_retry=int(raw.get("confirm_max_retry", 10)),
        confirm_interval_seconds=float(raw.get("confirm_interval_seconds", 3.0)),
        page_size=int(raw.get("page_size", 100)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        price_feed=_build_price_feed(raw.get("price_feed", {})),
        liquidator=_build_liquidator(raw.get("liquidator", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _check_address(name: str, value: str) -> None:
    try:
        Address.parse(value)
    except ValueError as e:
        raise ValueError(f"{name} is not a valid address: {e}") from e


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    contracts = cfg.contracts
    if not contracts.singleton:
        raise ValueError("Singleton contract address is not configured")
    _check_address("contracts.singleton", contracts.singleton)

    for name in ("stablecoin_minter", "liquidator_jetton_wallet"):
        value = getattr(contracts, name)
        if value:
            _check_address(f"contracts.{name}", value)

    for symbol, address in contracts.collaterals.items():
        _check_address(f"Collateral '{symbol}'", address)

    for symbol in contracts.wanted_collaterals:
        if symbol not in contracts.collaterals:
            raise ValueError(f"Wanted collateral '{symbol}' is not a configured collateral")

    if cfg.liquidator.wallet_address:
        _check_address("liquidator.wallet_address", cfg.liquidator.wallet_address)
    if cfg.liquidator.confirm_max_retry < 1:
        raise ValueError("liquidator.confirm_max_retry must be at least 1")
    if cfg.liquidator.page_size < 1:
        raise ValueError("liquidator.page_size must be at least 1")
