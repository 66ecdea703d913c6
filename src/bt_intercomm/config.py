"""Configuration loading: TOML file + environment variables + addresses.json."""

from __future__ import annotations

import json
import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from bt_intercomm.errors import ConfigError
from bt_intercomm.models.config import (
    IntercommConfig,
    TransactionConfig,
    UtilityChainConfig,
    ValueChainConfig,
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "BT_INTERCOMM_",
) -> IntercommConfig:
    """Load daemon configuration from TOML file, env vars, and addresses.json.

    Priority (highest wins):
        1. Environment variables (BT_INTERCOMM_UTILITY_REGISTRAR_KEY, etc.)
        2. TOML config file
        3. addresses.json (only fills addresses left empty)
        4. Defaults from IntercommConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                try:
                    raw = tomllib.load(f)
                except tomllib.TOMLDecodeError as exc:
                    raise ConfigError(f"Invalid TOML in {p}: {exc}") from exc

    cfg = IntercommConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if (v := daemon.get("confirmation_depth")) is not None:
        cfg.confirmation_depth = int(v)
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := daemon.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := daemon.get("max_concurrent_attempts"):
        cfg.max_concurrent_attempts = int(v)
    if v := daemon.get("retention_blocks"):
        cfg.retention_blocks = int(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Utility chain section ──────────────────────────────
    uc = raw.get("utility_chain", {})
    start_block = uc.get("start_block")
    cfg.utility = UtilityChainConfig(
        rpc_url=str(uc.get("rpc_url", cfg.utility.rpc_url)),
        chain_id=int(uc.get("chain_id", cfg.utility.chain_id)),
        openst_utility_address=str(uc.get("openst_utility_address", "")),
        registrar_contract=str(uc.get("registrar_contract", "")),
        registrar_address=str(uc.get("registrar_address", "")),
        registrar_key=str(uc.get("registrar_key", "")),
        start_block=int(start_block) if start_block is not None else None,
    )

    # ── Value chain section ────────────────────────────────
    vc = raw.get("value_chain", {})
    cfg.value = ValueChainConfig(
        rpc_url=str(vc.get("rpc_url", cfg.value.rpc_url)),
        openst_value_address=str(vc.get("openst_value_address", "")),
        registrar_contract=str(vc.get("registrar_contract", "")),
        registrar_address=str(vc.get("registrar_address", "")),
        registrar_key=str(vc.get("registrar_key", "")),
    )

    # ── Transactions section ───────────────────────────────
    txn = raw.get("transactions", {})
    gas_limit = txn.get("gas_limit")
    cfg.transactions = TransactionConfig(
        tx_timeout=int(txn.get("tx_timeout", 300)),
        poll_latency=float(txn.get("poll_latency", 2.0)),
        gas_limit=int(gas_limit) if gas_limit else None,
    )

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # Fill unset addresses from the deployment output
    addresses_path = raw.get("addresses_path", "addresses.json")
    _load_addresses(cfg, addresses_path)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}UTILITY_REGISTRAR_KEY"):
        cfg.utility.registrar_key = key
    if key := os.environ.get(f"{env_prefix}VALUE_REGISTRAR_KEY"):
        cfg.value.registrar_key = key
    if rpc := os.environ.get(f"{env_prefix}UTILITY_RPC_URL"):
        cfg.utility.rpc_url = rpc
    if rpc := os.environ.get(f"{env_prefix}VALUE_RPC_URL"):
        cfg.value.rpc_url = rpc
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if depth := os.environ.get(f"{env_prefix}CONFIRMATION_DEPTH"):
        try:
            cfg.confirmation_depth = int(depth)
        except ValueError as exc:
            raise ConfigError(f"{env_prefix}CONFIRMATION_DEPTH must be an integer") from exc

    # Expand ~ in paths
    if cfg.db_path and cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _load_addresses(cfg: IntercommConfig, addresses_path: str) -> None:
    """Fill empty contract and user addresses from an addresses.json file.

    Expected shape::

        {"contracts": {"openSTUtility": "0x..", "openSTValue": "0x..",
                       "utilityRegistrar": "0x..", "valueRegistrar": "0x.."},
         "users": {"utilityRegistrar": "0x..", "valueRegistrar": "0x.."}}
    """
    p = Path(addresses_path).expanduser()
    if not p.is_absolute():
        # Try relative to CWD
        p = Path.cwd() / p
    if not p.exists():
        return

    with open(p) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {p}: {exc}") from exc

    contracts = data.get("contracts", {})
    users = data.get("users", {})

    if not cfg.utility.openst_utility_address:
        cfg.utility.openst_utility_address = contracts.get("openSTUtility", "")
    if not cfg.utility.registrar_contract:
        cfg.utility.registrar_contract = contracts.get("utilityRegistrar", "")
    if not cfg.utility.registrar_address:
        cfg.utility.registrar_address = users.get("utilityRegistrar", "")
    if not cfg.value.openst_value_address:
        cfg.value.openst_value_address = contracts.get("openSTValue", "")
    if not cfg.value.registrar_contract:
        cfg.value.registrar_contract = contracts.get("valueRegistrar", "")
    if not cfg.value.registrar_address:
        cfg.value.registrar_address = users.get("valueRegistrar", "")
