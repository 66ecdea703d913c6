"""Configuration models for the daemon."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class UtilityChainConfig:
    """Utility chain: event source and step 1 registrar."""

    rpc_url: str = "http://127.0.0.1:9546"
    chain_id: int = 1410  # OST_UTILITY_CHAIN_ID passed to registerUtilityToken
    openst_utility_address: str = ""  # emits ProposedBrandedToken
    registrar_contract: str = ""  # UtilityRegistrar contract
    registrar_address: str = ""  # signer account
    registrar_key: str = ""  # loaded from env var BT_INTERCOMM_UTILITY_REGISTRAR_KEY
    start_block: int | None = None


@dataclass
class ValueChainConfig:
    """Value chain: step 2 registrar."""

    rpc_url: str = "http://127.0.0.1:8545"
    openst_value_address: str = ""  # registry passed to registerUtilityToken
    registrar_contract: str = ""  # ValueRegistrar contract
    registrar_address: str = ""
    registrar_key: str = ""  # loaded from env var BT_INTERCOMM_VALUE_REGISTRAR_KEY


@dataclass
class TransactionConfig:
    tx_timeout: int = 300  # seconds to wait for inclusion
    poll_latency: float = 2.0  # seconds between receipt polls
    gas_limit: int | None = None  # None = estimate


@dataclass
class IntercommConfig:
    """Complete daemon configuration."""

    # Daemon
    confirmation_depth: int = 6
    poll_interval: int = 5  # seconds
    error_backoff: int = 30  # seconds
    max_concurrent_attempts: int = 4
    retention_blocks: int = 10_000
    log_level: str = "info"

    # Chains
    utility: UtilityChainConfig = field(default_factory=UtilityChainConfig)
    value: ValueChainConfig = field(default_factory=ValueChainConfig)
    transactions: TransactionConfig = field(default_factory=TransactionConfig)

    # Storage ("" = keep everything in memory)
    db_path: str = ""

    def validate(self) -> list[str]:
        """Return a list of human-readable configuration problems."""
        problems = []
        if self.confirmation_depth < 0:
            problems.append("confirmation_depth must be >= 0")
        if self.max_concurrent_attempts < 1:
            problems.append("max_concurrent_attempts must be >= 1")
        for label, value in (
            ("utility_chain.openst_utility_address", self.utility.openst_utility_address),
            ("utility_chain.registrar_contract", self.utility.registrar_contract),
            ("utility_chain.registrar_address", self.utility.registrar_address),
            ("value_chain.openst_value_address", self.value.openst_value_address),
            ("value_chain.registrar_contract", self.value.registrar_contract),
            ("value_chain.registrar_address", self.value.registrar_address),
        ):
            if not value:
                problems.append(f"{label} is not set")
        if not self.utility.registrar_key:
            problems.append("utility registrar key is not set")
        if not self.value.registrar_key:
            problems.append("value registrar key is not set")
        return problems
