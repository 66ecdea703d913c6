"""Shared fixtures for bt_intercomm tests."""

from __future__ import annotations

import pytest

from bt_intercomm.chain.signers import Signer
from bt_intercomm.daemon import IntercommDaemon
from bt_intercomm.models.config import IntercommConfig, UtilityChainConfig, ValueChainConfig
from bt_intercomm.registration.coordinator import (
    REGISTERED_BRANDED_TOKEN,
    UTILITY_TOKEN_REGISTERED,
    RegistrationCoordinator,
    RegistrationSettings,
)
from bt_intercomm.scheduler.queue import ConfirmationDelayScheduler
from bt_intercomm.storage.sqlite import SQLiteStateStore

from tests.factories import make_success
from tests.mocks import MockEventSource, MockStepExecutor

# Well-known development accounts (public test keys, never funded on mainnet)
UTILITY_REGISTRAR_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
UTILITY_REGISTRAR = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
VALUE_REGISTRAR_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
VALUE_REGISTRAR = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

OPENST_UTILITY = "0x" + "1" * 40
UTILITY_REGISTRAR_CONTRACT = "0x" + "2" * 40
OPENST_VALUE = "0x" + "3" * 40
VALUE_REGISTRAR_CONTRACT = "0x" + "4" * 40
UTILITY_CHAIN_ID = 1410


def make_test_config(**overrides) -> IntercommConfig:
    """Build an IntercommConfig suitable for testing."""
    defaults = dict(
        confirmation_depth=6,
        poll_interval=0,
        error_backoff=0,
        max_concurrent_attempts=2,
        utility=UtilityChainConfig(
            rpc_url="http://127.0.0.1:9546",
            chain_id=UTILITY_CHAIN_ID,
            openst_utility_address=OPENST_UTILITY,
            registrar_contract=UTILITY_REGISTRAR_CONTRACT,
            registrar_address=UTILITY_REGISTRAR,
            registrar_key=UTILITY_REGISTRAR_KEY,
        ),
        value=ValueChainConfig(
            rpc_url="http://127.0.0.1:8545",
            openst_value_address=OPENST_VALUE,
            registrar_contract=VALUE_REGISTRAR_CONTRACT,
            registrar_address=VALUE_REGISTRAR,
            registrar_key=VALUE_REGISTRAR_KEY,
        ),
        db_path="",
    )
    defaults.update(overrides)
    return IntercommConfig(**defaults)


def make_settings() -> RegistrationSettings:
    return RegistrationSettings(
        openst_utility_address=OPENST_UTILITY,
        utility_registrar_contract=UTILITY_REGISTRAR_CONTRACT,
        utility_signer=Signer(UTILITY_REGISTRAR, UTILITY_REGISTRAR_KEY),
        openst_value_address=OPENST_VALUE,
        value_registrar_contract=VALUE_REGISTRAR_CONTRACT,
        value_signer=Signer(VALUE_REGISTRAR, VALUE_REGISTRAR_KEY),
        utility_chain_id=UTILITY_CHAIN_ID,
    )


@pytest.fixture
def test_config():
    """Default IntercommConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def utility_executor():
    return MockStepExecutor(make_success(REGISTERED_BRANDED_TOKEN))


@pytest.fixture
def value_executor():
    return MockStepExecutor(make_success(UTILITY_TOKEN_REGISTERED, tx_hash="0x" + "33" * 32))


@pytest.fixture
def coordinator(utility_executor, value_executor, settings):
    return RegistrationCoordinator(utility_executor, value_executor, settings)


@pytest.fixture
async def scheduler():
    """Scheduler with depth 6; caller sets a processor before start()."""
    s = ConfirmationDelayScheduler(confirmation_depth=6, max_concurrent=1)
    yield s
    await s.stop()


@pytest.fixture
def mock_source():
    return MockEventSource(head=100)


@pytest.fixture
async def daemon(test_config, store, mock_source, utility_executor, value_executor, settings):
    """IntercommDaemon wired to mocks and an in-memory store."""
    d = IntercommDaemon(test_config)
    d.store = store
    d.source = mock_source
    d.coordinator = RegistrationCoordinator(
        utility_executor, value_executor, settings, store=store,
    )
    d.scheduler = ConfirmationDelayScheduler(
        confirmation_depth=test_config.confirmation_depth,
        max_concurrent=test_config.max_concurrent_attempts,
        store=store,
    )
    d.scheduler.set_processor(d.coordinator.process)
    d.scheduler.start()
    yield d
    await d.scheduler.stop()
