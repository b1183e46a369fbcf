"""Pytest configuration and shared fixtures for all tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tipjar.client import PaymentConfig, PaymentOrchestrator
from tipjar.types import Receipt

from .constants import CHAIN_ID, PAYER, RECIPIENT, RELAY_HASH, TOKEN, TX_HASH


@pytest.fixture
def receipt():
    return Receipt(
        transaction_hash=TX_HASH,
        block_number=1000,
        status="success",
        transaction_index=2,
    )


@pytest.fixture
def mock_chain(receipt):
    """Mock ChainReader with a funded payer and a successful receipt."""
    chain = MagicMock()
    chain.get_balance = AsyncMock(return_value=100_000_000)
    chain.get_receipt = AsyncMock(return_value=receipt)
    chain.fetch_receipt = AsyncMock(return_value=receipt)
    chain.get_block_height = AsyncMock(return_value=1003)
    chain.subscribe_block_height = MagicMock(return_value=MagicMock())
    return chain


@pytest.fixture
def mock_signer():
    signer = MagicMock()
    signer.account = PAYER
    signer.send_transaction = AsyncMock(return_value=TX_HASH)
    return signer


@pytest.fixture
def mock_relay():
    relay = MagicMock()
    relay.submit_via_relay = AsyncMock(return_value=RELAY_HASH)
    return relay


@pytest.fixture
def mock_recorder():
    recorder = MagicMock()
    recorder.record = AsyncMock(return_value=None)
    return recorder


@pytest.fixture
def make_orchestrator(mock_chain, mock_signer):
    """Build an orchestrator; keyword arguments override PaymentConfig fields."""

    def factory(**overrides):
        options = {
            "recipient_address": RECIPIENT,
            "token_address": TOKEN,
            "chain_id": CHAIN_ID,
            "chain": mock_chain,
            "signer": mock_signer,
        }
        options.update(overrides)
        return PaymentOrchestrator(PaymentConfig(**options))

    return factory
