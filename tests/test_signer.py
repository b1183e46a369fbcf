"""Tests for the direct submitter and signer error mapping."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3.exceptions import ContractLogicError

from tipjar.encoding import encode_transfer
from tipjar.errors import (
    InsufficientFundsError,
    RpcError,
    SignerUnavailableError,
    UserRejectedError,
)
from tipjar.signer import DirectSubmitter, LocalAccountSigner, classify_signer_error

from .constants import CHAIN_ID, RECIPIENT, TEST_PRIVATE_KEY, TOKEN, TX_HASH


@pytest.fixture
def call():
    return encode_transfer(RECIPIENT, 5_000_000, TOKEN, CHAIN_ID)


class TestDirectSubmitter:

    @pytest.mark.asyncio
    async def test_submits_once(self, mock_signer, call):
        tx_hash = await DirectSubmitter().submit_direct(mock_signer, call)

        assert tx_hash == TX_HASH
        mock_signer.send_transaction.assert_awaited_once_with(call.as_transaction())

    @pytest.mark.asyncio
    async def test_no_signer(self, call):
        with pytest.raises(SignerUnavailableError):
            await DirectSubmitter().submit_direct(None, call)

    @pytest.mark.asyncio
    async def test_no_account(self, mock_signer, call):
        mock_signer.account = None

        with pytest.raises(SignerUnavailableError):
            await DirectSubmitter().submit_direct(mock_signer, call)
        mock_signer.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_rejection(self, mock_signer, call):
        mock_signer.send_transaction.side_effect = ValueError(
            {"code": 4001, "message": "User denied transaction signature."}
        )

        with pytest.raises(UserRejectedError):
            await DirectSubmitter().submit_direct(mock_signer, call)
        assert mock_signer.send_transaction.await_count == 1

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, mock_signer, call):
        mock_signer.send_transaction.side_effect = ValueError(
            {"code": -32000, "message": "insufficient funds for gas * price + value"}
        )

        with pytest.raises(InsufficientFundsError):
            await DirectSubmitter().submit_direct(mock_signer, call)

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_signer, call):
        mock_signer.send_transaction.side_effect = ConnectionError("connection reset")

        with pytest.raises(RpcError):
            await DirectSubmitter().submit_direct(mock_signer, call)

    @pytest.mark.asyncio
    async def test_payment_errors_pass_through(self, mock_signer, call):
        error = UserRejectedError("declined in wallet")
        mock_signer.send_transaction.side_effect = error

        with pytest.raises(UserRejectedError) as exc_info:
            await DirectSubmitter().submit_direct(mock_signer, call)
        assert exc_info.value is error


class TestClassifySignerError:

    def test_rpc_response_attribute(self):
        error = Exception("rpc error")
        error.rpc_response = {"error": {"code": 4001, "message": "rejected"}}

        assert isinstance(classify_signer_error(error), UserRejectedError)

    def test_code_attribute(self):
        error = Exception("ACTION_REJECTED")
        error.code = 4001

        assert isinstance(classify_signer_error(error), UserRejectedError)

    def test_unknown_error(self):
        assert isinstance(classify_signer_error(ValueError("nonce too low")), RpcError)

    @pytest.mark.parametrize(
        "message",
        [
            "execution reverted: ERC20: transfer amount exceeds balance",
            "execution reverted: insufficient balance",
        ],
    )
    def test_token_balance_revert(self, message):
        assert isinstance(classify_signer_error(ContractLogicError(message)), InsufficientFundsError)

    @pytest.mark.asyncio
    async def test_transfer_revert_during_submission(self, mock_signer, call):
        mock_signer.send_transaction.side_effect = ContractLogicError(
            "execution reverted: ERC20: transfer amount exceeds balance"
        )

        with pytest.raises(InsufficientFundsError):
            await DirectSubmitter().submit_direct(mock_signer, call)


class TestLocalAccountSigner:

    @pytest.mark.asyncio
    async def test_signs_and_sends(self, call):
        account = Account.from_key(TEST_PRIVATE_KEY)
        w3 = MagicMock()
        w3.eth.get_transaction_count = AsyncMock(return_value=7)
        w3.eth.estimate_gas = AsyncMock(return_value=60_000)
        w3.eth.get_block = AsyncMock(return_value={"baseFeePerGas": 1_000_000})
        w3.eth.send_raw_transaction = AsyncMock(return_value=bytes.fromhex("ab" * 32))

        async def priority_fee():
            return 100_000

        type(w3.eth).max_priority_fee = property(lambda self: priority_fee())

        signer = LocalAccountSigner(w3, account)
        tx_hash = await signer.send_transaction(call.as_transaction())

        assert signer.account == account.address
        assert tx_hash == TX_HASH
        w3.eth.get_transaction_count.assert_awaited_once_with(account.address, "pending")
        raw = w3.eth.send_raw_transaction.await_args.args[0]
        assert len(raw) > 0
