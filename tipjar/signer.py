"""
Direct Submitter.

Sends the transfer through the user's own signer; the user pays the network
fee. Submission is attempted once and never retried.
"""

from typing import Protocol

import aiohttp
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from .encoding import TransferCall
from .errors import (
    InsufficientFundsError,
    PaymentError,
    RpcError,
    SignerUnavailableError,
    UserRejectedError,
)
from .log import mask_address

USER_REJECTED_CODE = 4001  # EIP-1193


class Signer(Protocol):
    account: str | None

    async def send_transaction(self, tx: dict) -> str: ...


class LocalAccountSigner:
    """Signer backed by a local private key."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount):
        self.w3 = w3
        self._account = account

    @property
    def account(self) -> str:
        return self._account.address

    async def send_transaction(self, tx: dict) -> str:
        """Fill nonce, gas and fees, sign locally and broadcast."""
        tx = {**tx, "from": self._account.address}
        tx["to"] = AsyncWeb3.to_checksum_address(tx["to"])
        tx["nonce"] = await self.w3.eth.get_transaction_count(self._account.address, "pending")
        tx["gas"] = await self.w3.eth.estimate_gas(tx)

        base_fee = (await self.w3.eth.get_block("latest"))["baseFeePerGas"]
        priority_fee = await self.w3.eth.max_priority_fee
        tx["maxPriorityFeePerGas"] = priority_fee
        tx["maxFeePerGas"] = base_fee * 2 + priority_fee

        signed = self._account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return AsyncWeb3.to_hex(tx_hash)


def _rpc_error(exc: Exception) -> dict:
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        return response["error"]
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0]
    return {}


def classify_signer_error(exc: Exception) -> PaymentError:
    """Map a signer/node failure to the payment error taxonomy."""
    if isinstance(exc, PaymentError):
        return exc

    error = _rpc_error(exc)
    code = error.get("code", getattr(exc, "code", None))
    message = str(error.get("message") or exc)

    if code == USER_REJECTED_CODE:
        return UserRejectedError("Transaction was rejected by user")
    lowered = message.lower()
    if "insufficient" in lowered or "exceeds balance" in lowered:
        return InsufficientFundsError(f"Insufficient funds: {message}")
    return RpcError(f"Transaction submission failed: {message}")


class DirectSubmitter:
    async def submit_direct(self, signer: Signer | None, call: TransferCall) -> str:
        """
        Submit the transfer call through the signer.

        Raises:
            SignerUnavailableError: no signer or no active account
            UserRejectedError: holder declined to sign
            InsufficientFundsError: account cannot cover the transfer or fee
            RpcError: other node or transport failure
        """
        if signer is None or not signer.account:
            raise SignerUnavailableError("No wallet account found. Please connect your wallet.")

        logger.info(f"Submitting direct transfer from {mask_address(signer.account)}")
        try:
            tx_hash = await signer.send_transaction(call.as_transaction())
        except PaymentError:
            raise
        except (Web3Exception, aiohttp.ClientError, ConnectionError, OSError, ValueError) as e:
            raise classify_signer_error(e) from e

        logger.info(f"Direct transfer submitted: {tx_hash}")
        return tx_hash
