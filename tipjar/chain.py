"""
Chain Reader.

Read-only queries against a chain RPC node: token balance, transaction
receipts and block height, plus a cancellable block height subscription.
"""

import asyncio
from collections.abc import Callable

import aiohttp
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from .encoding import ERC20_ABI
from .errors import RpcError, TransactionNotFoundError, UnconfirmedError
from .log import mask_address
from .types import Receipt

TRANSPORT_ERRORS = (Web3Exception, aiohttp.ClientError, ConnectionError, OSError, TimeoutError, ValueError)


class BlockSubscription:
    """
    Handle for a block height subscription.

    ``unsubscribe()`` may be called any number of times, including after the
    subscription already stopped.
    """

    def __init__(self, task: asyncio.Task | None = None):
        self._task = task
        self._closed = False

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        return not self._closed and self._task is not None and not self._task.done()

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    __call__ = unsubscribe


class ChainReader:
    """Stateless wrapper around an AsyncWeb3 instance."""

    def __init__(self, w3: AsyncWeb3, poll_interval: float = 2.0, receipt_timeout: float = 120.0):
        self.w3 = w3
        self.poll_interval = poll_interval
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_url(cls, rpc_url: str, poll_interval: float = 2.0, receipt_timeout: float = 120.0) -> "ChainReader":
        return cls(
            AsyncWeb3(AsyncHTTPProvider(rpc_url)),
            poll_interval=poll_interval,
            receipt_timeout=receipt_timeout,
        )

    async def get_balance(self, owner: str, token: str) -> int:
        """
        Get token balance in base units.

        A raised RpcError means "balance unknown", never "balance zero".
        """
        try:
            contract = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(token),
                abi=ERC20_ABI
            )
            balance = await contract.functions.balanceOf(
                AsyncWeb3.to_checksum_address(owner)
            ).call()
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Balance lookup failed for {mask_address(owner)}: {e}")
            raise RpcError(f"Balance lookup failed: {e}") from e
        return int(balance)

    async def get_receipt(self, tx_hash: str, timeout: float | None = None) -> Receipt:
        """
        Wait until the transaction is mined and return its receipt.

        Args:
            tx_hash: Transaction hash
            timeout: Node-level wait in seconds (defaults to receipt_timeout)

        Raises:
            TransactionNotFoundError: wait elapsed and the node does not know the hash
            UnconfirmedError: wait elapsed, transaction known but still unmined
            RpcError: transport or node failure
        """
        timeout = self.receipt_timeout if timeout is None else timeout
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self.poll_interval
            )
        except TimeExhausted:
            await self._ensure_known(tx_hash)
            raise UnconfirmedError(
                f"Transaction {tx_hash} not mined after {timeout:.0f}s"
            ) from None
        except TRANSPORT_ERRORS as e:
            raise RpcError(f"Receipt lookup failed for {tx_hash}: {e}") from e

        logger.info(
            f"Transaction {tx_hash} mined in block {receipt['blockNumber']} "
            f"(status {receipt['status']})"
        )
        return Receipt.from_web3(receipt)

    async def _ensure_known(self, tx_hash: str) -> None:
        try:
            await self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            raise TransactionNotFoundError(f"Transaction {tx_hash} not found") from None
        except TRANSPORT_ERRORS as e:
            raise RpcError(f"Transaction lookup failed for {tx_hash}: {e}") from e

    async def fetch_receipt(self, tx_hash: str) -> Receipt | None:
        """Single receipt lookup; None while the transaction is pending."""
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            await self._ensure_known(tx_hash)
            return None
        except TRANSPORT_ERRORS as e:
            raise RpcError(f"Receipt lookup failed for {tx_hash}: {e}") from e
        return Receipt.from_web3(receipt)

    async def get_block_height(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except TRANSPORT_ERRORS as e:
            raise RpcError(f"Block number lookup failed: {e}") from e

    def subscribe_block_height(self, callback: Callable[[int], None]) -> BlockSubscription:
        """
        Invoke ``callback(height)`` once per new chain head.

        Polls every ``poll_interval`` seconds on the running event loop until
        the returned handle is unsubscribed. Poll errors are logged and
        polling continues.
        """
        subscription = BlockSubscription()
        task = asyncio.get_running_loop().create_task(self._poll_blocks(callback, subscription))
        subscription.attach(task)
        return subscription

    async def _poll_blocks(self, callback: Callable[[int], None], subscription: BlockSubscription) -> None:
        last_seen: int | None = None
        while subscription.active:
            try:
                height = await self.get_block_height()
            except RpcError as e:
                logger.warning(f"Block poll failed, retrying: {e}")
            else:
                if last_seen is None or height > last_seen:
                    last_seen = height
                    try:
                        callback(height)
                    except Exception:
                        logger.exception(f"Block callback failed at height {height}")
            if not subscription.active:
                break
            await asyncio.sleep(self.poll_interval)
