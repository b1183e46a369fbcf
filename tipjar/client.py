import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from eth_account import Account
from loguru import logger

from .chain import ChainReader
from .config import FINALITY_THRESHOLD, Settings
from .encoding import encode_transfer
from .errors import (
    AlreadyInProgressError,
    InsufficientFundsError,
    InvalidAddressError,
    OnChainFailureError,
    PaymentError,
    RelayError,
    RpcError,
    SignerUnavailableError,
    UnconfirmedError,
)
from .log import mask_address, setup_logging
from .recorder import HttpTipRecorder, TipRecorder
from .relay import RelayClient, should_fall_back
from .signer import DirectSubmitter, LocalAccountSigner, Signer
from .tracker import ConfirmationTracker
from .types import (
    ConfirmationState,
    PaymentRequest,
    PaymentResult,
    PaymentStage,
    Receipt,
    TipLookup,
    TipRecord,
    TransactionStatus,
)
from .units import from_base_units
from .wallet import PaymentAuthorizer


@dataclass
class PaymentConfig:
    """Collaborators and parameters for one orchestrator."""
    recipient_address: str | None
    token_address: str
    chain_id: int
    chain: ChainReader | None = None
    signer: Signer | None = None
    relay: RelayClient | None = None
    recorder: TipRecorder | None = None
    receipt_timeout: float = 120.0
    submitter: DirectSubmitter = field(default_factory=DirectSubmitter)


class PaymentOrchestrator:
    """
    Runs one payment at a time: balance check, relay attempt with direct
    fallback, receipt wait.

    The transaction status is written only here; callers get read-only
    snapshots through ``status``.
    """

    def __init__(self, config: PaymentConfig):
        self.config = config
        self._status = TransactionStatus.idle()
        self._stage = PaymentStage.IDLE
        self._tx_hash: str | None = None

    @property
    def status(self) -> TransactionStatus:
        return self._status

    @property
    def stage(self) -> PaymentStage:
        return self._stage

    def reset(self) -> None:
        if self._status.is_pending:
            raise AlreadyInProgressError("Cannot reset while a payment is in progress")
        self._status = TransactionStatus.idle()
        self._stage = PaymentStage.IDLE
        self._tx_hash = None

    async def send_payment(
        self,
        amount: Decimal | int | float | str,
        *,
        creator_id: str | None = None,
        tipper_id: str | None = None,
    ) -> PaymentResult:
        """
        Send a tip of ``amount`` tokens to the configured recipient.

        Never raises for payment failures; the outcome is in the returned
        PaymentResult (``error_kind`` holds the failure kind).
        """
        if self._status.is_pending:
            error = AlreadyInProgressError("A payment is already in progress")
            logger.warning("Rejecting payment: another payment is in progress")
            return PaymentResult(
                success=False,
                error=str(error),
                error_kind=error.kind,
                recipient=self.config.recipient_address or "",
                amount=str(amount),
                token=self.config.token_address,
            )

        self._tx_hash = None
        self._stage = PaymentStage.VALIDATING
        signer = self.config.signer
        if signer is None or not signer.account:
            return self._fail(SignerUnavailableError("Wallet not connected"), amount)
        if not self.config.recipient_address:
            return self._fail(InvalidAddressError("Recipient address not provided"), amount)

        self._status = TransactionStatus.pending()
        try:
            return await self._process(amount, signer.account, creator_id, tipper_id)
        except PaymentError as e:
            return self._fail(e, amount)
        except asyncio.CancelledError:
            # a confirmed payment stays confirmed if cancelled while recording
            if self._stage is not PaymentStage.CONFIRMED:
                self._status = TransactionStatus.failed("Payment cancelled")
                self._stage = PaymentStage.FAILED
            raise
        except Exception as e:
            logger.exception(f"Unexpected payment error: {e}")
            return self._fail(e, amount)

    async def _process(self, amount, payer: str, creator_id: str | None, tipper_id: str | None) -> PaymentResult:
        request = PaymentRequest(
            recipient_address=self.config.recipient_address,
            amount=amount,
            token_address=self.config.token_address,
            chain_id=self.config.chain_id,
        )
        logger.info(
            f"Processing payment: {request.amount} to {mask_address(request.recipient_address)} "
            f"({request.base_units} base units)"
        )

        self._stage = PaymentStage.BALANCE_CHECK
        await self._check_balance(payer, request.base_units)

        self._stage = PaymentStage.ENCODING
        call = encode_transfer(
            request.recipient_address, request.base_units, request.token_address, request.chain_id
        )

        via_relay = False
        if self.config.relay is not None:
            self._stage = PaymentStage.RELAY_ATTEMPT
            try:
                self._tx_hash = await self.config.relay.submit_via_relay(request)
                via_relay = True
            except RelayError as e:
                if not should_fall_back(e):
                    raise
                logger.warning(f"Relay payment failed, falling back to direct transfer: {e}")

        if self._tx_hash is None:
            self._stage = PaymentStage.DIRECT_ATTEMPT
            self._tx_hash = await self.config.submitter.submit_direct(self.config.signer, call)

        self._stage = PaymentStage.AWAITING_RECEIPT
        receipt = await self._await_receipt(self._tx_hash)

        self._stage = PaymentStage.CONFIRMED
        self._status = TransactionStatus.success(self._tx_hash)
        result = self._result(True, request.amount, receipt=receipt, via_relay=via_relay)

        if receipt is not None:
            await self._record(TipRecord(
                transaction_hash=self._tx_hash,
                block_number=receipt.block_number,
                recipient_address=request.recipient_address,
                amount=str(request.amount),
                tip_id=receipt.tip_id,
                chain_id=request.chain_id,
                token_address=request.token_address,
                creator_id=creator_id,
                tipper_id=tipper_id,
            ))
        return result

    async def _check_balance(self, owner: str, required: int) -> None:
        # best effort: an unreadable balance does not block the payment
        if self.config.chain is None:
            return
        try:
            balance = await self.config.chain.get_balance(owner, self.config.token_address)
        except RpcError as e:
            logger.warning(f"Balance check failed, proceeding without it: {e}")
            return
        if balance < required:
            raise InsufficientFundsError(
                f"Insufficient USDC balance. Have: {from_base_units(balance)}, "
                f"Need: {from_base_units(required)}"
            )

    async def _await_receipt(self, tx_hash: str) -> Receipt | None:
        if self.config.chain is None:
            logger.warning(f"No chain reader configured, not waiting for {tx_hash}")
            return None
        try:
            receipt = await asyncio.wait_for(
                self.config.chain.get_receipt(tx_hash),
                timeout=self.config.receipt_timeout,
            )
        except TimeoutError:
            raise UnconfirmedError(
                f"Transaction {tx_hash} not confirmed within {self.config.receipt_timeout:.0f}s"
            ) from None
        if receipt.status != "success":
            raise OnChainFailureError("Transaction failed on-chain")
        return receipt

    async def _record(self, record: TipRecord) -> None:
        if self.config.recorder is None:
            return
        try:
            await self.config.recorder.record(record)
        except Exception as e:
            # the payment is already confirmed; recording is best effort
            logger.warning(f"Transaction succeeded but recording tip {record.tip_id} failed: {e}")

    def _fail(self, error: Exception, amount) -> PaymentResult:
        self._status = TransactionStatus.failed(str(error))
        self._stage = PaymentStage.FAILED
        logger.error(f"Payment failed ({_kind(error)}): {error}")
        return self._result(False, amount, error=error)

    def _result(self, success: bool, amount, error: Exception | None = None,
                receipt: Receipt | None = None, via_relay: bool = False) -> PaymentResult:
        signer = self.config.signer
        return PaymentResult(
            success=success,
            transaction_hash=self._tx_hash,
            error=str(error) if error else None,
            error_kind=_kind(error) if error else None,
            payer=(signer.account if signer else None) or "",
            recipient=self.config.recipient_address or "",
            amount=str(amount),
            token=self.config.token_address,
            receipt=receipt,
            via_relay=via_relay,
        )

    def track_confirmations(
        self,
        receipt: Receipt,
        on_update: Callable[[ConfirmationState], None],
        finality_threshold: int = FINALITY_THRESHOLD,
    ) -> ConfirmationTracker:
        """Start a confirmation tracker for a mined receipt."""
        if self.config.chain is None:
            raise RuntimeError("Confirmation tracking needs a chain reader")
        return ConfirmationTracker(self.config.chain, receipt, on_update, finality_threshold).start()

    async def lookup(self, tx_hash: str) -> TipLookup:
        """Current status and confirmation count of an earlier payment."""
        if self.config.chain is None:
            raise RuntimeError("Lookup needs a chain reader")
        receipt = await self.config.chain.fetch_receipt(tx_hash)
        if receipt is None:
            return TipLookup(transaction_hash=tx_hash, status="pending")
        height = await self.config.chain.get_block_height()
        return TipLookup(
            transaction_hash=receipt.transaction_hash,
            status=receipt.status,
            block_number=receipt.block_number,
            confirmations=max(height - receipt.block_number + 1, 0),
        )


def _kind(error: Exception) -> str:
    return error.kind if isinstance(error, PaymentError) else type(error).__name__


class TipJar:
    """Tips in USDC on Base, gasless through an x402 relay when one is configured."""

    def __init__(
        self,
        recipient: str,
        private_key: str | None = None,
        settings: Settings | None = None,
        signer: Signer | None = None,
        recorder: TipRecorder | None = None,
        debug: bool = False,
    ):
        if debug:
            setup_logging("DEBUG")
        self.settings = settings or Settings()
        if private_key is None and self.settings.private_key is not None:
            private_key = self.settings.private_key.get_secret_value()
        account = Account.from_key(private_key) if private_key else None

        self.chain = ChainReader.from_url(
            self.settings.resolved_rpc_url,
            poll_interval=self.settings.poll_interval,
            receipt_timeout=self.settings.node_receipt_timeout,
        )
        if signer is None and account is not None:
            signer = LocalAccountSigner(self.chain.w3, account)

        relay = None
        if self.settings.relay_url:
            authorizer = None
            if account is not None:
                authorizer = PaymentAuthorizer(account, self.settings.network, self.settings.relay_max_value)
            relay = RelayClient(self.settings.relay_url, authorizer, timeout=self.settings.relay_timeout)

        if recorder is None and self.settings.record_url:
            recorder = HttpTipRecorder(self.settings.record_url)

        self.orchestrator = PaymentOrchestrator(PaymentConfig(
            recipient_address=recipient,
            token_address=self.settings.token_address,
            chain_id=self.settings.chain_id,
            chain=self.chain,
            signer=signer,
            relay=relay,
            recorder=recorder,
            receipt_timeout=self.settings.receipt_timeout,
        ))

    @property
    def status(self) -> TransactionStatus:
        return self.orchestrator.status

    async def send_payment(self, amount, *, creator_id: str | None = None,
                           tipper_id: str | None = None) -> PaymentResult:
        return await self.orchestrator.send_payment(amount, creator_id=creator_id, tipper_id=tipper_id)

    def reset(self) -> None:
        self.orchestrator.reset()

    def track_confirmations(self, receipt: Receipt,
                            on_update: Callable[[ConfirmationState], None]) -> ConfirmationTracker:
        return self.orchestrator.track_confirmations(receipt, on_update)

    async def lookup(self, tx_hash: str) -> TipLookup:
        return await self.orchestrator.lookup(tx_hash)

    def get_token_address(self) -> str:
        return self.settings.token_address

    async def get_balance(self, owner: str) -> Decimal:
        """USDC balance of ``owner`` in whole tokens."""
        return from_base_units(await self.chain.get_balance(owner, self.settings.token_address))


# Factory function for one-line usage
async def tip(
    amount: Decimal | int | float | str,
    recipient: str,
    network: str | None = None,
    creator_id: str | None = None,
    tipper_id: str | None = None,
) -> PaymentResult:
    """
    One-line tip (reads TIPJAR_PRIVATE_KEY and the other TIPJAR_* settings).

    Usage:
        from tipjar import tip

        result = await tip(5, "0x...")
        if result.success:
            print(result.transaction_hash, result.tip_id)

    Args:
        amount: Amount in USDC (e.g. 5 or "0.25")
        recipient: Recipient address
        network: "base" or "base-sepolia" (default: from settings)
        creator_id: Creator identifier passed to the tip recorder
        tipper_id: Tipper identifier passed to the tip recorder

    Returns:
        PaymentResult with success, transaction_hash, error, etc.
    """
    settings = Settings(network=network) if network else Settings()
    jar = TipJar(recipient, settings=settings)
    return await jar.send_payment(amount, creator_id=creator_id, tipper_id=tipper_id)
