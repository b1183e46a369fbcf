"""
Confirmation Tracker.

Counts confirmations for a mined transaction by following block height
until the finality threshold is reached.
"""

from collections.abc import Callable
from dataclasses import replace

from loguru import logger

from .chain import BlockSubscription, ChainReader
from .config import FINALITY_THRESHOLD
from .types import ConfirmationState, Receipt


class ConfirmationTracker:
    """
    Push confirmation counts for one receipt to ``on_update``.

    Each instance tracks a single receipt once; create a new tracker to
    follow the same hash again.
    """

    def __init__(
        self,
        chain: ChainReader,
        receipt: Receipt,
        on_update: Callable[[ConfirmationState], None],
        finality_threshold: int = FINALITY_THRESHOLD,
    ):
        self.chain = chain
        self.receipt = receipt
        self.on_update = on_update
        self.state = ConfirmationState(
            block_number=receipt.block_number,
            finality_threshold=finality_threshold,
        )
        self._subscription: BlockSubscription | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self) -> "ConfirmationTracker":
        if self._subscription is not None:
            raise RuntimeError("Confirmation tracker already started")
        logger.info(
            f"Tracking confirmations for {self.receipt.transaction_hash} "
            f"from block {self.receipt.block_number}"
        )
        self._subscription = self.chain.subscribe_block_height(self._on_block)
        return self

    def cancel(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()

    def _on_block(self, height: int) -> None:
        if self.state.is_final:
            return

        confirmations = max(height - self.receipt.block_number + 1, 0)
        if confirmations <= self.state.confirmations:
            return

        self.state.confirmations = confirmations
        try:
            self.on_update(replace(self.state))
        finally:
            if self.state.is_final:
                logger.info(
                    f"Transaction {self.receipt.transaction_hash} final "
                    f"after {confirmations} confirmations"
                )
                self.cancel()
