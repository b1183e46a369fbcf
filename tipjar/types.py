from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Mapping

from eth_utils import is_address

from .errors import InvalidAddressError
from .units import from_base_units, to_base_units

StatusType = Literal["idle", "pending", "success", "error"]
ReceiptStatus = Literal["success", "failure"]
NetworkType = Literal["base", "base-sepolia"]


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def validate_address(address: str, field: str = "address") -> str:
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Invalid {field}: {address!r}")
    return address


@dataclass(frozen=True)
class PaymentRequest:
    recipient_address: str
    amount: Decimal
    token_address: str
    chain_id: int

    def __post_init__(self):
        validate_address(self.recipient_address, "recipient address")
        validate_address(self.token_address, "token address")
        object.__setattr__(self, "amount", from_base_units(to_base_units(self.amount)))

    @property
    def base_units(self) -> int:
        return to_base_units(self.amount)


@dataclass(frozen=True)
class TransactionStatus:
    status: StatusType = "idle"
    hash: str | None = None
    error: str | None = None

    @classmethod
    def idle(cls) -> "TransactionStatus":
        return cls("idle")

    @classmethod
    def pending(cls) -> "TransactionStatus":
        return cls("pending")

    @classmethod
    def success(cls, tx_hash: str) -> "TransactionStatus":
        return cls("success", hash=tx_hash)

    @classmethod
    def failed(cls, message: str) -> "TransactionStatus":
        return cls("error", error=message)

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


class PaymentStage(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BALANCE_CHECK = "balance_check"
    ENCODING = "encoding"
    RELAY_ATTEMPT = "relay_attempt"
    DIRECT_ATTEMPT = "direct_attempt"
    AWAITING_RECEIPT = "awaiting_receipt"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    block_number: int
    status: ReceiptStatus
    transaction_index: int

    @property
    def tip_id(self) -> str:
        return f"{self.block_number}-{self.transaction_index}"

    @classmethod
    def from_web3(cls, receipt: Mapping[str, Any]) -> "Receipt":
        """Build from a web3 ``TxReceipt`` (or any mapping with the same keys)."""
        return cls(
            transaction_hash=_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
            status="success" if int(receipt["status"]) == 1 else "failure",
            transaction_index=int(receipt["transactionIndex"]),
        )


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_hash: str | None = None
    error: str | None = None
    error_kind: str | None = None
    payer: str = ""
    recipient: str = ""
    amount: str = ""
    token: str = ""
    receipt: Receipt | None = None
    via_relay: bool = False

    @property
    def tip_id(self) -> str | None:
        return self.receipt.tip_id if self.receipt else None


@dataclass
class ConfirmationState:
    block_number: int
    confirmations: int = 0
    finality_threshold: int = 6

    @property
    def is_final(self) -> bool:
        return self.confirmations >= self.finality_threshold


@dataclass(frozen=True)
class TipRecord:
    transaction_hash: str
    block_number: int
    recipient_address: str
    amount: str
    tip_id: str
    chain_id: int
    token_address: str
    creator_id: str | None = None
    tipper_id: str | None = None


@dataclass(frozen=True)
class TipLookup:
    transaction_hash: str
    status: Literal["pending", "success", "failure"]
    block_number: int | None = None
    confirmations: int = 0
