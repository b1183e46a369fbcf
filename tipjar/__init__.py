"""tipjar - USDC tip payments on Base with gasless x402 relay fallback"""

from .client import PaymentConfig, PaymentOrchestrator, TipJar, tip
from .config import FINALITY_THRESHOLD, Settings
from .errors import PaymentError
from .tracker import ConfirmationTracker
from .types import ConfirmationState, PaymentResult, Receipt, TransactionStatus
from .units import from_base_units, to_base_units

__version__ = "0.1.0"
__all__ = [
    "TipJar",
    "tip",
    "PaymentConfig",
    "PaymentOrchestrator",
    "ConfirmationTracker",
    "Settings",
    "FINALITY_THRESHOLD",
    "PaymentError",
    "PaymentResult",
    "TransactionStatus",
    "Receipt",
    "ConfirmationState",
    "to_base_units",
    "from_base_units",
]
