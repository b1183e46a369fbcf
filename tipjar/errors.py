"""Payment engine errors.

Every error carries a ``kind`` that ends up in ``PaymentResult.error_kind``.
"""


class PaymentError(Exception):
    kind = "PaymentError"


class InvalidAmountError(PaymentError):
    kind = "InvalidAmount"


class InvalidAddressError(PaymentError):
    kind = "InvalidAddress"


class SignerUnavailableError(PaymentError):
    kind = "SignerUnavailable"


class UserRejectedError(PaymentError):
    kind = "UserRejected"


class InsufficientFundsError(PaymentError):
    kind = "InsufficientFunds"


class RpcError(PaymentError):
    kind = "RpcError"


class TransactionNotFoundError(PaymentError):
    kind = "TransactionNotFound"


class OnChainFailureError(PaymentError):
    kind = "OnChainFailure"


class AlreadyInProgressError(PaymentError):
    kind = "AlreadyInProgress"


class UnconfirmedError(PaymentError):
    kind = "Unconfirmed"


class RelayError(PaymentError):
    kind = "RelayError"


class RelayUnavailableError(RelayError):
    kind = "RelayUnavailable"


class RelayRejectedError(RelayError):
    """Relay refused the request.

    ``payment_declined`` is True only when the relay answered 402 again after
    a payment authorization was attached.
    """

    kind = "RelayRejected"

    def __init__(self, message: str, payment_declined: bool = False):
        super().__init__(message)
        self.payment_declined = payment_declined


class NoHashReturnedError(RelayError):
    kind = "NoHashReturned"
