"""
Relay Client.

Submits transfers through a gasless x402 relay. A 402 answer carries a
challenge; the client signs a payment authorization and retries the same
request exactly once.
"""

import asyncio

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import (
    NoHashReturnedError,
    RelayRejectedError,
    RelayUnavailableError,
)
from .types import PaymentRequest
from .wallet import PaymentAuthorizer

PAYMENT_HEADER = "X-PAYMENT"


class RelayTransferResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactionHash: str = Field(pattern=r"^0x[0-9a-fA-F]{64}$")


def should_fall_back(error: Exception) -> bool:
    """True when a relay failure should send the payment down the direct path."""
    if isinstance(error, RelayRejectedError):
        return not error.payment_declined
    return isinstance(error, (RelayUnavailableError, NoHashReturnedError))


class RelayClient:
    def __init__(
        self,
        base_url: str,
        authorizer: PaymentAuthorizer | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.authorizer = authorizer
        self.timeout = timeout
        self.session = session or requests.Session()

    async def submit_via_relay(self, request: PaymentRequest) -> str:
        """
        Submit a transfer through the relay.

        Returns:
            Transaction hash reported by the relay

        Raises:
            RelayUnavailableError: network failure, timeout, HTTP 5xx
            RelayRejectedError: relay declined (payment_declined=True on a repeated 402)
            NoHashReturnedError: 2xx without a valid transactionHash
        """
        return await asyncio.to_thread(self._submit, request)

    def _submit(self, request: PaymentRequest) -> str:
        body = {
            "to": request.recipient_address,
            "token": request.token_address,
            "amount": str(request.base_units),
            "chainId": request.chain_id,
        }

        response = self._post(body)
        if response.status_code == 402:
            header = self._authorize(response)
            logger.info("Relay requested payment, retrying with authorization")
            response = self._post(body, headers={PAYMENT_HEADER: header})
            if response.status_code == 402:
                raise RelayRejectedError(
                    f"Relay declined payment authorization: {_error_text(response)}",
                    payment_declined=True,
                )

        if response.status_code >= 500:
            raise RelayUnavailableError(
                f"Relay request failed: HTTP {response.status_code} - {_error_text(response)}"
            )
        if not 200 <= response.status_code < 300:
            raise RelayRejectedError(
                f"Relay request rejected: HTTP {response.status_code} - {_error_text(response)}"
            )

        try:
            data = RelayTransferResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise NoHashReturnedError(f"No transaction hash returned from relay: {e}") from e

        logger.info(f"Relay accepted transfer: {data.transactionHash}")
        return data.transactionHash

    def _post(self, body: dict, headers: dict | None = None) -> requests.Response:
        try:
            return self.session.post(
                f"{self.base_url}/transfer",
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RelayUnavailableError(f"Relay unreachable: {e}") from e

    def _authorize(self, response: requests.Response) -> str:
        if self.authorizer is None:
            raise RelayRejectedError("Relay requires payment but no payment authorizer is configured")

        try:
            challenge = response.json()
        except ValueError:
            raise RelayRejectedError("Relay returned 402 without a readable challenge") from None

        accepts = challenge.get("accepts") if isinstance(challenge, dict) else None
        if not accepts or not isinstance(accepts, list):
            raise RelayRejectedError("Relay returned 402 without payment requirements")

        requirement = self.authorizer.select_requirement(accepts)
        if requirement is None:
            raise RelayRejectedError(
                f"No supported payment requirement for network {self.authorizer.network}"
            )
        logger.debug(f"Relay payment requirement: {requirement}")

        try:
            return self.authorizer.authorize(requirement)
        except (KeyError, TypeError, ValueError) as e:
            raise RelayRejectedError(f"Cannot satisfy relay payment requirement: {e}") from e


def _error_text(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)
