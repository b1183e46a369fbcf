import base64
import json
import secrets
import time

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from .config import NETWORKS

X402_VERSION = 1


class PaymentAuthorizer:
    """Signs x402 ``exact`` payment authorizations (EIP-3009 over EIP-712)."""

    def __init__(self, account: LocalAccount, network: str, max_value: int = 100_000):
        self.account = account
        self.network = network
        self.max_value = max_value

    @classmethod
    def from_key(cls, private_key: str, network: str, max_value: int = 100_000) -> "PaymentAuthorizer":
        return cls(Account.from_key(private_key), network, max_value)

    def select_requirement(self, accepts: list[dict]) -> dict | None:
        """First requirement this authorizer can satisfy, or None."""
        for requirement in accepts:
            if not isinstance(requirement, dict):
                continue
            if requirement.get("scheme") == "exact" and requirement.get("network") == self.network:
                return requirement
        return None

    def authorize(self, requirement: dict) -> str:
        """
        Sign payment authorization for a 402 challenge requirement.

        Args:
            requirement: One entry of the challenge's ``accepts`` list

        Returns:
            Base64-encoded JSON payload for the X-PAYMENT header

        Raises:
            ValueError: requirement is malformed or asks for more than max_value
        """
        value = int(requirement["maxAmountRequired"])
        if value > self.max_value:
            raise ValueError(
                f"Relay asks for {value} base units, above the {self.max_value} limit"
            )

        now = int(time.time())
        valid_before = now + int(requirement.get("maxTimeoutSeconds", 60))
        nonce = "0x" + secrets.token_hex(32)

        authorization = {
            "from": to_checksum_address(self.account.address),
            "to": to_checksum_address(requirement["payTo"]),
            "value": value,
            "validAfter": 0,
            "validBefore": valid_before,
            "nonce": bytes.fromhex(nonce[2:]),
        }

        extra = requirement.get("extra") or {}
        if not isinstance(extra, dict):
            raise ValueError(f"Malformed requirement extra: {extra!r}")
        domain = {
            "name": extra.get("name", "USD Coin"),
            "version": extra.get("version", "2"),
            "chainId": NETWORKS[self.network]["chain_id"],
            "verifyingContract": to_checksum_address(requirement["asset"]),
        }

        types = {
            "TransferWithAuthorization": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "validAfter", "type": "uint256"},
                {"name": "validBefore", "type": "uint256"},
                {"name": "nonce", "type": "bytes32"},
            ]
        }

        message = encode_typed_data(
            domain_data=domain,
            message_types=types,
            message_data=authorization
        )

        signed = self.account.sign_message(message)
        signature = signed.signature.hex()
        if not signature.startswith("0x"):
            signature = "0x" + signature

        payload = {
            "x402Version": X402_VERSION,
            "scheme": "exact",
            "network": self.network,
            "payload": {
                "authorization": {
                    "from": authorization["from"],
                    "to": authorization["to"],
                    "value": str(authorization["value"]),
                    "validAfter": str(authorization["validAfter"]),
                    "validBefore": str(authorization["validBefore"]),
                    "nonce": nonce,
                },
                "signature": signature,
            },
        }
        return base64.b64encode(json.dumps(payload).encode()).decode()
