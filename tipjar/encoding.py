"""ERC-20 transfer call encoding."""

from dataclasses import dataclass

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .errors import InvalidAmountError
from .types import validate_address

# Minimal ERC-20 ABI
ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    }
]

TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")


@dataclass(frozen=True)
class TransferCall:
    """Call payload for ``transfer(to, amount)`` on the token contract."""
    to: str
    data: str
    chain_id: int

    def as_transaction(self) -> dict:
        return {"to": self.to, "data": self.data, "chainId": self.chain_id}


def encode_transfer(recipient: str, amount: int, token_address: str, chain_id: int) -> TransferCall:
    """
    Build the ERC-20 transfer call for a token contract.

    Args:
        recipient: Address receiving the tokens
        amount: Amount in base units
        token_address: Token contract address (call target)
        chain_id: Chain the call is meant for

    Returns:
        TransferCall with 0x-prefixed call data
    """
    validate_address(recipient, "recipient address")
    validate_address(token_address, "token address")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmountError(f"Transfer amount must be a non-negative integer, got {amount!r}")

    args = encode(["address", "uint256"], [to_checksum_address(recipient), amount])
    return TransferCall(
        to=to_checksum_address(token_address),
        data="0x" + (TRANSFER_SELECTOR + args).hex(),
        chain_id=chain_id,
    )
