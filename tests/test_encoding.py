"""Unit tests for ERC-20 transfer encoding."""

import pytest
from eth_utils import to_checksum_address

from tipjar.encoding import TRANSFER_SELECTOR, encode_transfer
from tipjar.errors import InvalidAddressError, InvalidAmountError

from .constants import CHAIN_ID, RECIPIENT, TOKEN


def expected_data(recipient: str, amount: int) -> str:
    return "0xa9059cbb" + recipient[2:].lower().rjust(64, "0") + format(amount, "x").rjust(64, "0")


class TestEncodeTransfer:

    def test_selector(self):
        assert TRANSFER_SELECTOR.hex().removeprefix("0x") == "a9059cbb"

    def test_encodes_recipient_and_amount(self):
        call = encode_transfer(RECIPIENT, 5_000_000, TOKEN, CHAIN_ID)

        assert call.to == to_checksum_address(TOKEN)
        assert call.chain_id == CHAIN_ID
        assert call.data == expected_data(RECIPIENT, 5_000_000)

    def test_as_transaction(self):
        call = encode_transfer(RECIPIENT, 1, TOKEN, CHAIN_ID)
        assert call.as_transaction() == {
            "to": to_checksum_address(TOKEN),
            "data": expected_data(RECIPIENT, 1),
            "chainId": CHAIN_ID,
        }

    @pytest.mark.parametrize("address", ["", "0x1234", "0xRecv", "0x" + "z" * 40])
    def test_rejects_malformed_recipient(self, address):
        with pytest.raises(InvalidAddressError):
            encode_transfer(address, 1, TOKEN, CHAIN_ID)

    def test_rejects_malformed_token(self):
        with pytest.raises(InvalidAddressError):
            encode_transfer(RECIPIENT, 1, "0xnot-a-token", CHAIN_ID)

    @pytest.mark.parametrize("amount", [-1, 1.5, "5"])
    def test_rejects_bad_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            encode_transfer(RECIPIENT, amount, TOKEN, CHAIN_ID)
