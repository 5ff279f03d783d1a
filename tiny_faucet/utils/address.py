"""Account address helpers."""

from __future__ import annotations

import re

from web3 import Web3

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_address(address: str | None) -> bool:
    """Return True for a 0x-prefixed 20-byte hex address.

    All-lowercase and all-uppercase hex are accepted as is; mixed case must
    carry a valid EIP-55 checksum.

    Examples:
        >>> is_valid_address("0x" + "ab" * 20)
        True
        >>> is_valid_address("0x1234")
        False
    """
    if not address or not isinstance(address, str):
        return False
    if not _HEX_ADDRESS.match(address):
        return False
    body = address[2:]
    if body.islower() or body.isupper() or body.isdigit():
        return True
    return Web3.is_checksum_address(address)


def normalize_address(address: str) -> str:
    """Lowercase an address so quota keys ignore checksum casing."""
    return address.strip().lower()
