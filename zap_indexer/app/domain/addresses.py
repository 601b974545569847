from __future__ import annotations

from typing import Final

import bech32
from eth_utils import is_hex_address, to_normalized_address

ZIL_HRP: Final[str] = "zil"


def to_hex_address(address: str) -> str:
    """
    Normalize a Zilliqa address (bech32 ``zil1...`` or ``0x`` hex) to
    lowercase ``0x`` hex.
    """
    value = address.strip()
    if value.lower().startswith(ZIL_HRP + "1"):
        return "0x" + address_bytes(value).hex()
    if not is_hex_address(value):
        raise ValueError(f"Not a valid address: {address!r}")
    return to_normalized_address(value)


def to_bech32_address(address: str) -> str:
    raw = address_bytes(address)
    data = bech32.convertbits(raw, 8, 5, True)
    if data is None:
        raise ValueError(f"Cannot encode address as bech32: {address!r}")
    return bech32.bech32_encode(ZIL_HRP, data)


def address_bytes(address: str) -> bytes:
    """20 raw address bytes for either address encoding."""
    value = address.strip()
    if value.lower().startswith(ZIL_HRP + "1"):
        hrp, data = bech32.bech32_decode(value.lower())
        if hrp != ZIL_HRP or data is None:
            raise ValueError(f"Invalid bech32 address: {address!r}")
        decoded = bech32.convertbits(data, 5, 8, False)
        if decoded is None or len(decoded) != 20:
            raise ValueError(f"Invalid bech32 address payload: {address!r}")
        return bytes(decoded)

    if not is_hex_address(value):
        raise ValueError(f"Not a valid address: {address!r}")
    return bytes.fromhex(to_normalized_address(value)[2:])
