"""
ledger-rpc hex helpers.

Canonical encodings used by the Ethereum block-query wire format:

- QUANTITY: "0x" + minimal lowercase hex digits ("0x0" for zero).
- DATA of fixed width: "0x" + exactly 2*width hex digits, zero-filled.
- Identifiers: native ledger ids (already hex text) re-emitted with a "0x" prefix.

Zero business logic: this module does *not* talk to the ledger; it only formats.
"""

from __future__ import annotations

from typing import NewType, Union

# ───────────────────────────────────────────────────────────────────────────────
# Newtypes (for readability in annotations)
# ───────────────────────────────────────────────────────────────────────────────

HexStr = NewType("HexStr", str)          # e.g., "0xdeadbeef"
Quantity = NewType("Quantity", str)      # e.g., "0xb2e8"

HEX_PREFIX = "0x"
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Zero-width placeholders are emitted as a bare zero scalar, not "0x".
ZERO_SCALAR = Quantity("0x0")


# ───────────────────────────────────────────────────────────────────────────────
# Encoders
# ───────────────────────────────────────────────────────────────────────────────

def num_to_hex(n: int) -> Quantity:
    """
    Non-negative int → QUANTITY ("0x" + minimal lowercase hex).
    """
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"num_to_hex expects int, got {type(n).__name__}")
    if n < 0:
        raise ValueError("num_to_hex expects a non-negative integer")
    return Quantity(f"{n:#x}")


def fixed_bytes(value: int, width: int) -> HexStr:
    """
    Encode `value` as exactly `width` bytes of hex (2*width digits, zero-filled).

    A zero `width` yields the bare scalar "0x0".
    """
    if width < 0:
        raise ValueError("width must be >= 0")
    if value < 0:
        raise ValueError("value must be >= 0")
    if width == 0:
        return HexStr(ZERO_SCALAR)
    digits = format(value, "x")
    if len(digits) > 2 * width:
        raise ValueError(f"value does not fit into {width} bytes")
    return HexStr(HEX_PREFIX + digits.rjust(2 * width, "0"))


def zero_bytes(width: int) -> HexStr:
    """`width` zero bytes as hex; `zero_bytes(0) == "0x0"`."""
    return fixed_bytes(0, width)


def hex_prefix(identifier: Union[str, bytes, bytearray, memoryview]) -> HexStr:
    """
    Native identifier → "0x"-prefixed hex. Text ids are passed through verbatim
    (no padding, no truncation); bytes-like ids are hexified first.
    """
    if isinstance(identifier, (bytes, bytearray, memoryview)):
        return HexStr(HEX_PREFIX + bytes(identifier).hex())
    if not isinstance(identifier, str):
        raise TypeError("hex_prefix expects str or bytes-like")
    return HexStr(HEX_PREFIX + identifier)


# ───────────────────────────────────────────────────────────────────────────────
# Decoders
# ───────────────────────────────────────────────────────────────────────────────

def strip_hex_prefix(s: str) -> str:
    """
    Return `s` without its leading "0x". Raises ValueError if the prefix is missing.
    """
    if not isinstance(s, str):
        raise TypeError("strip_hex_prefix expects str")
    if not s.startswith(HEX_PREFIX):
        raise ValueError("hex string must start with 0x")
    return s[len(HEX_PREFIX):]


def parse_quantity(s: str) -> int:
    """
    QUANTITY → int. Requires "0x" and at least one hex digit.
    """
    digits = strip_hex_prefix(s)
    if digits == "" or any(c not in _HEX_DIGITS for c in digits):
        raise ValueError(f"invalid quantity: {s!r}")
    return int(digits, 16)


__all__ = [
    # newtypes
    "HexStr",
    "Quantity",
    # encoders
    "num_to_hex",
    "fixed_bytes",
    "zero_bytes",
    "hex_prefix",
    # decoders
    "strip_hex_prefix",
    "parse_quantity",
    # constants
    "HEX_PREFIX",
    "ZERO_SCALAR",
]
