"""Hex codecs and annotated pydantic types for hashes, addresses and quantities.

Rules:
- Fixed-width values (hashes, addresses) serialize as lowercase 0x-prefixed hex
- Byte strings serialize as 0x-prefixed hex; decoding tolerates a missing prefix
- Quantities accept ints or 0x-prefixed hex strings (JSON-RPC style)
"""

from typing import Annotated, Any, Optional

from pydantic import BeforeValidator, PlainSerializer


class HexDecodeError(ValueError):
    """Raised when a value cannot be decoded from hex."""
    pass


def strip_0x(value: str) -> str:
    if value.startswith(("0x", "0X")):
        return value[2:]
    return value


def decode_hex(value: str, size: Optional[int] = None) -> bytes:
    """Decode a hex string (with or without 0x prefix).

    Args:
        value: Hex text
        size: Required byte length, or None for any length

    Raises:
        HexDecodeError: If the text is not valid hex or has the wrong length
    """
    if not isinstance(value, str):
        raise HexDecodeError(f"Expected hex string, got {type(value).__name__}")
    body = strip_0x(value.strip())
    if len(body) % 2:
        raise HexDecodeError(f"Odd-length hex string: {value!r}")
    try:
        data = bytes.fromhex(body)
    except ValueError as e:
        raise HexDecodeError(f"Invalid hex string {value!r}: {e}") from None
    if size is not None and len(data) != size:
        raise HexDecodeError(f"Expected {size} bytes, got {len(data)} from {value!r}")
    return data


def encode_hex(data: bytes, prefix: bool = True) -> str:
    return ("0x" if prefix else "") + data.hex()


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC quantity: int, decimal string or 0x-prefixed hex string."""
    if isinstance(value, bool):
        raise HexDecodeError(f"Expected quantity, got bool {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.startswith(("0x", "0X")):
                return int(text, 16)
            return int(text, 10)
        except ValueError:
            raise HexDecodeError(f"Invalid quantity: {value!r}") from None
    raise HexDecodeError(f"Expected quantity, got {type(value).__name__}")


def int_to_word(value: int) -> bytes:
    """Encode a non-negative int as a 32-byte big-endian word."""
    return value.to_bytes(32, "big")


def word_to_int(word: bytes) -> int:
    return int.from_bytes(word, "big")


def _fixed(size: int):
    def _validate(value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            if len(value) != size:
                raise HexDecodeError(f"Expected {size} bytes, got {len(value)}")
            return bytes(value)
        return decode_hex(value, size)
    return _validate


def _any_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return decode_hex(value)


def _hex_out(value: bytes) -> str:
    return encode_hex(value)


B256 = Annotated[bytes, BeforeValidator(_fixed(32)), PlainSerializer(_hex_out, return_type=str)]
Address = Annotated[bytes, BeforeValidator(_fixed(20)), PlainSerializer(_hex_out, return_type=str)]
HexBytes = Annotated[bytes, BeforeValidator(_any_bytes), PlainSerializer(_hex_out, return_type=str)]
Quantity = Annotated[int, BeforeValidator(parse_quantity)]

ZERO_ADDRESS = bytes(20)
