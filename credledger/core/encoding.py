# credledger/core/encoding.py
import binascii

from credledger.core.errors import HashDecodeError


def hex_encode(data: bytes) -> str:
    """Encode bytes to lowercase hex."""
    return data.hex()


def hex_decode(s: str, length: int) -> bytes:
    """Decode hex text, requiring exactly `length` bytes. Never pads or truncates."""
    if not isinstance(s, str):
        raise HashDecodeError(f"Expected hex string, got {type(s).__name__}")
    try:
        data = bytes.fromhex(s)
    except (ValueError, binascii.Error) as e:
        raise HashDecodeError(f"Invalid hex: {e}") from e
    if len(data) != length:
        raise HashDecodeError(f"Expected {length} bytes, got {len(data)}")
    return data
