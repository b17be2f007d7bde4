"""Encoding and decoding utilities."""

from typing import Union

WORD_SIZE = 32
ADDRESS_SIZE = 20


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith(("0x", "0X")):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def int_to_bytes32(value: int) -> bytes:
    """
    Encode an unsigned integer as a 32-byte big-endian word.

    Raises:
        ValueError: If value is negative or does not fit in 256 bits
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected int, got {type(value).__name__}")
    if value < 0 or value >= 1 << 256:
        raise ValueError("Value does not fit in 256 bits")
    return value.to_bytes(WORD_SIZE, byteorder="big")


def bytes32_to_int(word: bytes) -> int:
    """Decode a 32-byte big-endian word."""
    if len(word) != WORD_SIZE:
        raise ValueError(f"Expected {WORD_SIZE} bytes, got {len(word)}")
    return int.from_bytes(word, byteorder="big")


def to_bytes32(data: Union[bytes, str, int]) -> bytes:
    """
    Normalize a word given as bytes, hex string or int to exactly 32 bytes.

    Hex strings shorter than 64 digits are left-padded, so ``"0x1"`` and
    ``"0x" + "00" * 31 + "01"`` denote the same word.

    Raises:
        ValueError: If the input is not representable as a 32-byte word
    """
    if isinstance(data, (bytes, bytearray)):
        if len(data) != WORD_SIZE:
            raise ValueError(f"Expected {WORD_SIZE} bytes, got {len(data)}")
        return bytes(data)
    if isinstance(data, str):
        digits = data[2:] if data.startswith(("0x", "0X")) else data
        if not digits or len(digits) > 2 * WORD_SIZE:
            raise ValueError(f"Invalid 32-byte hex word: {data!r}")
        return bytes.fromhex(digits.rjust(2 * WORD_SIZE, "0"))
    if isinstance(data, int) and not isinstance(data, bool):
        return int_to_bytes32(data)
    raise TypeError(f"Expected bytes, str or int, got {type(data).__name__}")


def normalize_address(address: Union[bytes, str]) -> str:
    """
    Return a 20-byte address as lowercase ``0x``-prefixed hex.

    Raises:
        ValueError: If the address is not 20 bytes
    """
    raw = hex_to_bytes(address) if isinstance(address, str) else bytes(address)
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
    return bytes_to_hex(raw)


def to_recipient_field(address: Union[bytes, str]) -> bytes:
    """Left-pad a 20-byte address into the 32-byte recipient public input."""
    raw = hex_to_bytes(normalize_address(address))
    return b"\x00" * (WORD_SIZE - ADDRESS_SIZE) + raw


def recipient_from_field(field: bytes) -> str:
    """
    Extract the address from a 32-byte recipient field.

    Raises:
        ValueError: If the field is not 32 bytes or its upper 12 bytes are set
    """
    if len(field) != WORD_SIZE:
        raise ValueError(f"Recipient field must be {WORD_SIZE} bytes")
    if any(field[: WORD_SIZE - ADDRESS_SIZE]):
        raise ValueError("Upper 12 bytes of recipient field must be zero")
    return bytes_to_hex(field[WORD_SIZE - ADDRESS_SIZE :])

