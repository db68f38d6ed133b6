"""
Padding applied to a signed chunk before symmetric encryption.

The footer is `padding_size + 1` bytes, each equal to `padding_size`, so the
last byte of a padded buffer always tells how much to strip.
"""

from ..errors import ConfigurationError, ProtocolViolationError


def compute_padding_footer(plain_length: int, block_size: int) -> bytes:
    """
    Compute the footer that aligns `plain_length` bytes to `block_size`.

    Args:
        plain_length: Length of the buffer to pad
        block_size: Cipher block size in bytes (1..255)

    Returns:
        Padding footer, always at least one byte long
    """
    if not 1 <= block_size <= 255:
        raise ConfigurationError(f"Invalid block size: {block_size}")
    if plain_length < 0:
        raise ConfigurationError(f"plain_length must be non-negative, got {plain_length}")

    padding_size = block_size - (plain_length + 1) % block_size
    return bytes([padding_size]) * (padding_size + 1)


def reduce_length(buffer: bytes, byte_to_remove: int) -> bytes:
    """Drop the last `byte_to_remove` bytes of `buffer`."""
    if byte_to_remove > len(buffer):
        raise ProtocolViolationError(
            f"Cannot remove {byte_to_remove} bytes from a {len(buffer)}-byte buffer"
        )
    return buffer[:len(buffer) - byte_to_remove]


def remove_padding(buffer: bytes) -> bytes:
    """
    Strip the footer added by compute_padding_footer.

    Only valid on decrypted data.

    Raises:
        ProtocolViolationError: If the buffer is empty or the pad length
            byte points past its start
    """
    if not buffer:
        raise ProtocolViolationError("Cannot remove padding from an empty buffer")
    nb_padding_bytes = buffer[-1] + 1
    return reduce_length(buffer, nb_padding_bytes)
