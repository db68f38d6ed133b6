"""
Byte utilities used throughout the uachannel crypto layer.

Random nonce generation, constant-time comparison and hex formatting for
log output.
"""

import secrets

NONCE_LENGTH = 32


def generate_random_bytes(length: int) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Args:
        length: Number of random bytes to generate

    Returns:
        Cryptographically secure random bytes
    """
    return secrets.token_bytes(length)


def generate_nonce(length: int = NONCE_LENGTH) -> bytes:
    """Generate a handshake nonce (32 bytes unless told otherwise)."""
    if length < 1:
        raise ValueError("Nonce length must be positive")
    return generate_random_bytes(length)


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Compare two byte sequences in constant time.

    This prevents timing attacks when comparing sensitive data like
    chunk signatures.

    Args:
        a: First byte sequence
        b: Second byte sequence

    Returns:
        True if sequences are equal, False otherwise
    """
    return secrets.compare_digest(bytes(a), bytes(b))


def format_hex(data: bytes, separator: str = " ", limit: int = 32) -> str:
    """
    Format bytes as hexadecimal string, truncated for log output.

    Args:
        data: Bytes to format
        separator: Separator between hex bytes
        limit: Maximum number of bytes shown

    Returns:
        Formatted hex string, suffixed with the total length when truncated
    """
    shown = separator.join(f"{b:02x}" for b in data[:limit])
    if len(data) > limit:
        return f"{shown} ... ({len(data)} bytes)"
    return shown
