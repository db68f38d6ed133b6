"""
Symmetric chunk protection pipeline.

Send side:
1. Sign the plaintext with HMAC over the derived signing key
2. Append the signature
3. Append the padding footer for the cipher block size
4. AES-CBC encrypt the padded buffer

Receive side:
1. AES-CBC decrypt
2. Strip the padding footer
3. Split message and signature, verify in constant time
4. Deliver the plaintext together with the verification result

Chunks protected with the same key set share one IV (see crypto.cipher), so
in-order delivery is the transport's job, not this module's.
"""

import logging
from typing import Tuple

from ..crypto.cipher import decrypt_buffer_with_derived_keys, encrypt_buffer_with_derived_keys
from ..crypto.keys import DerivedKeySet
from ..crypto.padding import compute_padding_footer, remove_padding
from ..crypto.signature import (
    make_message_chunk_signature_with_derived_keys,
    verify_chunk_signature_with_derived_keys,
)
from ..crypto.utils import format_hex
from ..errors import ProtocolViolationError, UAChannelError

logger = logging.getLogger(__name__)


class ChunkAuthenticationError(UAChannelError):
    """Raised by ChunkProtector.unprotect_or_raise when a signature is invalid."""
    pass


def protect_chunk(plaintext: bytes, derived_keys: DerivedKeySet) -> bytes:
    """
    Sign, pad and encrypt one chunk.

    Args:
        plaintext: Chunk body
        derived_keys: Key set of the sending direction

    Returns:
        Ciphertext, a multiple of the block size
    """
    plaintext = bytes(plaintext)
    signature = make_message_chunk_signature_with_derived_keys(plaintext, derived_keys)
    signed = plaintext + signature
    footer = compute_padding_footer(len(signed), derived_keys.encrypting_block_size)
    ciphertext = encrypt_buffer_with_derived_keys(signed + footer, derived_keys)

    logger.debug(
        f"Protected chunk: {len(plaintext)} plaintext bytes, "
        f"{len(footer)} padding bytes, ciphertext {format_hex(ciphertext, limit=16)}"
    )
    return ciphertext


def unprotect_chunk(ciphertext: bytes, derived_keys: DerivedKeySet) -> Tuple[bytes, bool]:
    """
    Decrypt, unpad and verify one chunk.

    A tampered chunk, or one decrypted under the wrong keys, can carry any
    pad length byte. A pad length that leaves no room for the signature is
    reported as an authentication failure with an empty plaintext.

    Args:
        ciphertext: Chunk as received
        derived_keys: Key set of the sending direction

    Returns:
        Tuple of (plaintext, authentic). The plaintext must be discarded
        when authentic is False.

    Raises:
        ProtocolViolationError: If the ciphertext is misaligned or too short
            to hold one padding byte and a signature
    """
    ciphertext = bytes(ciphertext)
    signature_length = derived_keys.signature_length
    if len(ciphertext) < signature_length + 1:
        raise ProtocolViolationError(
            f"Chunk of {len(ciphertext)} bytes cannot hold a {signature_length}-byte signature"
        )

    padded = decrypt_buffer_with_derived_keys(ciphertext, derived_keys)
    nb_padding_bytes = padded[-1] + 1
    if len(padded) - nb_padding_bytes < signature_length:
        logger.warning(
            f"Chunk signature verification failed: padding length {nb_padding_bytes} "
            f"leaves no room for the signature ({len(ciphertext)} bytes)"
        )
        return b"", False

    signed = remove_padding(padded)
    authentic = verify_chunk_signature_with_derived_keys(signed, derived_keys)
    plaintext = signed[:len(signed) - derived_keys.signature_length]

    if authentic:
        logger.debug(f"Unprotected chunk: {len(plaintext)} plaintext bytes")
    else:
        logger.warning(f"Chunk signature verification failed ({len(ciphertext)} bytes)")
    return plaintext, authentic


class ChunkProtector:
    """
    Protects and unprotects chunks for one channel direction.
    """

    def __init__(self, derived_keys: DerivedKeySet):
        """
        Initialize protector.

        Args:
            derived_keys: Key set of the direction this protector handles
        """
        self.derived_keys = derived_keys
        self.logger = logging.getLogger(__name__)
        self.chunks_protected = 0
        self.chunks_rejected = 0

    def protect(self, plaintext: bytes) -> bytes:
        ciphertext = protect_chunk(plaintext, self.derived_keys)
        self.chunks_protected += 1
        return ciphertext

    def unprotect(self, ciphertext: bytes) -> Tuple[bytes, bool]:
        plaintext, authentic = unprotect_chunk(ciphertext, self.derived_keys)
        if not authentic:
            self.chunks_rejected += 1
        return plaintext, authentic

    def unprotect_or_raise(self, ciphertext: bytes) -> bytes:
        """
        Like unprotect, but raise instead of returning an unauthenticated
        plaintext.

        Raises:
            ChunkAuthenticationError: If the signature does not verify
        """
        plaintext, authentic = self.unprotect(ciphertext)
        if not authentic:
            self.logger.error(f"Rejected chunk after {self.chunks_rejected} failure(s)")
            raise ChunkAuthenticationError("Chunk signature verification failed")
        return plaintext

    def get_stats(self) -> dict:
        return {
            'algorithm': self.derived_keys.algorithm.value,
            'hash_variant': self.derived_keys.hash_variant.value,
            'chunks_protected': self.chunks_protected,
            'chunks_rejected': self.chunks_rejected,
        }
