"""
Chunk signatures.

Once derived keys exist, a chunk is signed with HMAC over the derived signing
key and the signature is appended to the chunk. During the handshake, before
any derived key exists, chunks carry an RSA signature instead; that variant
works the same way except that the signature length may have to be read off
the peer certificate.
"""

from typing import Optional, Union

from ..config import AsymmetricSignatureAlgorithm
from ..errors import ConfigurationError, ProtocolViolationError
from . import pki
from .keys import DerivedKeySet
from .prf import hmac_digest
from .utils import constant_time_compare


def _split_signed_chunk(chunk: bytes, signature_length: int):
    if signature_length < 1:
        raise ConfigurationError(f"Invalid signature length: {signature_length}")
    if len(chunk) < signature_length:
        raise ProtocolViolationError(
            f"Chunk of {len(chunk)} bytes is shorter than its {signature_length}-byte signature"
        )
    split = len(chunk) - signature_length
    return chunk[:split], chunk[split:]


def make_message_chunk_signature_with_derived_keys(message: bytes, derived_keys: DerivedKeySet) -> bytes:
    """
    HMAC signature of `message` under the derived signing key.

    Raises:
        ConfigurationError: If the HMAC output does not match the declared
            signature length
    """
    signature = hmac_digest(derived_keys.hash_variant, derived_keys.signing_key, message)
    if len(signature) != derived_keys.signature_length:
        raise ConfigurationError(
            f"HMAC-{derived_keys.hash_variant.value} signature is {len(signature)} bytes, "
            f"key set declares {derived_keys.signature_length}"
        )
    return signature


def verify_chunk_signature_with_derived_keys(chunk: bytes, derived_keys: DerivedKeySet) -> bool:
    """
    Check the HMAC signature carried by the last `signature_length` bytes.

    Returns:
        True if the signature is valid. The comparison is constant-time.

    Raises:
        ProtocolViolationError: If the chunk is shorter than a signature
    """
    message, signature = _split_signed_chunk(bytes(chunk), derived_keys.signature_length)
    expected = make_message_chunk_signature_with_derived_keys(message, derived_keys)
    return constant_time_compare(expected, signature)


def make_chunk_signature(chunk: bytes, private_key,
                         algorithm: Union[str, AsymmetricSignatureAlgorithm],
                         signature_length: Optional[int] = None) -> bytes:
    """Handshake variant: RSA signature of a chunk."""
    return pki.make_message_chunk_signature(chunk, private_key, algorithm, signature_length)


def verify_chunk_signature(chunk: bytes, public_key,
                           signature_length: Optional[int] = None,
                           algorithm: Union[str, AsymmetricSignatureAlgorithm] = AsymmetricSignatureAlgorithm.RSA_SHA256) -> bool:
    """
    Handshake variant: verify the RSA signature appended to a chunk.

    Args:
        chunk: Message followed by its signature
        public_key: Peer certificate (PEM or DER), PEM public key or key object
        signature_length: Signature size; read from the public key when omitted
            (1024 bits = 128 bytes, 2048 bits = 256 bytes)
        algorithm: "RSA-SHA1" or "RSA-SHA256"

    Raises:
        ConfigurationError: If the key is not an RSA key
        ProtocolViolationError: If the chunk is shorter than the signature
    """
    if signature_length is None:
        signature_length = pki.public_key_length(public_key)
    block_to_verify, signature = _split_signed_chunk(bytes(chunk), signature_length)
    return pki.verify_message_chunk_signature(block_to_verify, signature, public_key, algorithm)
