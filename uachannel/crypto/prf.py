"""
Pseudo-random function for the OPC-UA SecureChannel.

Once a SecureChannel is established, messages are signed and encrypted with
keys derived from the nonces exchanged in the OpenSecureChannel call. The
nonces are stretched with the P_HASH construction from the TLS
specification:

    P_HASH(secret, seed) = HMAC_HASH(secret, A(1) + seed) +
                           HMAC_HASH(secret, A(2) + seed) +
                           HMAC_HASH(secret, A(3) + seed) + ...

    A(0) = seed
    A(n) = HMAC_HASH(secret, A(n-1))

HASH is SHA1 or SHA256 depending on the security policy.
"""

from typing import Union

from cryptography.hazmat.primitives import hashes, hmac

from ..config import HashVariant
from ..errors import ConfigurationError


_HASH_ALGORITHMS = {
    HashVariant.SHA1: hashes.SHA1,
    HashVariant.SHA256: hashes.SHA256,
}


def hmac_digest(hash_variant: HashVariant, key: bytes, message: bytes) -> bytes:
    """Compute HMAC_HASH(key, message) for the given hash variant."""
    h = hmac.HMAC(bytes(key), _HASH_ALGORITHMS[hash_variant]())
    h.update(bytes(message))
    return h.finalize()


def make_pseudo_random_buffer(secret: bytes, seed: bytes, length: int,
                              hash_variant: Union[str, HashVariant] = HashVariant.SHA1) -> bytes:
    """
    Stretch a secret and a seed into `length` pseudo-random bytes (P_HASH).

    Args:
        secret: PRF secret (the other peer's nonce)
        seed: PRF seed
        length: Number of bytes to return, at least 1
        hash_variant: "SHA1" or "SHA256"

    Returns:
        Exactly `length` bytes. Shorter outputs are prefixes of longer ones.

    Raises:
        ConfigurationError: If length < 1 or the hash variant is unsupported
    """
    hash_variant = HashVariant.parse(hash_variant)
    if isinstance(length, bool) or not isinstance(length, int) or length < 1:
        raise ConfigurationError(f"PRF length must be a positive integer, got {length!r}")

    secret = bytes(secret)
    seed = bytes(seed)

    a = seed
    p_hash = b""
    while True:
        a = hmac_digest(hash_variant, secret, a)
        p_hash += hmac_digest(hash_variant, secret, a + seed)
        if len(p_hash) >= length:
            break

    return p_hash[:length]
