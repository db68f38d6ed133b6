"""
Symmetric chunk encryption with derived keys.

AES in CBC mode, keyed with the derived encrypting key and initialization
vector. Library padding is never used: callers pad with
`padding.compute_padding_footer` before encrypting and strip with
`padding.remove_padding` after decrypting, so output length always equals
input length.

The initialization vector belongs to the key set, not to the chunk. Every
chunk protected with one DerivedKeySet is encrypted under the same IV. This
is weaker than a per-message IV but it is what peers implementing the legacy
CBC security policies expect on the wire, so it must not be changed here.
"""

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..config import SymmetricAlgorithm
from ..errors import ConfigurationError, ProtocolViolationError
from .keys import DerivedKeySet


def _derived_keys_algorithm(derived_keys: DerivedKeySet) -> SymmetricAlgorithm:
    algorithm = derived_keys.algorithm
    if not isinstance(algorithm, SymmetricAlgorithm):
        raise ConfigurationError(f"Unsupported symmetric algorithm: {algorithm!r}")
    if len(derived_keys.encrypting_key) != algorithm.key_length:
        raise ConfigurationError(
            f"{algorithm.value} requires a {algorithm.key_length}-byte key"
        )
    return algorithm


def _check_alignment(buffer: bytes, derived_keys: DerivedKeySet) -> None:
    block_size = derived_keys.encrypting_block_size
    if len(buffer) % block_size != 0:
        raise ProtocolViolationError(
            f"Buffer length {len(buffer)} is not a multiple of the block size {block_size}"
        )


def _make_cipher(derived_keys: DerivedKeySet) -> Cipher:
    _derived_keys_algorithm(derived_keys)
    return Cipher(
        algorithms.AES(derived_keys.encrypting_key),
        modes.CBC(derived_keys.initialization_vector),
    )


def encrypt_buffer_with_derived_keys(buffer: bytes, derived_keys: DerivedKeySet) -> bytes:
    """
    Encrypt an already padded buffer.

    Raises:
        ConfigurationError: If the key set's algorithm is unsupported
        ProtocolViolationError: If the buffer is not block aligned
    """
    cipher = _make_cipher(derived_keys)
    _check_alignment(buffer, derived_keys)

    encryptor = cipher.encryptor()
    return encryptor.update(bytes(buffer)) + encryptor.finalize()


def decrypt_buffer_with_derived_keys(buffer: bytes, derived_keys: DerivedKeySet) -> bytes:
    """
    Decrypt a ciphertext; the result still carries its padding footer.

    Raises:
        ConfigurationError: If the key set's algorithm is unsupported
        ProtocolViolationError: If the ciphertext is not block aligned
    """
    cipher = _make_cipher(derived_keys)
    _check_alignment(buffer, derived_keys)

    decryptor = cipher.decryptor()
    return decryptor.update(bytes(buffer)) + decryptor.finalize()
