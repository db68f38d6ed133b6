"""
Certificate and RSA helpers used around the secure channel handshake.

Reads PEM/DER material, extracts public keys and their lengths from
certificates, resolves key files against a certificate store directory, and
wraps RSA encryption and PKCS#1 v1.5 signatures from the
`cryptography` package.

An RSA key can only encrypt a buffer smaller than its modulus minus the
padding overhead (11 bytes for PKCS#1 v1.5, 42 bytes for OAEP with SHA1).
`public_encrypt_long` and `private_decrypt_long` split larger buffers into
blocks of that size.
"""

import base64
import hashlib
import logging
import math
import os
import re
from enum import Enum
from typing import Optional, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa

from ..config import AsymmetricSignatureAlgorithm, HashVariant, SecureChannelConfig
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

PEM_REGEX = re.compile(
    r"-----BEGIN (.*?)-----\r?\n([/+=a-zA-Z0-9\r\n]*?)\r?\n?-----END \1-----",
    re.MULTILINE,
)
PEM_TYPE_REGEX = re.compile(r"^-----BEGIN (.*?)-----", re.MULTILINE)

PEM_TYPES = ("CERTIFICATE", "RSA PRIVATE KEY", "PRIVATE KEY", "PUBLIC KEY")

KeyInput = Union[str, bytes, rsa.RSAPublicKey, rsa.RSAPrivateKey, x509.Certificate]

# Directory that relative key file names are resolved against; None means
# the default SecureChannelConfig directory.
_certificate_store: Optional[str] = None


class RsaPadding(Enum):
    """RSA encryption padding schemes and their per-block overhead."""

    PKCS1 = "pkcs1"
    PKCS1_OAEP = "pkcs1-oaep"

    @property
    def overhead(self) -> int:
        return 11 if self is RsaPadding.PKCS1 else 42

    def scheme(self) -> asym_padding.AsymmetricPadding:
        if self is RsaPadding.PKCS1:
            return asym_padding.PKCS1v15()
        return asym_padding.OAEP(
            mgf=asym_padding.MGF1(algorithm=hashes.SHA1()),
            algorithm=hashes.SHA1(),
            label=None,
        )


_SIGNATURE_HASHES = {
    HashVariant.SHA1: hashes.SHA1,
    HashVariant.SHA256: hashes.SHA256,
}


def _as_text(raw: Union[str, bytes]) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return raw


def identify_pem_type(raw_key: Union[str, bytes]) -> Optional[str]:
    """
    Return the PEM type label of `raw_key` (e.g. "CERTIFICATE"), or None if
    it does not look like PEM at all.
    """
    match = PEM_TYPE_REGEX.search(_as_text(raw_key))
    return match.group(1) if match else None


def read_pem(raw_key: Union[str, bytes]) -> bytes:
    """Decode every PEM block in `raw_key` and return the concatenated DER."""
    parts = []
    for match in PEM_REGEX.finditer(_as_text(raw_key)):
        base64_str = re.sub(r"\r?\n", "", match.group(2))
        parts.append(base64.b64decode(base64_str))
    return b"".join(parts)


def to_pem(raw_key: Union[str, bytes], pem_type: str) -> str:
    """
    Wrap DER bytes in a PEM envelope. PEM input is returned unchanged.
    """
    if isinstance(raw_key, str) or identify_pem_type(raw_key):
        return _as_text(raw_key)
    if pem_type not in PEM_TYPES:
        raise ConfigurationError(f"Unsupported PEM type: {pem_type!r}")

    b64 = base64.b64encode(raw_key).decode("ascii")
    lines = [f"-----BEGIN {pem_type}-----"]
    lines.extend(b64[i:i + 64] for i in range(0, len(b64), 64))
    lines.append(f"-----END {pem_type}-----")
    return "\n".join(lines) + "\n"


def read_certificate(filename: str) -> bytes:
    """Read a certificate file (.der raw, anything else PEM) as DER bytes."""
    if filename.lower().endswith(".der"):
        with open(filename, "rb") as f:
            return f.read()
    with open(filename, "r", encoding="ascii") as f:
        return read_pem(f.read())


def read_key_pem(filename: str) -> str:
    """
    Read a PEM key file and return its text.

    Raises:
        ConfigurationError: If the file is not PEM encoded
    """
    with open(filename, "r", encoding="utf-8") as f:
        raw_key = f.read()
    if identify_pem_type(raw_key) is None:
        raise ConfigurationError(f"{filename} is not a PEM file")
    return raw_key


def get_certificate_store() -> str:
    """Directory used to resolve relative key file names."""
    if _certificate_store is None:
        return SecureChannelConfig().config_dir
    return _certificate_store


def set_certificate_store(store: str) -> str:
    """
    Change the directory used to resolve relative key file names.

    Returns:
        The previous store directory
    """
    global _certificate_store
    old_store = get_certificate_store()
    _certificate_store = os.fspath(store)
    return old_store


def _resolve_in_store(filename: str) -> str:
    # explicit relative paths and existing files are used as given
    filename = os.fspath(filename)
    if os.path.isabs(filename) or filename.startswith(".") or os.path.exists(filename):
        return filename
    return os.path.join(get_certificate_store(), filename)


def read_private_rsa_key(filename: str) -> str:
    """Read a PEM private key file, looking it up in the certificate store."""
    with open(_resolve_in_store(filename), "r", encoding="ascii") as f:
        return f.read()


def read_public_rsa_key(filename: str) -> str:
    """Read a PEM public key file, looking it up in the certificate store."""
    return read_private_rsa_key(filename)


def read_sshkey_as_pem(filename: str) -> str:
    """
    Read an OpenSSH public key file ("ssh-rsa AAAA...") and return it as a
    PEM "PUBLIC KEY" string.

    Raises:
        ConfigurationError: If the file does not hold an OpenSSH public key
    """
    with open(_resolve_in_store(filename), "r", encoding="ascii") as f:
        raw_key = f.read()
    try:
        public_key = serialization.load_ssh_public_key(raw_key.strip().encode("ascii"))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"{filename} is not an OpenSSH public key: {e}") from e
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def make_sha1_thumbprint(buffer: bytes) -> bytes:
    """SHA1 digest of a DER certificate, as used for certificate thumbprints."""
    return hashlib.sha1(bytes(buffer)).digest()


def load_certificate(certificate: Union[str, bytes, x509.Certificate]) -> x509.Certificate:
    """Parse a certificate given as PEM text, PEM bytes or DER bytes."""
    if isinstance(certificate, x509.Certificate):
        return certificate
    try:
        if identify_pem_type(certificate):
            return x509.load_der_x509_certificate(read_pem(certificate))
        return x509.load_der_x509_certificate(bytes(certificate))
    except ValueError as e:
        raise ConfigurationError(f"Invalid certificate: {e}") from e


def load_public_key(key: KeyInput):
    """
    Load a public key from a key object, a certificate, a PEM public key or
    DER certificate bytes.
    """
    if isinstance(key, rsa.RSAPrivateKey):
        return key.public_key()
    if isinstance(key, x509.Certificate):
        return key.public_key()
    if not isinstance(key, (str, bytes, bytearray)):
        return key

    pem_type = identify_pem_type(key)
    if pem_type is None or pem_type == "CERTIFICATE":
        return load_certificate(key).public_key()
    if pem_type in ("RSA PRIVATE KEY", "PRIVATE KEY"):
        return load_private_key(key).public_key()

    data = key.encode("ascii") if isinstance(key, str) else bytes(key)
    try:
        return serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Invalid public key: {e}") from e


def load_private_key(key: Union[str, bytes, rsa.RSAPrivateKey]):
    """Load an unencrypted private key from PEM text or bytes."""
    if not isinstance(key, (str, bytes, bytearray)):
        return key
    if identify_pem_type(key) not in ("RSA PRIVATE KEY", "PRIVATE KEY"):
        raise ConfigurationError("Expecting a PEM encoded private key")
    data = key.encode("ascii") if isinstance(key, str) else bytes(key)
    try:
        return serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Invalid private key: {e}") from e


def _require_rsa(key):
    if not isinstance(key, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
        raise ConfigurationError(
            f"Only RSA keys are supported, got {type(key).__name__}"
        )
    return key


def rsa_length(key: KeyInput) -> int:
    """Modulus length in bytes (128 for RSA-1024, 256 for RSA-2048)."""
    if isinstance(key, (str, bytes, bytearray)) and identify_pem_type(key) in ("RSA PRIVATE KEY", "PRIVATE KEY"):
        key = load_private_key(key)
    else:
        key = load_public_key(key)
    return math.ceil(_require_rsa(key).key_size / 8)


def public_key_length(certificate: KeyInput) -> int:
    """
    Byte length of the RSA public key carried by a certificate (or key).

    Raises:
        ConfigurationError: For non-RSA keys
    """
    return math.ceil(_require_rsa(load_public_key(certificate)).key_size / 8)


def extract_public_key_from_certificate(certificate: Union[str, bytes, x509.Certificate]) -> str:
    """Return the certificate's public key as a PEM "PUBLIC KEY" string."""
    public_key = load_certificate(certificate).public_key()
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def public_encrypt(buffer: bytes, public_key: KeyInput,
                   padding: RsaPadding = RsaPadding.PKCS1) -> bytes:
    """Encrypt a buffer that fits in a single RSA block."""
    key = _require_rsa(load_public_key(public_key))
    return key.encrypt(bytes(buffer), RsaPadding(padding).scheme())


def private_decrypt(buffer: bytes, private_key: Union[str, bytes, rsa.RSAPrivateKey],
                    padding: RsaPadding = RsaPadding.PKCS1) -> bytes:
    """
    Decrypt a single RSA block.

    Returns:
        The plaintext, or b"" if the block cannot be decrypted. Callers must
        treat the empty result as a decryption failure.
    """
    key = _require_rsa(load_private_key(private_key))
    try:
        return key.decrypt(bytes(buffer), RsaPadding(padding).scheme())
    except ValueError as e:
        logger.warning(f"RSA decryption failed: {e}")
        return b""


def public_encrypt_long(buffer: bytes, public_key: KeyInput,
                        block_size: Optional[int] = None,
                        padding_overhead: Optional[int] = None,
                        padding: RsaPadding = RsaPadding.PKCS1) -> bytes:
    """
    Encrypt a buffer of any length, `block_size - padding_overhead` bytes per
    RSA block. Every output block is exactly `block_size` bytes.
    """
    padding = RsaPadding(padding)
    key = _require_rsa(load_public_key(public_key))
    if block_size is None:
        block_size = math.ceil(key.key_size / 8)
    if padding_overhead is None:
        padding_overhead = padding.overhead

    chunk_size = block_size - padding_overhead
    if chunk_size < 1:
        raise ConfigurationError(f"Block size {block_size} leaves no room for data")

    nb_blocks = math.ceil(len(buffer) / chunk_size)
    output = []
    for i in range(nb_blocks):
        current_block = buffer[chunk_size * i:chunk_size * (i + 1)]
        encrypted_chunk = public_encrypt(current_block, key, padding)
        if len(encrypted_chunk) != block_size:
            raise ConfigurationError(
                f"RSA block is {len(encrypted_chunk)} bytes, expected {block_size}"
            )
        output.append(encrypted_chunk)
    return b"".join(output)


def private_decrypt_long(buffer: bytes, private_key: Union[str, bytes, rsa.RSAPrivateKey],
                         block_size: Optional[int] = None,
                         padding: RsaPadding = RsaPadding.PKCS1) -> bytes:
    """
    Decrypt the output of public_encrypt_long.

    Returns:
        The plaintext, or b"" if any block fails to decrypt
    """
    key = _require_rsa(load_private_key(private_key))
    if block_size is None:
        block_size = math.ceil(key.key_size / 8)

    nb_blocks = math.ceil(len(buffer) / block_size)
    output = []
    for i in range(nb_blocks):
        current_block = buffer[block_size * i:min(block_size * (i + 1), len(buffer))]
        decrypted = private_decrypt(current_block, key, padding)
        if not decrypted:
            logger.warning(f"RSA block {i} of {nb_blocks} could not be decrypted")
            return b""
        output.append(decrypted)
    return b"".join(output)


def make_message_chunk_signature(chunk: bytes, private_key: Union[str, bytes, rsa.RSAPrivateKey],
                                 algorithm: Union[str, AsymmetricSignatureAlgorithm],
                                 signature_length: Optional[int] = None) -> bytes:
    """
    Sign a chunk with an RSA private key (PKCS#1 v1.5).

    Raises:
        ConfigurationError: If the signature does not have the declared length
    """
    algorithm = AsymmetricSignatureAlgorithm.parse(algorithm)
    key = _require_rsa(load_private_key(private_key))
    signature = key.sign(
        bytes(chunk),
        asym_padding.PKCS1v15(),
        _SIGNATURE_HASHES[algorithm.hash_variant](),
    )
    if signature_length and len(signature) != signature_length:
        raise ConfigurationError(
            f"Signature is {len(signature)} bytes, expected {signature_length}"
        )
    return signature


def verify_message_chunk_signature(block_to_verify: bytes, signature: bytes,
                                   public_key: KeyInput,
                                   algorithm: Union[str, AsymmetricSignatureAlgorithm]) -> bool:
    """Return True if `signature` is a valid RSA signature of the block."""
    algorithm = AsymmetricSignatureAlgorithm.parse(algorithm)
    key = _require_rsa(load_public_key(public_key))
    try:
        key.verify(
            bytes(signature),
            bytes(block_to_verify),
            asym_padding.PKCS1v15(),
            _SIGNATURE_HASHES[algorithm.hash_variant](),
        )
        return True
    except InvalidSignature:
        return False
