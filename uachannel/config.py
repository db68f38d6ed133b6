"""
Configuration management for the uachannel secure-channel layer.

Holds the closed selector enumerations (symmetric algorithm, HMAC hash,
asymmetric signature scheme), the validated parameter set consumed by the key
scheduler, the registry of CBC-based security policies, and a small
file-backed configuration object that locates the local certificate and
private key.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigurationError


class SymmetricAlgorithm(Enum):
    """Block cipher used to encrypt chunks. CBC mode only."""

    AES_128_CBC = "aes-128-cbc"
    AES_256_CBC = "aes-256-cbc"

    @property
    def key_length(self) -> int:
        return 16 if self is SymmetricAlgorithm.AES_128_CBC else 32

    @property
    def block_size(self) -> int:
        return 16

    @classmethod
    def parse(cls, value: Union[str, "SymmetricAlgorithm"]) -> "SymmetricAlgorithm":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"Unsupported symmetric algorithm: {value!r}")


class HashVariant(Enum):
    """Hash function behind the PRF and the chunk HMAC."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"

    @property
    def digest_size(self) -> int:
        return 20 if self is HashVariant.SHA1 else 32

    @classmethod
    def parse(cls, value: Union[str, "HashVariant", None]) -> "HashVariant":
        if value is None:
            return cls.SHA1
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(f"Unsupported hash variant: {value!r}")


class AsymmetricSignatureAlgorithm(Enum):
    """RSA PKCS#1 v1.5 signature schemes used during the handshake."""

    RSA_SHA1 = "RSA-SHA1"
    RSA_SHA256 = "RSA-SHA256"

    @property
    def hash_variant(self) -> HashVariant:
        return HashVariant.SHA1 if self is AsymmetricSignatureAlgorithm.RSA_SHA1 else HashVariant.SHA256

    @classmethod
    def parse(cls, value: Union[str, "AsymmetricSignatureAlgorithm"]) -> "AsymmetricSignatureAlgorithm":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(f"Unsupported asymmetric signature algorithm: {value!r}")


# camelCase option names used by peers' option dictionaries
_PARAM_ALIASES = {
    'signingKeyLength': 'signing_key_length',
    'encryptingKeyLength': 'encrypting_key_length',
    'encryptingBlockSize': 'encrypting_block_size',
    'signatureLength': 'signature_length',
    'sha1or256': 'hash_variant',
    'hashVariant': 'hash_variant',
}


@dataclass(frozen=True)
class DerivedKeyParams:
    """
    Lengths and algorithms needed to derive one direction's key set.

    All lengths are byte counts. Instances are validated on construction so a
    bad combination never reaches the PRF or the cipher.
    """

    signing_key_length: int
    encrypting_key_length: int
    encrypting_block_size: int
    signature_length: int
    algorithm: SymmetricAlgorithm = SymmetricAlgorithm.AES_128_CBC
    hash_variant: HashVariant = HashVariant.SHA1

    def __post_init__(self):
        object.__setattr__(self, 'algorithm', SymmetricAlgorithm.parse(self.algorithm))
        object.__setattr__(self, 'hash_variant', HashVariant.parse(self.hash_variant))

        for name in ('signing_key_length', 'encrypting_key_length',
                     'encrypting_block_size', 'signature_length'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")

        if self.encrypting_key_length != self.algorithm.key_length:
            raise ConfigurationError(
                f"{self.algorithm.value} requires a {self.algorithm.key_length}-byte "
                f"encrypting key, got {self.encrypting_key_length}"
            )
        if self.encrypting_block_size != self.algorithm.block_size:
            raise ConfigurationError(
                f"{self.algorithm.value} requires a {self.algorithm.block_size}-byte "
                f"block size, got {self.encrypting_block_size}"
            )
        if self.signature_length != self.hash_variant.digest_size:
            raise ConfigurationError(
                f"HMAC-{self.hash_variant.value} produces {self.hash_variant.digest_size}-byte "
                f"signatures, got signature_length={self.signature_length}"
            )

    @property
    def derived_length(self) -> int:
        """Total number of PRF bytes needed for this parameter set."""
        return self.signing_key_length + self.encrypting_key_length + self.encrypting_block_size

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "DerivedKeyParams":
        """Build params from a dict using either snake_case or camelCase keys."""
        kwargs: Dict[str, Any] = {}
        for key, value in options.items():
            name = _PARAM_ALIASES.get(key, key)
            if name not in cls.__dataclass_fields__:
                raise ConfigurationError(f"Unknown derived key option: {key!r}")
            kwargs[name] = value
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Incomplete derived key options: {e}") from e


@dataclass(frozen=True)
class SecurityPolicy:
    """A named bundle of symmetric and asymmetric algorithm choices."""

    name: str
    uri: str
    signing_key_length: int
    encrypting_key_length: int
    encrypting_block_size: int
    signature_length: int
    algorithm: SymmetricAlgorithm
    hash_variant: HashVariant
    asymmetric_signature_algorithm: AsymmetricSignatureAlgorithm

    def derived_key_params(self) -> DerivedKeyParams:
        return DerivedKeyParams(
            signing_key_length=self.signing_key_length,
            encrypting_key_length=self.encrypting_key_length,
            encrypting_block_size=self.encrypting_block_size,
            signature_length=self.signature_length,
            algorithm=self.algorithm,
            hash_variant=self.hash_variant,
        )


_POLICY_URI_PREFIX = "http://opcfoundation.org/UA/SecurityPolicy#"

BASIC128RSA15 = SecurityPolicy(
    name="Basic128Rsa15",
    uri=_POLICY_URI_PREFIX + "Basic128Rsa15",
    signing_key_length=16,
    encrypting_key_length=16,
    encrypting_block_size=16,
    signature_length=20,
    algorithm=SymmetricAlgorithm.AES_128_CBC,
    hash_variant=HashVariant.SHA1,
    asymmetric_signature_algorithm=AsymmetricSignatureAlgorithm.RSA_SHA1,
)

BASIC256 = SecurityPolicy(
    name="Basic256",
    uri=_POLICY_URI_PREFIX + "Basic256",
    signing_key_length=24,
    encrypting_key_length=32,
    encrypting_block_size=16,
    signature_length=20,
    algorithm=SymmetricAlgorithm.AES_256_CBC,
    hash_variant=HashVariant.SHA1,
    asymmetric_signature_algorithm=AsymmetricSignatureAlgorithm.RSA_SHA1,
)

BASIC256SHA256 = SecurityPolicy(
    name="Basic256Sha256",
    uri=_POLICY_URI_PREFIX + "Basic256Sha256",
    signing_key_length=32,
    encrypting_key_length=32,
    encrypting_block_size=16,
    signature_length=32,
    algorithm=SymmetricAlgorithm.AES_256_CBC,
    hash_variant=HashVariant.SHA256,
    asymmetric_signature_algorithm=AsymmetricSignatureAlgorithm.RSA_SHA256,
)

SECURITY_POLICIES = {policy.name: policy for policy in (BASIC128RSA15, BASIC256, BASIC256SHA256)}


def get_security_policy(name_or_uri: Union[str, SecurityPolicy]) -> SecurityPolicy:
    """
    Look up a security policy by short name or full policy URI.

    Raises:
        ConfigurationError: If the policy is unknown
    """
    if isinstance(name_or_uri, SecurityPolicy):
        return name_or_uri
    name = str(name_or_uri)
    if name.startswith(_POLICY_URI_PREFIX):
        name = name[len(_POLICY_URI_PREFIX):]
    try:
        return SECURITY_POLICIES[name]
    except KeyError:
        raise ConfigurationError(f"Unknown security policy: {name_or_uri!r}")


class SecureChannelConfig:
    """
    File-backed configuration for one endpoint of a secure channel.

    Locates the endpoint's certificate and private key inside a configuration
    directory and carries the selected security policy.
    """

    CERTIFICATE_FILE = "certificate.pem"
    PRIVATE_KEY_FILE = "private_key.pem"

    def __init__(self, config_dir: Optional[str] = None,
                 security_policy: Union[str, SecurityPolicy] = "Basic256Sha256"):
        """
        Initialize configuration.

        Args:
            config_dir: Directory holding certificate and key. Defaults to ~/.uachannel/
            security_policy: Policy name, URI or SecurityPolicy instance

        Raises:
            ConfigurationError: If the security policy is unknown
        """
        if config_dir is None:
            config_dir = os.path.expanduser("~/.uachannel")

        self.config_dir = config_dir
        self.security_policy = get_security_policy(security_policy)

        der_path = os.path.join(config_dir, "certificate.der")
        if os.path.exists(der_path):
            self.certificate_path = der_path
        else:
            self.certificate_path = os.path.join(config_dir, self.CERTIFICATE_FILE)
        self.private_key_path = os.path.join(config_dir, self.PRIVATE_KEY_FILE)

    def derived_key_params(self) -> DerivedKeyParams:
        return self.security_policy.derived_key_params()

    def certificate_exists(self) -> bool:
        """Check if the endpoint certificate file exists."""
        return os.path.exists(self.certificate_path)

    def get_certificate(self) -> bytes:
        """
        Load the endpoint certificate as DER bytes.

        Raises:
            ConfigurationError: If the certificate cannot be loaded
        """
        from .crypto.pki import read_certificate

        if not self.certificate_exists():
            raise ConfigurationError(f"Certificate file not found: {self.certificate_path}")
        try:
            certificate = read_certificate(self.certificate_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to read certificate: {e}") from e
        if not certificate:
            raise ConfigurationError(f"No certificate found in {self.certificate_path}")
        return certificate

    def get_private_key(self) -> str:
        """
        Load the endpoint private key as PEM text.

        Raises:
            ConfigurationError: If the key file is missing or not PEM encoded
        """
        from .crypto.pki import read_key_pem

        if not os.path.exists(self.private_key_path):
            raise ConfigurationError(f"Private key file not found: {self.private_key_path}")
        try:
            return read_key_pem(self.private_key_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to read private key: {e}") from e
