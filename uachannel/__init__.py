"""
uachannel: OPC-UA SecureChannel symmetric crypto layer.

Derives per-direction signing keys, encrypting keys and IVs from the nonces
exchanged during the OpenSecureChannel handshake, and signs, pads and
encrypts message chunks with them.

Basic Usage:
    >>> from uachannel import SecureChannelKeys
    >>> from uachannel.crypto.utils import generate_nonce
    >>>
    >>> client_nonce, server_nonce = generate_nonce(), generate_nonce()
    >>> client = SecureChannelKeys(client_nonce, server_nonce, "Basic256Sha256", role="client")
    >>> server = SecureChannelKeys(client_nonce, server_nonce, "Basic256Sha256", role="server")
    >>>
    >>> chunk = client.protect(b"Hello, server!")
    >>> server.unprotect(chunk)
    (b'Hello, server!', True)
"""

__version__ = "0.1.0"

from .errors import UAChannelError, ConfigurationError, ProtocolViolationError
from .config import (
    SymmetricAlgorithm,
    HashVariant,
    AsymmetricSignatureAlgorithm,
    DerivedKeyParams,
    SecurityPolicy,
    SecureChannelConfig,
    get_security_policy,
)
from .crypto.prf import make_pseudo_random_buffer
from .crypto.keys import DerivedKeySet, ChannelKeyPair, compute_derived_keys, derive_channel_keys
from .protocol.chunk import ChunkAuthenticationError, ChunkProtector, protect_chunk, unprotect_chunk


class SecureChannelKeys:
    """
    Both key sets of one channel, seen from one endpoint.

    Outgoing chunks are protected with this endpoint's own key set; incoming
    chunks are checked with the peer's.
    """

    ROLES = ("client", "server")

    def __init__(self, client_nonce: bytes, server_nonce: bytes,
                 security_policy="Basic256Sha256", role: str = "client"):
        """
        Initialize channel keys.

        Args:
            client_nonce: Nonce sent by the client
            server_nonce: Nonce sent by the server
            security_policy: Policy name, URI or SecurityPolicy
            role: "client" or "server"

        Raises:
            ConfigurationError: If the role or policy is invalid
        """
        if role not in self.ROLES:
            raise ConfigurationError(f"Role must be 'client' or 'server', got {role!r}")

        self.role = role
        self.security_policy = get_security_policy(security_policy)
        self.keys = derive_channel_keys(
            client_nonce, server_nonce, self.security_policy.derived_key_params()
        )

        local, remote = (self.keys.client, self.keys.server) if role == "client" \
            else (self.keys.server, self.keys.client)
        self.sender = ChunkProtector(local)
        self.receiver = ChunkProtector(remote)

    def protect(self, plaintext: bytes) -> bytes:
        """Protect a chunk sent by this endpoint."""
        return self.sender.protect(plaintext)

    def unprotect(self, ciphertext: bytes):
        """Unprotect a chunk sent by the peer. Returns (plaintext, authentic)."""
        return self.receiver.unprotect(ciphertext)

    def get_info(self) -> dict:
        """Get information about this channel endpoint."""
        return {
            'role': self.role,
            'security_policy': self.security_policy.uri,
            'sent': self.sender.get_stats(),
            'received': self.receiver.get_stats(),
        }


__all__ = [
    '__version__',

    # High-level interface
    'SecureChannelKeys',

    # Errors
    'UAChannelError',
    'ConfigurationError',
    'ProtocolViolationError',
    'ChunkAuthenticationError',

    # Configuration
    'SymmetricAlgorithm',
    'HashVariant',
    'AsymmetricSignatureAlgorithm',
    'DerivedKeyParams',
    'SecurityPolicy',
    'SecureChannelConfig',
    'get_security_policy',

    # Key derivation
    'make_pseudo_random_buffer',
    'DerivedKeySet',
    'ChannelKeyPair',
    'compute_derived_keys',
    'derive_channel_keys',

    # Chunk protection
    'ChunkProtector',
    'protect_chunk',
    'unprotect_chunk',
]
