"""
Derived key scheduling for the OPC-UA SecureChannel.

The lengths of the keys to generate depend on the security policy:
the signing key length, the encrypting key length (implied by the symmetric
algorithm) and the encrypting block size. All three are cut, in that order,
from a single PRF stream:

    Key                      Secret       Seed         Offset
    ClientSigningKey         ServerNonce  ClientNonce  0
    ClientEncryptingKey      ServerNonce  ClientNonce  SigningKeyLength
    ClientIV                 ServerNonce  ClientNonce  SigningKeyLength + EncryptingKeyLength
    ServerSigningKey         ClientNonce  ServerNonce  0
    ServerEncryptingKey      ClientNonce  ServerNonce  SigningKeyLength
    ServerIV                 ClientNonce  ServerNonce  SigningKeyLength + EncryptingKeyLength

Client keys protect messages sent by the client, server keys protect
messages sent by the server.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Union

from ..config import DerivedKeyParams, HashVariant, SymmetricAlgorithm
from ..errors import ConfigurationError
from .prf import make_pseudo_random_buffer


@dataclass(frozen=True)
class DerivedKeySet:
    """Keys protecting one direction of a channel. Never mutated."""

    signing_key: bytes = field(repr=False)
    encrypting_key: bytes = field(repr=False)
    initialization_vector: bytes = field(repr=False)
    signing_key_length: int
    encrypting_key_length: int
    encrypting_block_size: int
    signature_length: int
    algorithm: SymmetricAlgorithm
    hash_variant: HashVariant = HashVariant.SHA1

    def __post_init__(self):
        object.__setattr__(self, 'signing_key', bytes(self.signing_key))
        object.__setattr__(self, 'encrypting_key', bytes(self.encrypting_key))
        object.__setattr__(self, 'initialization_vector', bytes(self.initialization_vector))
        object.__setattr__(self, 'algorithm', SymmetricAlgorithm.parse(self.algorithm))
        object.__setattr__(self, 'hash_variant', HashVariant.parse(self.hash_variant))

        if self.encrypting_block_size != self.algorithm.block_size:
            raise ConfigurationError(
                f"{self.algorithm.value} requires a {self.algorithm.block_size}-byte "
                f"block size, got {self.encrypting_block_size}"
            )
        if len(self.signing_key) != self.signing_key_length:
            raise ConfigurationError("Signing key does not match signing_key_length")
        if len(self.encrypting_key) != self.encrypting_key_length:
            raise ConfigurationError("Encrypting key does not match encrypting_key_length")
        if len(self.initialization_vector) != self.encrypting_block_size:
            raise ConfigurationError("Initialization vector does not match encrypting_block_size")


class ChannelKeyPair(NamedTuple):
    """Both directions of one channel."""

    client: DerivedKeySet
    server: DerivedKeySet


def _as_params(params: Union[DerivedKeyParams, Mapping[str, Any]]) -> DerivedKeyParams:
    if isinstance(params, DerivedKeyParams):
        return params
    if isinstance(params, Mapping):
        return DerivedKeyParams.from_mapping(params)
    raise ConfigurationError(f"Expected DerivedKeyParams or a mapping, got {type(params).__name__}")


def compute_derived_keys(secret: bytes, seed: bytes,
                         params: Union[DerivedKeyParams, Mapping[str, Any]]) -> DerivedKeySet:
    """
    Derive the signing key, encrypting key and IV for one direction.

    Args:
        secret: PRF secret
        seed: PRF seed
        params: DerivedKeyParams, or a dict of the same options

    Returns:
        DerivedKeySet whose key lengths match the declared lengths

    Raises:
        ConfigurationError: If the parameters are invalid
    """
    params = _as_params(params)

    offset1 = params.signing_key_length
    offset2 = offset1 + params.encrypting_key_length
    offset3 = offset2 + params.encrypting_block_size

    buf = make_pseudo_random_buffer(secret, seed, offset3, params.hash_variant)

    return DerivedKeySet(
        signing_key=buf[0:offset1],
        encrypting_key=buf[offset1:offset2],
        initialization_vector=buf[offset2:offset3],
        signing_key_length=params.signing_key_length,
        encrypting_key_length=params.encrypting_key_length,
        encrypting_block_size=params.encrypting_block_size,
        signature_length=params.signature_length,
        algorithm=params.algorithm,
        hash_variant=params.hash_variant,
    )


def derive_channel_keys(client_nonce: bytes, server_nonce: bytes,
                        params: Union[DerivedKeyParams, Mapping[str, Any]]) -> ChannelKeyPair:
    """
    Derive the client and server key sets from the exchanged nonces.

    Returns:
        ChannelKeyPair(client, server)
    """
    params = _as_params(params)
    if not client_nonce or not server_nonce:
        raise ConfigurationError("Both nonces are required to derive channel keys")

    return ChannelKeyPair(
        client=compute_derived_keys(server_nonce, client_nonce, params),
        server=compute_derived_keys(client_nonce, server_nonce, params),
    )
