"""
Cryptographic primitives for the uachannel secure channel layer.

This module provides the core cryptographic functions including:
- P_HASH pseudo-random function
- Derived key scheduling
- Padding footer computation
- AES-CBC chunk encryption
- HMAC and RSA chunk signatures
"""

from .prf import make_pseudo_random_buffer
from .keys import DerivedKeySet, ChannelKeyPair, compute_derived_keys, derive_channel_keys
from .padding import compute_padding_footer, remove_padding, reduce_length
from .cipher import encrypt_buffer_with_derived_keys, decrypt_buffer_with_derived_keys
from .signature import (
    make_message_chunk_signature_with_derived_keys,
    verify_chunk_signature_with_derived_keys,
    make_chunk_signature,
    verify_chunk_signature,
)

__all__ = [
    'make_pseudo_random_buffer',
    'DerivedKeySet',
    'ChannelKeyPair',
    'compute_derived_keys',
    'derive_channel_keys',
    'compute_padding_footer',
    'remove_padding',
    'reduce_length',
    'encrypt_buffer_with_derived_keys',
    'decrypt_buffer_with_derived_keys',
    'make_message_chunk_signature_with_derived_keys',
    'verify_chunk_signature_with_derived_keys',
    'make_chunk_signature',
    'verify_chunk_signature',
]
