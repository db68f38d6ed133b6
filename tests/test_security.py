"""
Security Tests for the uachannel secure channel layer.

Tests tamper detection, signature forgery resistance, key separation and the
documented IV-per-key-set behaviour.
"""

import os

import pytest

from uachannel.crypto import signature as signature_module
from uachannel.crypto.keys import compute_derived_keys, derive_channel_keys
from uachannel.crypto.prf import make_pseudo_random_buffer
from uachannel.crypto.signature import (
    make_message_chunk_signature_with_derived_keys,
    verify_chunk_signature_with_derived_keys,
)
from uachannel.crypto.utils import constant_time_compare, generate_nonce
from uachannel.config import get_security_policy
from uachannel.protocol.chunk import ChunkAuthenticationError, ChunkProtector, protect_chunk, unprotect_chunk


PARAMS = get_security_policy("Basic256Sha256").derived_key_params()
MESSAGE = b"OPC UA chunk body " * 40


def _channel_keys(params=PARAMS):
    return derive_channel_keys(generate_nonce(), generate_nonce(), params)


class TestTamperDetection:
    """Test that modified chunks are rejected."""

    @pytest.mark.parametrize("policy", ["Basic128Rsa15", "Basic256", "Basic256Sha256"])
    def test_single_byte_corruption(self, policy):
        """Flip one ciphertext byte at a time and expect rejection."""
        keys = _channel_keys(get_security_policy(policy).derived_key_params()).client
        ciphertext = protect_chunk(MESSAGE, keys)

        positions = [0, 1, 15, 16, 31, len(ciphertext) // 2,
                     len(ciphertext) - 33, len(ciphertext) - 17,
                     len(ciphertext) - 16, len(ciphertext) - 2, len(ciphertext) - 1]
        for position in positions:
            corrupted = bytearray(ciphertext)
            corrupted[position] ^= 0xFF
            _, authentic = unprotect_chunk(bytes(corrupted), keys)
            assert authentic is False, f"Corruption at byte {position} not detected"

    @pytest.mark.parametrize("policy", ["Basic128Rsa15", "Basic256", "Basic256Sha256"])
    def test_short_chunk_every_byte_corrupted(self, policy):
        """Corrupted short chunks are rejected without raising, whatever the pad byte decrypts to."""
        keys = _channel_keys(get_security_policy(policy).derived_key_params()).client

        for size in range(0, 41):
            ciphertext = protect_chunk(os.urandom(size), keys)
            for position in range(len(ciphertext)):
                corrupted = bytearray(ciphertext)
                corrupted[position] ^= 0xFF
                _, authentic = unprotect_chunk(bytes(corrupted), keys)
                assert authentic is False, f"Corruption at byte {position} of a {size}-byte chunk not detected"

    def test_bad_pad_length_returns_empty_plaintext(self):
        """A pad length that swallows the signature yields no plaintext."""
        keys = _channel_keys().client
        ciphertext = protect_chunk(b"ReadRequest", keys)
        assert len(ciphertext) == 48

        # in CBC, flipping bits of the second-to-last block flips the same
        # bits of the last plaintext byte, which is the pad length byte
        for value in range(1, 256):
            corrupted = bytearray(ciphertext)
            corrupted[-17] ^= value
            plaintext, authentic = unprotect_chunk(bytes(corrupted), keys)

            assert authentic is False
            if (4 ^ value) >= 16:
                assert plaintext == b""

    def test_short_chunk_unprotect_or_raise(self):
        keys = _channel_keys().client
        protector = ChunkProtector(keys)
        ciphertext = bytearray(protector.protect(b"ReadRequest"))
        ciphertext[-1] ^= 0x01

        with pytest.raises(ChunkAuthenticationError):
            protector.unprotect_or_raise(bytes(ciphertext))
        assert protector.get_stats()['chunks_rejected'] == 1

    def test_every_byte_of_signed_message(self):
        """Mutating any single byte of a signed message breaks verification."""
        keys = _channel_keys().server
        message = b"Hello, SecureChannel!"
        signed = message + make_message_chunk_signature_with_derived_keys(message, keys)

        for position in range(len(signed)):
            mutated = bytearray(signed)
            mutated[position] ^= 0x01
            assert verify_chunk_signature_with_derived_keys(bytes(mutated), keys) is False

    def test_truncated_chunk_rejected(self):
        keys = _channel_keys().client
        ciphertext = protect_chunk(MESSAGE, keys)

        _, authentic = unprotect_chunk(ciphertext[16:], keys)
        assert authentic is False

    def test_unprotect_or_raise(self):
        keys = _channel_keys().client
        protector = ChunkProtector(keys)
        ciphertext = bytearray(protector.protect(MESSAGE))
        assert protector.unprotect_or_raise(bytes(ciphertext)) == MESSAGE

        ciphertext[5] ^= 0x10
        with pytest.raises(ChunkAuthenticationError):
            protector.unprotect_or_raise(bytes(ciphertext))

        stats = protector.get_stats()
        assert stats['chunks_protected'] == 1
        assert stats['chunks_rejected'] == 1


class TestKeySeparation:
    """Test that keys of different channels and directions are unrelated."""

    def test_wrong_direction_rejected(self):
        pair = _channel_keys()
        ciphertext = protect_chunk(MESSAGE, pair.client)

        _, authentic = unprotect_chunk(ciphertext, pair.server)
        assert authentic is False

    def test_other_channel_rejected(self):
        ciphertext = protect_chunk(MESSAGE, _channel_keys().client)

        _, authentic = unprotect_chunk(ciphertext, _channel_keys().client)
        assert authentic is False

    def test_signature_depends_on_key(self):
        keys1 = _channel_keys().client
        keys2 = _channel_keys().client

        sig1 = make_message_chunk_signature_with_derived_keys(MESSAGE, keys1)
        sig2 = make_message_chunk_signature_with_derived_keys(MESSAGE, keys2)
        assert sig1 != sig2

    def test_key_distribution(self):
        """Test that derived key material appears random."""
        all_bytes = b"".join(
            make_pseudo_random_buffer(os.urandom(32), os.urandom(32), 176, "SHA256")
            for _ in range(100)
        )

        byte_counts = [0] * 256
        for byte in all_bytes:
            byte_counts[byte] += 1

        expected = len(all_bytes) / 256
        chi_square = sum((count - expected) ** 2 / expected for count in byte_counts)

        # Critical value for 255 degrees of freedom at 99% confidence is ~310
        assert chi_square < 400, f"Key distribution not random enough: χ² = {chi_square}"

    def test_avalanche_effect(self):
        """Flipping one bit of the secret changes about half the output bits."""
        secret1 = os.urandom(32)
        secret2 = bytearray(secret1)
        secret2[0] ^= 0x01
        seed = os.urandom(32)

        out1 = make_pseudo_random_buffer(secret1, seed, 256)
        out2 = make_pseudo_random_buffer(bytes(secret2), seed, 256)

        diff = sum(bin(a ^ b).count('1') for a, b in zip(out1, out2))
        ratio = diff / (len(out1) * 8)
        assert 0.4 < ratio < 0.6, f"Poor avalanche effect: {ratio:.3f}"


class TestLegacyIVBehaviour:
    """The IV is fixed per key set; these tests pin that wire behaviour."""

    def test_identical_chunks_identical_ciphertext(self):
        keys = _channel_keys().client

        assert protect_chunk(MESSAGE, keys) == protect_chunk(MESSAGE, keys)

    def test_chunks_processed_in_any_order(self):
        keys = _channel_keys().server
        messages = [f"chunk {i}".encode() * (i + 1) for i in range(5)]
        ciphertexts = [protect_chunk(m, keys) for m in messages]

        for index in reversed(range(5)):
            assert unprotect_chunk(ciphertexts[index], keys) == (messages[index], True)


class TestSidechannelResistance:
    """Test resistance to timing side channels."""

    def test_constant_time_compare(self):
        data = os.urandom(32)
        assert constant_time_compare(data, bytes(data))
        assert not constant_time_compare(data, os.urandom(32))
        assert not constant_time_compare(data, data[:-1])

    def test_verification_uses_constant_time_compare(self, monkeypatch):
        """Signature checks must go through the constant-time comparison."""
        calls = []

        def recording_compare(a, b):
            calls.append((a, b))
            return constant_time_compare(a, b)

        monkeypatch.setattr(signature_module, "constant_time_compare", recording_compare)

        keys = _channel_keys().client
        signed = MESSAGE + make_message_chunk_signature_with_derived_keys(MESSAGE, keys)
        assert verify_chunk_signature_with_derived_keys(signed, keys) is True
        assert len(calls) == 1
