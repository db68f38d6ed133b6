"""
Configuration Tests for the uachannel secure channel layer.
"""

import pytest

from uachannel.config import (
    AsymmetricSignatureAlgorithm,
    DerivedKeyParams,
    HashVariant,
    SecureChannelConfig,
    SymmetricAlgorithm,
    get_security_policy,
)
from uachannel.crypto.keys import compute_derived_keys
from uachannel.errors import ConfigurationError


VALID = dict(
    signing_key_length=32,
    encrypting_key_length=32,
    encrypting_block_size=16,
    signature_length=32,
    algorithm="aes-256-cbc",
    hash_variant="SHA256",
)


class TestSelectors:
    """Test the closed algorithm enumerations."""

    def test_symmetric_algorithm(self):
        assert SymmetricAlgorithm.parse("AES-128-CBC") is SymmetricAlgorithm.AES_128_CBC
        assert SymmetricAlgorithm.AES_128_CBC.key_length == 16
        assert SymmetricAlgorithm.AES_256_CBC.key_length == 32
        with pytest.raises(ConfigurationError):
            SymmetricAlgorithm.parse("aes-128-gcm")

    def test_hash_variant(self):
        assert HashVariant.parse(None) is HashVariant.SHA1
        assert HashVariant.parse("sha256") is HashVariant.SHA256
        assert HashVariant.SHA1.digest_size == 20
        with pytest.raises(ConfigurationError):
            HashVariant.parse("SHA512")

    def test_asymmetric_signature_algorithm(self):
        assert AsymmetricSignatureAlgorithm.parse("rsa-sha1").hash_variant is HashVariant.SHA1
        with pytest.raises(ConfigurationError):
            AsymmetricSignatureAlgorithm.parse("ECDSA-SHA256")


class TestDerivedKeyParams:
    """Test validation of derived key parameters."""

    def test_valid_params(self):
        params = DerivedKeyParams(**VALID)
        assert params.algorithm is SymmetricAlgorithm.AES_256_CBC
        assert params.hash_variant is HashVariant.SHA256
        assert params.derived_length == 80

    def test_default_hash_variant(self):
        params = DerivedKeyParams(signing_key_length=16, encrypting_key_length=16,
                                  encrypting_block_size=16, signature_length=20)
        assert params.hash_variant is HashVariant.SHA1
        assert params.algorithm is SymmetricAlgorithm.AES_128_CBC

    @pytest.mark.parametrize("override", [
        {'signing_key_length': -1},
        {'signing_key_length': 1.5},
        {'encrypting_key_length': 16},
        {'encrypting_block_size': 8},
        {'signature_length': 20},
        {'algorithm': "des-cbc"},
        {'hash_variant': "MD5"},
    ])
    def test_invalid_params(self, override):
        with pytest.raises(ConfigurationError):
            DerivedKeyParams(**dict(VALID, **override))

    def test_from_mapping_camel_case(self):
        params = DerivedKeyParams.from_mapping({
            "signingKeyLength": 128,
            "encryptingKeyLength": 16,
            "encryptingBlockSize": 16,
            "signatureLength": 20,
            "algorithm": "aes-128-cbc",
        })
        assert params.signing_key_length == 128
        assert params.hash_variant is HashVariant.SHA1

    def test_from_mapping_unknown_key(self):
        with pytest.raises(ConfigurationError):
            DerivedKeyParams.from_mapping(dict(VALID, key_rotation=True))

    def test_from_mapping_missing_key(self):
        options = dict(VALID)
        del options['signature_length']
        with pytest.raises(ConfigurationError):
            DerivedKeyParams.from_mapping(options)

    def test_invalid_mapping_rejected_by_scheduler(self):
        with pytest.raises(ConfigurationError):
            compute_derived_keys(b"secret", b"seed", dict(VALID, algorithm="aes-192-cbc"))


class TestSecurityPolicies:
    """Test the security policy registry."""

    @pytest.mark.parametrize("name, signing, encrypting, signature, hash_variant", [
        ("Basic128Rsa15", 16, 16, 20, HashVariant.SHA1),
        ("Basic256", 24, 32, 20, HashVariant.SHA1),
        ("Basic256Sha256", 32, 32, 32, HashVariant.SHA256),
    ])
    def test_policy_params(self, name, signing, encrypting, signature, hash_variant):
        params = get_security_policy(name).derived_key_params()

        assert params.signing_key_length == signing
        assert params.encrypting_key_length == encrypting
        assert params.encrypting_block_size == 16
        assert params.signature_length == signature
        assert params.hash_variant is hash_variant

    def test_lookup_by_uri(self):
        policy = get_security_policy("http://opcfoundation.org/UA/SecurityPolicy#Basic256")
        assert policy.name == "Basic256"
        assert get_security_policy(policy) is policy

    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError):
            get_security_policy("Aes256_Sha256_RsaPss")


class TestSecureChannelConfig:
    """Test the file-backed endpoint configuration."""

    def test_missing_files(self, tmp_path):
        config = SecureChannelConfig(str(tmp_path))

        assert not config.certificate_exists()
        with pytest.raises(ConfigurationError):
            config.get_certificate()
        with pytest.raises(ConfigurationError):
            config.get_private_key()

    def test_load_certificate_and_key(self, tmp_path, rsa_material):
        key_pem = rsa_material['private_key_pem']
        (tmp_path / SecureChannelConfig.CERTIFICATE_FILE).write_text(rsa_material['certificate_pem'])
        (tmp_path / SecureChannelConfig.PRIVATE_KEY_FILE).write_text(key_pem)

        config = SecureChannelConfig(str(tmp_path), security_policy="Basic128Rsa15")

        assert config.certificate_exists()
        assert config.get_certificate() == rsa_material['certificate_der']
        assert config.get_private_key() == key_pem
        assert config.derived_key_params().signature_length == 20

    def test_der_certificate_preferred(self, tmp_path):
        (tmp_path / "certificate.der").write_bytes(b"\x30\x82")
        config = SecureChannelConfig(str(tmp_path))

        assert config.certificate_path.endswith("certificate.der")
        assert config.get_certificate() == b"\x30\x82"

    def test_private_key_not_pem(self, tmp_path):
        (tmp_path / SecureChannelConfig.PRIVATE_KEY_FILE).write_text("garbage")
        with pytest.raises(ConfigurationError):
            SecureChannelConfig(str(tmp_path)).get_private_key()

    def test_unknown_policy(self, tmp_path):
        with pytest.raises(ConfigurationError):
            SecureChannelConfig(str(tmp_path), security_policy="None")
