"""
Shared fixtures: RSA and EC certificates generated once per test session.
"""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


def _self_signed_certificate(private_key, name="urn:uachannel:test"):
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
    return (x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=1))
            .not_valid_after(now + datetime.timedelta(days=30))
            .sign(private_key=private_key, algorithm=hashes.SHA256()))


@pytest.fixture(scope="session")
def rsa_material():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    certificate = _self_signed_certificate(private_key)
    return {
        'private_key_pem': private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii"),
        'public_key_pem': private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii"),
        'public_key_openssh': private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        ).decode("ascii"),
        'certificate': certificate,
        'certificate_pem': certificate.public_bytes(serialization.Encoding.PEM).decode("ascii"),
        'certificate_der': certificate.public_bytes(serialization.Encoding.DER),
    }


@pytest.fixture(scope="session")
def ec_certificate_der():
    private_key = ec.generate_private_key(ec.SECP256R1())
    return _self_signed_certificate(private_key).public_bytes(serialization.Encoding.DER)
