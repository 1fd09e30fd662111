"""Test fixtures for radsec_operations tests."""

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from radsec_operations.lib.config import Credentials, CSRInfo, ProvisioningConfig
from radsec_operations.lib.models import DeviceIdentity

DEVICE_MAC = "aa:bb:cc:dd:ee:ff"
DEVICE_HOSTNAME = "sw01"


def _generate_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _sign_certificate(
    subject: x509.Name,
    public_key: Any,
    issuer: x509.Name,
    issuer_key: RSAPrivateKey,
    is_ca: bool,
) -> x509.Certificate:
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture
def provisioning_config(tmp_path: Path) -> ProvisioningConfig:
    """Return configuration with a temporary staging path and no retry delay."""
    return ProvisioningConfig(
        base_url="https://agni.test",
        staging_path=tmp_path / "staging",
        retry_attempts=10,
        retry_delay=0,
        max_workers=2,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(key_id="k1", key_value="v1", org_id="o1")


@pytest.fixture
def csr_info() -> CSRInfo:
    return CSRInfo(
        country="GB",
        state="London",
        locality="London",
        organization="TestOrg",
        organizational_unit="Network",
    )


@pytest.fixture
def device_identity() -> DeviceIdentity:
    return DeviceIdentity(
        serial_number="JPE12345678",
        mac_address=DEVICE_MAC,
        hostname=DEVICE_HOSTNAME,
        management_address="192.0.2.10",
    )


@pytest.fixture
def ca_key() -> RSAPrivateKey:
    """Generate RSA private key for the RadSec CA."""
    return _generate_key()


@pytest.fixture
def ca_cert(ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed RadSec CA certificate."""
    name = x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, "Test RadSec CA")])
    return _sign_certificate(name, ca_key.public_key(), name, ca_key, is_ca=True)


@pytest.fixture
def ca_pem(ca_cert: x509.Certificate) -> str:
    return ca_cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture
def device_key() -> RSAPrivateKey:
    """Generate the key the device would hold in its key store."""
    return _generate_key()


@pytest.fixture
def device_csr(device_key: RSAPrivateKey, csr_info: CSRInfo) -> x509.CertificateSigningRequest:
    """Generate the CSR an EOS device returns for the test identity."""
    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(csr_info.to_x509_name(DEVICE_MAC))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(DEVICE_HOSTNAME)]),
            critical=False,
        )
        .sign(device_key, hashes.SHA256())
    )


@pytest.fixture
def device_csr_pem(device_csr: x509.CertificateSigningRequest) -> str:
    """CSR as printed by the device, ending in a newline."""
    pem = device_csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")
    assert pem.endswith("\n")
    return pem


@pytest.fixture
def signed_cert_pem(
    device_csr: x509.CertificateSigningRequest,
    ca_cert: x509.Certificate,
    ca_key: RSAPrivateKey,
) -> str:
    """Certificate the identity service issues for the device CSR."""
    cert = _sign_certificate(
        device_csr.subject, device_csr.public_key(), ca_cert.subject, ca_key, is_ca=False
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture
def foreign_cert_pem(ca_cert: x509.Certificate, ca_key: RSAPrivateKey) -> str:
    """Certificate issued for a key the device does not hold."""
    other_key = _generate_key()
    subject = x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, DEVICE_MAC)])
    cert = _sign_certificate(subject, other_key.public_key(), ca_cert.subject, ca_key, is_ca=False)
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Return a factory for urlopen() context-manager responses."""

    def factory(status: int = 200, body: Any = None, cookies: list[str] | None = None) -> MagicMock:
        response = MagicMock()
        response.__enter__.return_value = response
        response.__exit__.return_value = False
        response.status = status
        response.read.return_value = b"" if body is None else json.dumps(body).encode("utf-8")
        response.headers.get_all.return_value = list(cookies) if cookies else None
        return response

    return factory
