"""Certificate and CSR helpers for checking material that passes through the control host."""

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from radsec_operations.lib.models import CertificateSummary


def strip_trailing_newlines(pem: str) -> str:
    """Remove trailing newlines from PEM text.

    The enrollment endpoint rejects a CSR that ends in a newline. Stripping
    every trailing newline keeps the operation idempotent.
    """
    return pem.rstrip("\r\n")


def deserialize_certificate(pem_data: str | bytes) -> x509.Certificate:
    """Deserialize certificate from PEM text."""
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")
    return x509.load_pem_x509_certificate(pem_data)


def deserialize_csr(pem_data: str | bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM text."""
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")
    return x509.load_pem_x509_csr(pem_data)


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except Exception:
        return False


def get_csr_common_name(csr: x509.CertificateSigningRequest) -> str | None:
    """Return the CSR subject CN, or None when absent."""
    attributes = csr.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8")


def public_keys_match(cert: x509.Certificate, csr: x509.CertificateSigningRequest) -> bool:
    """True when the certificate was issued for the CSR's key pair."""
    fmt = serialization.PublicFormat.SubjectPublicKeyInfo
    encoding = serialization.Encoding.DER
    cert_key = cert.public_key().public_bytes(encoding, fmt)
    return cert_key == csr.public_key().public_bytes(encoding, fmt)


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def summarize_certificate(cert: x509.Certificate) -> CertificateSummary:
    """Extract loggable facts from a certificate.

    Args:
        cert: X.509 certificate

    Returns:
        CertificateSummary with serial number, subject and validity window
    """
    return CertificateSummary(
        serialNumber=get_certificate_serial_hex(cert),
        subject=cert.subject.rfc4514_string(),
        notBefore=cert.not_valid_before_utc.isoformat(),
        expiry=cert.not_valid_after_utc.isoformat(),
    )
