"""Provisioning configuration dataclasses."""

import os
from dataclasses import dataclass, fields
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

from radsec_operations.lib.exceptions import ConfigurationError

ENV_KEY_ID = "AGNI_KEY_ID"
ENV_KEY_VALUE = "AGNI_KEY_VALUE"
ENV_ORG_ID = "AGNI_ORG_ID"
ENV_EOS_USERNAME = "EOS_USERNAME"
ENV_EOS_PASSWORD = "EOS_PASSWORD"


@dataclass(frozen=True)
class ProvisioningConfig:
    """Provisioning settings shared by every device in a batch."""

    base_url: str = "https://agni.arista.io"
    staging_path: Path = Path("/tmp")
    ca_certificate_name: str = "agni_radsec_ca"
    ca_certificate_format: str = "crt"
    ssl_profile: str = "AGNI_RADSEC"
    private_key_name: str = "agni.key"
    device_cert_path: str = "flash:"
    vendor: str = "arista-switch"
    retry_attempts: int = 10
    retry_delay: float = 2.0
    http_timeout: int = 30
    max_workers: int = 4

    @property
    def ca_filename(self) -> str:
        """File name of the CA certificate, both staged and on the device."""
        return f"{self.ca_certificate_name}.{self.ca_certificate_format}"


@dataclass(frozen=True)
class Credentials:
    """Identity service API key and organisation."""

    key_id: str
    key_value: str
    org_id: str

    def __repr__(self) -> str:
        return f"Credentials(key_id={self.key_id!r}, key_value='***', org_id={self.org_id!r})"


@dataclass(frozen=True)
class CSRInfo:
    """Operator-supplied CSR subject fields (common name comes from the device)."""

    country: str
    state: str
    locality: str
    organization: str
    organizational_unit: str

    def to_x509_name(self, common_name: str) -> x509.Name:
        """Expected subject for a CSR issued with these fields and common_name."""
        return x509.Name(
            [
                x509.NameAttribute(oid.NameOID.COUNTRY_NAME, self.country),
                x509.NameAttribute(oid.NameOID.STATE_OR_PROVINCE_NAME, self.state),
                x509.NameAttribute(oid.NameOID.LOCALITY_NAME, self.locality),
                x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
                x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
                x509.NameAttribute(oid.NameOID.COMMON_NAME, common_name),
            ]
        )


@dataclass(frozen=True)
class DeviceCredentials:
    """Management login used for eAPI and scp."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"DeviceCredentials(username={self.username!r}, password='***')"


def load_credentials_from_env(environ: dict[str, str] | None = None) -> Credentials:
    """Read identity service credentials from AGNI_* environment variables.

    Empty values are returned as-is; the precondition check rejects them.
    """
    env = os.environ if environ is None else environ
    return Credentials(
        key_id=env.get(ENV_KEY_ID, ""),
        key_value=env.get(ENV_KEY_VALUE, ""),
        org_id=env.get(ENV_ORG_ID, ""),
    )


def load_device_credentials(environ: dict[str, str] | None = None) -> DeviceCredentials:
    """Read device management login from EOS_USERNAME / EOS_PASSWORD.

    Raises:
        ConfigurationError: If the username is not set
    """
    env = os.environ if environ is None else environ
    username = env.get(ENV_EOS_USERNAME, "")
    if not username:
        raise ConfigurationError(f"{ENV_EOS_USERNAME} is not set")
    return DeviceCredentials(username=username, password=env.get(ENV_EOS_PASSWORD, ""))


def empty_fields(obj: Credentials | CSRInfo) -> list[str]:
    """Names of dataclass fields holding empty strings."""
    return [f.name for f in fields(obj) if not str(getattr(obj, f.name)).strip()]
