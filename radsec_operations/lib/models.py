"""Data models for RadSec provisioning."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict

from radsec_operations.lib.session import Session


@dataclass(frozen=True)
class DeviceTarget:
    """A device to provision, as given by the operator."""

    host: str
    name: str | None = None
    port: int = 443
    ssh_port: int = 22


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity facts read from the device once per run."""

    serial_number: str
    mac_address: str
    hostname: str
    management_address: str


@dataclass(frozen=True)
class NADRecord:
    """Identity service record for a registered network access device."""

    name: str
    serial_number: str | None = None
    mac: str | None = None
    ip_address: str | None = None

    @classmethod
    def from_api(cls, item: dict) -> "NADRecord":
        """Build a record from one entry of data.nads."""
        return cls(
            name=str(item.get("name", "")),
            serial_number=item.get("serialNumber"),
            mac=item.get("mac"),
            ip_address=item.get("ipAddress"),
        )


@dataclass(frozen=True)
class ProfileStatus:
    """TLS profile state reported by the device."""

    name: str
    state: str
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.state == "valid" and len(self.errors) == 0


class CertificateSummary(TypedDict):
    """Loggable certificate facts (no key or PEM material)."""

    serialNumber: str
    subject: str
    notBefore: str
    expiry: str


@dataclass(frozen=True)
class BatchContext:
    """Run-once artifacts shared read-only by every device in a batch.

    Contains the identity service session and the staged CA certificate.
    """

    session: Session
    ca_pem: str
    ca_path: Path


@dataclass
class DeviceResult:
    """Outcome of provisioning one device."""

    host: str
    success: bool
    stage: str
    message: str = ""
    certificate: CertificateSummary | None = None


@dataclass
class BatchResult:
    """Result from provisioning a batch of devices."""

    results: list[DeviceResult] = field(default_factory=list)

    @property
    def provisioned(self) -> list[str]:
        return [r.host for r in self.results if r.success]

    @property
    def failed(self) -> dict[str, tuple[str, str]]:
        return {r.host: (r.stage, r.message) for r in self.results if not r.success}

    @property
    def provisioned_count(self) -> int:
        return len(self.provisioned)

    @property
    def failed_count(self) -> int:
        return len(self.failed)
