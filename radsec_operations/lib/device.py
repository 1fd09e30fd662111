"""EOS device operations used by the provisioning workflow."""

from pathlib import Path

from radsec_operations.lib.config import CSRInfo
from radsec_operations.lib.eapi_client import EapiClient
from radsec_operations.lib.exceptions import DeviceCommandError, InstallError
from radsec_operations.lib.file_transfer import ScpTransfer
from radsec_operations.lib.models import DeviceIdentity, ProfileStatus

EXEC_AUTHORIZATION_LINE = "aaa authorization exec default"
NO_PROFILE_ERROR = "No specific error message"


def key_generate_command(key_name: str, algorithm: str = "rsa", bits: int = 2048) -> str:
    return f"security pki key generate {algorithm} {bits} {key_name}"


def csr_command(key_name: str, common_name: str, csr_info: CSRInfo, san_dns: str) -> str:
    return (
        f"security pki certificate generate signing-request key {key_name} parameters"
        f" common-name {common_name}"
        f" country {csr_info.country}"
        f" state {csr_info.state}"
        f" locality {csr_info.locality}"
        f" organization {csr_info.organization}"
        f" organization-unit {csr_info.organizational_unit}"
        f" subject-alternative-name dns {san_dns}"
    )


def installation_commands(
    cert_filename: str,
    ca_filename: str,
    key_name: str,
    ssl_profile: str,
    cert_location: str = "flash:",
) -> list[str]:
    """Ordered commands importing both certificates and binding the TLS profile.

    The profile lines reference the imported files, so the import commands
    must run first.
    """
    return [
        f"copy {cert_location}{cert_filename} certificate:",
        f"copy {cert_location}{ca_filename} certificate:",
        "configure",
        "management security",
        f"ssl profile {ssl_profile}",
        f"certificate {cert_filename} key {key_name}",
        f"trust certificate {ca_filename}",
        "end",
    ]


class EosDevice:
    """One Arista EOS switch reached over eAPI (commands) and scp (files)."""

    def __init__(self, host: str, eapi: EapiClient, transfer: ScpTransfer) -> None:
        self.host = host
        self.eapi = eapi
        self.transfer = transfer

    def get_identity(self) -> DeviceIdentity:
        """Read serial number, system MAC and the hostname the device reports."""
        version, hostname = self.eapi.run_commands(["show version", "show hostname"])
        try:
            return DeviceIdentity(
                serial_number=version["serialNumber"],
                mac_address=version["systemMacAddress"],
                hostname=hostname["hostname"],
                management_address=self.host,
            )
        except KeyError as e:
            raise DeviceCommandError(
                f"{self.host} did not report {e.args[0]}", stage="gather_facts"
            ) from e

    def get_running_config(self) -> str:
        (config,) = self.eapi.run_commands(["show running-config"], fmt="text")
        return config

    def generate_key(self, key_name: str, algorithm: str = "rsa", bits: int = 2048) -> None:
        """Create (or overwrite) a private key in the device key store."""
        self.eapi.run_commands([key_generate_command(key_name, algorithm, bits)], fmt="text")

    def generate_csr(self, key_name: str, common_name: str, csr_info: CSRInfo, san_dns: str) -> str:
        """Have the device sign a CSR with key_name and return it as PEM text."""
        (output,) = self.eapi.run_commands(
            [csr_command(key_name, common_name, csr_info, san_dns)], fmt="text"
        )
        if "BEGIN CERTIFICATE REQUEST" not in output:
            raise DeviceCommandError(f"{self.host} returned no CSR", stage="generate_csr")
        return output

    def put_file(self, local_path: Path, location: str, filename: str) -> str:
        return self.transfer.put(local_path, location, filename)

    def run_configuration(self, commands: list[str]) -> None:
        """Submit an ordered command batch in one request.

        Raises:
            InstallError: If the device rejects any command in the batch
        """
        try:
            self.eapi.run_commands(commands, fmt="text")
        except DeviceCommandError as e:
            raise InstallError(
                f"{self.host} rejected configuration: {e.message}", stage="configure_profile"
            ) from e

    def get_ssl_profile_status(self, profile: str) -> ProfileStatus:
        """Return the state and errors the device reports for a TLS profile."""
        (output,) = self.eapi.run_commands([f"show management security ssl profile {profile}"])
        status = (output.get("profileStatus") or {}).get(profile)
        if status is None:
            return ProfileStatus(
                name=profile, state="missing", errors=[f"SSL profile {profile} not found"]
            )
        return ProfileStatus(
            name=profile,
            state=status.get("profileState", "unknown"),
            errors=list(status.get("profileError") or []),
        )
