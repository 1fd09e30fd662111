"""Tests for EOS device operations."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from radsec_operations.lib.config import CSRInfo
from radsec_operations.lib.device import (
    EosDevice,
    csr_command,
    installation_commands,
    key_generate_command,
)
from radsec_operations.lib.exceptions import DeviceCommandError, InstallError

CSR_TEXT = "-----BEGIN CERTIFICATE REQUEST-----\nMIIC\n-----END CERTIFICATE REQUEST-----\n"


@pytest.fixture
def eapi() -> MagicMock:
    return MagicMock()


@pytest.fixture
def transfer() -> MagicMock:
    return MagicMock()


@pytest.fixture
def device(eapi: MagicMock, transfer: MagicMock) -> EosDevice:
    return EosDevice("192.0.2.10", eapi, transfer)


class TestCommands:
    """Tests for command builders."""

    def test_key_generate_command(self) -> None:
        assert key_generate_command("agni.key") == "security pki key generate rsa 2048 agni.key"

    def test_csr_command(self, csr_info: CSRInfo) -> None:
        command = csr_command("agni.key", "aa:bb:cc", csr_info, "sw01")
        assert command == (
            "security pki certificate generate signing-request key agni.key parameters"
            " common-name aa:bb:cc country GB state London locality London"
            " organization TestOrg organization-unit Network"
            " subject-alternative-name dns sw01"
        )

    def test_installation_commands_import_before_binding(self) -> None:
        """Certificates are imported before the profile references them."""
        commands = installation_commands(
            "sw01.crt", "agni_radsec_ca.crt", "agni.key", "AGNI_RADSEC"
        )

        assert commands == [
            "copy flash:sw01.crt certificate:",
            "copy flash:agni_radsec_ca.crt certificate:",
            "configure",
            "management security",
            "ssl profile AGNI_RADSEC",
            "certificate sw01.crt key agni.key",
            "trust certificate agni_radsec_ca.crt",
            "end",
        ]


class TestEosDevice:
    """Tests for EosDevice."""

    def test_get_identity(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [
            {"serialNumber": "JPE1", "systemMacAddress": "aa:bb:cc:dd:ee:ff"},
            {"hostname": "sw01", "fqdn": "sw01.example.net"},
        ]

        identity = device.get_identity()

        assert identity.serial_number == "JPE1"
        assert identity.mac_address == "aa:bb:cc:dd:ee:ff"
        assert identity.hostname == "sw01"
        assert identity.management_address == "192.0.2.10"
        eapi.run_commands.assert_called_once_with(["show version", "show hostname"])

    def test_get_identity_keeps_reported_hostname(self, device: EosDevice, eapi: MagicMock) -> None:
        """The hostname is always the one the device reports, never an inventory name."""
        eapi.run_commands.return_value = [
            {"serialNumber": "JPE1", "systemMacAddress": "aa:bb:cc:dd:ee:ff"},
            {"hostname": "sw01"},
        ]

        assert device.get_identity().hostname == "sw01"

    def test_get_identity_missing_fact(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [{"serialNumber": "JPE1"}, {"hostname": "sw01"}]

        with pytest.raises(DeviceCommandError, match="systemMacAddress"):
            device.get_identity()

    def test_get_running_config(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = ["hostname sw01\n"]

        assert device.get_running_config() == "hostname sw01\n"
        eapi.run_commands.assert_called_once_with(["show running-config"], fmt="text")

    def test_generate_key(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [""]

        device.generate_key("agni.key")

        eapi.run_commands.assert_called_once_with(
            ["security pki key generate rsa 2048 agni.key"], fmt="text"
        )

    def test_generate_key_rejected(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.side_effect = DeviceCommandError("% Invalid input")

        with pytest.raises(DeviceCommandError):
            device.generate_key("agni.key")

    def test_generate_csr_returns_output_unchanged(
        self, device: EosDevice, eapi: MagicMock, csr_info: CSRInfo
    ) -> None:
        """The device output is returned as-is; stripping is the caller's job."""
        eapi.run_commands.return_value = [CSR_TEXT]

        assert device.generate_csr("agni.key", "aa:bb:cc", csr_info, "sw01") == CSR_TEXT

    def test_generate_csr_without_pem_fails(
        self, device: EosDevice, eapi: MagicMock, csr_info: CSRInfo
    ) -> None:
        eapi.run_commands.return_value = ["% Key agni.key not found\n"]

        with pytest.raises(DeviceCommandError, match="no CSR"):
            device.generate_csr("agni.key", "aa:bb:cc", csr_info, "sw01")

    def test_put_file_delegates_to_transfer(
        self, device: EosDevice, transfer: MagicMock, tmp_path: Path
    ) -> None:
        transfer.put.return_value = "/mnt/flash/ca.crt"

        assert device.put_file(tmp_path / "ca.crt", "flash:", "ca.crt") == "/mnt/flash/ca.crt"
        transfer.put.assert_called_once_with(tmp_path / "ca.crt", "flash:", "ca.crt")

    def test_run_configuration_sends_one_batch(self, device: EosDevice, eapi: MagicMock) -> None:
        commands = installation_commands("sw01.crt", "ca.crt", "agni.key", "AGNI_RADSEC")
        eapi.run_commands.return_value = [""] * len(commands)

        device.run_configuration(commands)

        eapi.run_commands.assert_called_once_with(commands, fmt="text")

    def test_run_configuration_failure_is_install_error(
        self, device: EosDevice, eapi: MagicMock
    ) -> None:
        eapi.run_commands.side_effect = DeviceCommandError(
            "CLI command 6 of 9 failed: certificate not found"
        )

        with pytest.raises(InstallError, match="certificate not found"):
            device.run_configuration(["configure"])

    def test_ssl_profile_status_valid(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [
            {"profileStatus": {"AGNI_RADSEC": {"profileState": "valid", "profileError": []}}}
        ]

        status = device.get_ssl_profile_status("AGNI_RADSEC")

        assert status.is_valid
        eapi.run_commands.assert_called_once_with(
            ["show management security ssl profile AGNI_RADSEC"]
        )

    def test_ssl_profile_status_invalid(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [
            {
                "profileStatus": {
                    "AGNI_RADSEC": {
                        "profileState": "invalid",
                        "profileError": ["Certificate 'sw01.crt' does not exist"],
                    }
                }
            }
        ]

        status = device.get_ssl_profile_status("AGNI_RADSEC")

        assert not status.is_valid
        assert status.errors == ["Certificate 'sw01.crt' does not exist"]

    def test_ssl_profile_missing(self, device: EosDevice, eapi: MagicMock) -> None:
        eapi.run_commands.return_value = [{"profileStatus": {}}]

        status = device.get_ssl_profile_status("AGNI_RADSEC")

        assert status.state == "missing"
        assert not status.is_valid
