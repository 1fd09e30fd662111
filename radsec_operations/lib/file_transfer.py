"""Secure copy of staged files onto a device."""

import subprocess
from pathlib import Path

from radsec_operations.lib.exceptions import InstallError

EOS_FLASH_PREFIX = "flash:"
EOS_FLASH_MOUNT = "/mnt/flash"


def device_path(location: str, filename: str) -> str:
    """Translate an EOS file system location (e.g. ``flash:``) to a remote path."""
    if location.startswith(EOS_FLASH_PREFIX):
        subdir = location[len(EOS_FLASH_PREFIX) :].strip("/")
        base = f"{EOS_FLASH_MOUNT}/{subdir}" if subdir else EOS_FLASH_MOUNT
    else:
        base = location.rstrip("/")
    return f"{base}/{filename}"


class ScpTransfer:
    """Push files to a device with the OpenSSH scp client.

    Runs in batch mode, so the device must accept key-based login for the
    management user. EOS only allows scp when exec authorization is
    configured.
    """

    def __init__(
        self,
        host: str,
        username: str,
        port: int = 22,
        identity_file: Path | None = None,
        timeout: int = 60,
    ) -> None:
        self.host = host
        self.username = username
        self.port = port
        self.identity_file = identity_file
        self.timeout = timeout

    def command(self, local_path: Path, remote_path: str) -> list[str]:
        cmd = [
            "scp",
            "-q",
            "-P",
            str(self.port),
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={self.timeout}",
        ]
        if self.identity_file:
            cmd += ["-i", str(self.identity_file)]
        cmd += [str(local_path), f"{self.username}@{self.host}:{remote_path}"]
        return cmd

    def put(self, local_path: Path, location: str, filename: str) -> str:
        """Copy local_path to ``location/filename`` on the device.

        Args:
            local_path: Staged file on the control host
            location: EOS location such as ``flash:``
            filename: Destination file name

        Returns:
            Remote path written

        Raises:
            InstallError: If scp fails or times out
        """
        remote_path = device_path(location, filename)
        try:
            completed = subprocess.run(
                self.command(local_path, remote_path),
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise InstallError(
                f"scp of {filename} to {self.host} timed out", stage="transfer"
            ) from e
        except FileNotFoundError as e:
            raise InstallError("scp client not found on control host", stage="transfer") from e

        if completed.returncode != 0:
            detail = completed.stderr.strip() or f"exit code {completed.returncode}"
            raise InstallError(
                f"scp of {filename} to {self.host} failed: {detail}", stage="transfer"
            )
        return remote_path
