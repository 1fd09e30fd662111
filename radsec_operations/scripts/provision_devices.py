#!/usr/bin/env python3
"""Provision AGNI RadSec client certificates onto Arista EOS switches."""

import argparse
import json
import sys
import threading
import time
from pathlib import Path

from radsec_operations.lib.config import (
    Credentials,
    CSRInfo,
    DeviceCredentials,
    ProvisioningConfig,
    load_credentials_from_env,
    load_device_credentials,
)
from radsec_operations.lib.device import EosDevice
from radsec_operations.lib.eapi_client import EapiClient
from radsec_operations.lib.exceptions import ConfigurationError, ProvisioningError
from radsec_operations.lib.file_transfer import ScpTransfer
from radsec_operations.lib.identity_client import IdentityServiceClient
from radsec_operations.lib.logging_config import LOGGER
from radsec_operations.lib.models import DeviceTarget
from radsec_operations.lib.ssm_client import SSMClient
from radsec_operations.lib.workflow import RadSecProvisioner

ENVIRONMENTS = ["sandbox", "staging", "uat", "production"]
PROJECT_NAME = "radsec"


def load_inventory(path: Path) -> list[DeviceTarget]:
    """Read device targets from a JSON inventory file.

    Accepts a list of host strings or of objects with ``host`` and optional
    ``name``, ``port`` and ``ssh_port`` keys.

    Raises:
        ConfigurationError: If the file is not a valid inventory
    """
    try:
        entries = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read inventory {path}: {e}") from e
    if not isinstance(entries, list):
        raise ConfigurationError(f"Inventory {path} must contain a JSON list")

    targets = []
    for entry in entries:
        if isinstance(entry, str):
            targets.append(DeviceTarget(host=entry))
        elif isinstance(entry, dict) and entry.get("host"):
            targets.append(
                DeviceTarget(
                    host=entry["host"],
                    name=entry.get("name"),
                    port=int(entry.get("port", 443)),
                    ssh_port=int(entry.get("ssh_port", 22)),
                )
            )
        else:
            raise ConfigurationError(f"Invalid inventory entry: {entry!r}")
    return targets


def build_device_factory(
    device_credentials: DeviceCredentials,
    identity_file: Path | None,
    verify_tls: bool,
):
    """Return a factory creating EosDevice instances for targets."""

    def factory(target: DeviceTarget) -> EosDevice:
        eapi = EapiClient(
            target.host,
            device_credentials,
            port=target.port,
            verify_tls=verify_tls,
        )
        transfer = ScpTransfer(
            target.host,
            device_credentials.username,
            port=target.ssh_port,
            identity_file=identity_file,
        )
        return EosDevice(target.host, eapi, transfer)

    return factory


def resolve_credentials(args: argparse.Namespace) -> Credentials:
    if args.credentials_source == "ssm":
        ssm_client = SSMClient(region=args.region)
        return ssm_client.get_agni_credentials(args.project_name, args.environment)
    return load_credentials_from_env()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    defaults = ProvisioningConfig()
    parser = argparse.ArgumentParser(
        description="Provision AGNI RadSec certificates onto EOS switches"
    )
    parser.add_argument(
        "--device", action="append", default=[], help="Device management address (repeatable)"
    )
    parser.add_argument("--inventory", type=Path, help="JSON inventory file of devices")
    parser.add_argument(
        "--base-url",
        default=defaults.base_url,
        help=f"AGNI base URL (default: {defaults.base_url})",
    )
    parser.add_argument(
        "--staging-path",
        type=Path,
        default=defaults.staging_path,
        help=f"Local staging directory (default: {defaults.staging_path})",
    )
    parser.add_argument(
        "--ca-name", default=defaults.ca_certificate_name, help="CA certificate file name"
    )
    parser.add_argument(
        "--ca-format", default=defaults.ca_certificate_format, help="CA certificate file extension"
    )
    parser.add_argument("--ssl-profile", default=defaults.ssl_profile, help="EOS SSL profile name")
    parser.add_argument(
        "--private-key", default=defaults.private_key_name, help="EOS private key name"
    )
    parser.add_argument(
        "--cert-path", default=defaults.device_cert_path, help="Device location for certificates"
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=defaults.max_workers,
        help="Devices provisioned in parallel",
    )
    parser.add_argument("--retry-attempts", type=int, default=defaults.retry_attempts)
    parser.add_argument("--retry-delay", type=float, default=defaults.retry_delay)
    parser.add_argument(
        "--timeout", type=float, help="Overall deadline in seconds for identity service retries"
    )
    parser.add_argument("--csr-country", default="")
    parser.add_argument("--csr-state", default="")
    parser.add_argument("--csr-locality", default="")
    parser.add_argument("--csr-organization", default="")
    parser.add_argument("--csr-organizational-unit", default="")
    parser.add_argument(
        "--credentials-source",
        choices=["env", "ssm"],
        default="env",
        help="Read AGNI credentials from AGNI_* variables or SSM Parameter Store",
    )
    parser.add_argument(
        "--project-name", default=PROJECT_NAME, help=f"SSM project prefix (default: {PROJECT_NAME})"
    )
    parser.add_argument("--environment", choices=ENVIRONMENTS, default="production")
    parser.add_argument("--region", default="eu-west-2", help="AWS region for SSM")
    parser.add_argument("--ssh-identity", type=Path, help="SSH private key for scp")
    parser.add_argument(
        "--insecure", action="store_true", help="Skip eAPI TLS certificate verification"
    )
    args = parser.parse_args(argv)

    if not args.device and not args.inventory:
        parser.error("one of --device or --inventory is required")
    return args


def main(argv: list[str] | None = None) -> int:
    """Provision every requested device.

    Returns:
        Exit code (0 when every device is provisioned, 1 otherwise,
        including an interrupted run)
    """
    args = parse_args(argv)

    config = ProvisioningConfig(
        base_url=args.base_url,
        staging_path=args.staging_path,
        ca_certificate_name=args.ca_name,
        ca_certificate_format=args.ca_format,
        ssl_profile=args.ssl_profile,
        private_key_name=args.private_key,
        device_cert_path=args.cert_path,
        retry_attempts=args.retry_attempts,
        retry_delay=args.retry_delay,
        max_workers=args.max_workers,
    )
    csr_info = CSRInfo(
        country=args.csr_country,
        state=args.csr_state,
        locality=args.csr_locality,
        organization=args.csr_organization,
        organizational_unit=args.csr_organizational_unit,
    )

    try:
        targets = [DeviceTarget(host=host) for host in args.device]
        if args.inventory:
            targets.extend(load_inventory(args.inventory))

        credentials = resolve_credentials(args)
        device_credentials = load_device_credentials()

        cancel_event = threading.Event()
        deadline = time.monotonic() + args.timeout if args.timeout else None
        provisioner = RadSecProvisioner(
            config=config,
            credentials=credentials,
            csr_info=csr_info,
            identity_client=IdentityServiceClient(
                config, cancel_event=cancel_event, deadline=deadline
            ),
            device_factory=build_device_factory(
                device_credentials, args.ssh_identity, not args.insecure
            ),
            cancel_event=cancel_event,
        )

        LOGGER.info("Provisioning %d device(s)", len(targets))
        try:
            result = provisioner.provision_batch(targets)
        except KeyboardInterrupt:
            provisioner.cancel()
            LOGGER.error("Provisioning interrupted; remaining stages cancelled")
            return 1

        for host in result.provisioned:
            LOGGER.info("  Provisioned: %s", host)
        for host, (stage, message) in result.failed.items():
            LOGGER.error("  Failed: %s at %s: %s", host, stage, message)

        return 0 if result.failed_count == 0 else 1

    except ProvisioningError as e:
        LOGGER.error("Provisioning aborted at %s: %s", e.stage, e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
