"""RadSec provisioning workflow.

Per device, stages run strictly in order and the first failure stops that
device:

    device_preconditions -> gather_facts -> register -> list_devices ->
    confirm_registration -> transfer_ca -> generate_key -> generate_csr ->
    enroll -> transfer_certificate -> configure_profile -> validate_profile

The session and CA certificate are produced once per batch and handed to
every device workflow read-only. Devices run concurrently with bounded
parallelism; one device failing does not affect the others.
"""

import threading
from collections.abc import Callable, Generator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, TypeVar

from radsec_operations.lib.cert_utils import (
    deserialize_certificate,
    deserialize_csr,
    get_csr_common_name,
    public_keys_match,
    strip_trailing_newlines,
    summarize_certificate,
    validate_csr_signature,
)
from radsec_operations.lib.config import Credentials, CSRInfo, ProvisioningConfig
from radsec_operations.lib.device import NO_PROFILE_ERROR, EosDevice, installation_commands
from radsec_operations.lib.exceptions import (
    DeviceCommandError,
    DeviceNotRegisteredError,
    EnrollmentError,
    FetchError,
    ProfileInvalidError,
    ProvisioningError,
)
from radsec_operations.lib.identity_client import IdentityServiceClient, confirm_registration
from radsec_operations.lib.logging_config import LOGGER, device_logger
from radsec_operations.lib.models import (
    BatchContext,
    BatchResult,
    CertificateSummary,
    DeviceIdentity,
    DeviceResult,
    DeviceTarget,
    ProfileStatus,
)
from radsec_operations.lib.preconditions import validate_device_config, validate_run_inputs
from radsec_operations.lib.staging import StagingArea

T = TypeVar("T")

DeviceFactory = Callable[[DeviceTarget], EosDevice]


class RadSecProvisioner:
    """Provision RadSec client certificates onto EOS devices."""

    def __init__(
        self,
        config: ProvisioningConfig,
        credentials: Credentials,
        csr_info: CSRInfo,
        identity_client: IdentityServiceClient,
        device_factory: DeviceFactory,
        staging: StagingArea | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize provisioner.

        Args:
            config: Provisioning configuration
            credentials: Identity service API key and org ID
            csr_info: CSR subject fields
            identity_client: Identity service client
            device_factory: Builds a connected EosDevice for a target
            staging: Local staging area; defaults to config.staging_path
            cancel_event: Set to stop work between stages and inside retry loops
        """
        self.config = config
        self.credentials = credentials
        self.csr_info = csr_info
        self.identity_client = identity_client
        self.device_factory = device_factory
        self.staging = staging or StagingArea(config.staging_path)
        self.cancel_event = cancel_event or threading.Event()
        self._batch_lock = threading.Lock()
        self._batch: BatchContext | None = None

    def cancel(self) -> None:
        """Stop remaining work; devices mid-stage finish their current call."""
        self.cancel_event.set()

    # Run-once artifacts

    def prepare_batch(self) -> BatchContext:
        """Authenticate and stage the CA certificate, at most once per provisioner.

        Concurrent callers block until the first one finishes and then share
        its result.

        Raises:
            ConfigurationError: If credentials or CSR fields are missing
            AuthenticationError: If key login fails
            FetchError: If the CA certificate cannot be retrieved or parsed
        """
        with self._batch_lock:
            if self._batch is not None:
                return self._batch

            validate_run_inputs(self.credentials, self.csr_info)

            session = self.identity_client.authenticate(
                self.credentials.key_id, self.credentials.key_value
            )
            LOGGER.info("Authenticated to identity service", extra={"stage": "authenticate"})

            ca_pem = self.identity_client.fetch_ca_certificate(session)
            try:
                ca_cert = deserialize_certificate(ca_pem)
            except ValueError as e:
                raise FetchError("RadSec CA response is not a valid PEM certificate") from e
            summary = summarize_certificate(ca_cert)
            LOGGER.info(
                "Retrieved RadSec CA certificate serial=%s expiry=%s",
                summary["serialNumber"],
                summary["expiry"],
                extra={"stage": "fetch_ca"},
            )

            ca_path = self.staging.stage(self.config.ca_filename, ca_pem)
            self._batch = BatchContext(session=session, ca_pem=ca_pem, ca_path=ca_path)
            return self._batch

    def release_batch(self) -> None:
        """Delete the staged CA certificate."""
        with self._batch_lock:
            if self._batch is not None:
                self.staging.remove(self._batch.ca_path)
                self._batch = None

    @contextmanager
    def batch(self) -> Generator[BatchContext]:
        """Prepare shared artifacts and always delete the staged CA afterwards."""
        try:
            yield self.prepare_batch()
        finally:
            self.release_batch()

    def provision_batch(self, targets: list[DeviceTarget]) -> BatchResult:
        """Provision every target, returning per-device outcomes in input order.

        Failures of the run-once steps (preconditions, key login, CA fetch)
        are raised, since no device can proceed without them.
        """
        with self.batch() as context:
            workers = max(1, min(self.config.max_workers, len(targets) or 1))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="radsec") as pool:
                try:
                    results = list(pool.map(lambda t: self.provision_device(t, context), targets))
                except KeyboardInterrupt:
                    # workers stop at their next stage boundary before the pool joins them
                    self.cancel()
                    raise

        result = BatchResult(results=results)
        LOGGER.info(
            "Batch complete: %d provisioned, %d failed",
            result.provisioned_count,
            result.failed_count,
        )
        return result

    # Per-device workflow

    def provision_device(self, target: DeviceTarget, context: BatchContext) -> DeviceResult:
        """Run every per-device stage; never raises for a device-level failure."""
        log = device_logger(target.host)

        def stage(name: str, func: Callable[..., T], *args: Any) -> T:
            if self.cancel_event.is_set():
                raise ProvisioningError("provisioning cancelled", stage=name)
            log.info("Starting %s", name, extra={"stage": name})
            try:
                value = func(*args)
            except ProvisioningError as e:
                e.stage = name
                raise
            except Exception as e:
                raise ProvisioningError(f"unexpected error: {e}", stage=name) from e
            log.info("Completed %s", name, extra={"stage": name})
            return value

        try:
            device = stage("connect", self.device_factory, target)
            running_config = stage("device_preconditions", device.get_running_config)
            stage("device_preconditions", validate_device_config, running_config, target.host)
            identity = stage("gather_facts", device.get_identity)
            registration_name = target.name or identity.hostname

            self._register(stage, context, identity, registration_name)

            stage(
                "transfer_ca",
                device.put_file,
                context.ca_path,
                self.config.device_cert_path,
                self.config.ca_filename,
            )

            certificate_pem, summary = self._issue_certificate(stage, device, context, identity)
            log.info(
                "Received signed certificate serial=%s expiry=%s",
                summary["serialNumber"],
                summary["expiry"],
                extra={"stage": "enroll"},
            )

            cert_filename = f"{identity.hostname}.crt"
            with self.staging.staged(cert_filename, certificate_pem) as cert_path:
                stage(
                    "transfer_certificate",
                    device.put_file,
                    cert_path,
                    self.config.device_cert_path,
                    cert_filename,
                )

            commands = installation_commands(
                cert_filename=cert_filename,
                ca_filename=self.config.ca_filename,
                key_name=self.config.private_key_name,
                ssl_profile=self.config.ssl_profile,
                cert_location=self.config.device_cert_path,
            )
            stage("configure_profile", device.run_configuration, commands)

            status = stage("validate_profile", self._validate_profile, device)
        except ProvisioningError as e:
            log.error(
                "Provisioning failed at %s: %s", e.stage, e.message, extra={"stage": e.stage}
            )
            return DeviceResult(host=target.host, success=False, stage=e.stage, message=e.message)

        log.info("SSL profile '%s' is valid", status.name, extra={"stage": "validate_profile"})
        return DeviceResult(host=target.host, success=True, stage="complete", certificate=summary)

    def _register(
        self,
        stage: Callable[..., Any],
        context: BatchContext,
        identity: DeviceIdentity,
        registration_name: str,
    ) -> None:
        """Add the device as a NAD under registration_name and confirm the listing has it."""
        org_id = self.credentials.org_id
        stage(
            "register",
            self.identity_client.register_device,
            context.session,
            org_id,
            identity,
            registration_name,
        )
        records = stage(
            "list_devices", self.identity_client.list_devices, context.session, org_id
        )
        stage("confirm_registration", _require_registered, records, registration_name)

    def _issue_certificate(
        self,
        stage: Callable[..., Any],
        device: EosDevice,
        context: BatchContext,
        identity: DeviceIdentity,
    ) -> tuple[str, CertificateSummary]:
        key_name = self.config.private_key_name
        stage("generate_key", device.generate_key, key_name)

        raw_csr = stage(
            "generate_csr",
            device.generate_csr,
            key_name,
            identity.mac_address,
            self.csr_info,
            identity.hostname,
        )
        csr_pem = stage("generate_csr", self._check_csr, raw_csr, identity)

        certificate_pem = stage(
            "enroll",
            self.identity_client.enroll,
            context.session,
            self.credentials.org_id,
            csr_pem,
        )
        summary = stage("enroll", _check_certificate, certificate_pem, csr_pem)
        return certificate_pem, summary

    def _check_csr(self, raw_csr: str, identity: DeviceIdentity) -> str:
        csr_pem = strip_trailing_newlines(raw_csr)
        try:
            csr = deserialize_csr(csr_pem)
        except ValueError as e:
            raise DeviceCommandError("device returned an unparsable CSR") from e
        if not validate_csr_signature(csr):
            raise DeviceCommandError("device CSR signature is invalid")

        common_name = get_csr_common_name(csr)
        if common_name != identity.mac_address:
            raise DeviceCommandError(
                f"CSR common name {common_name!r} does not match MAC {identity.mac_address!r}"
            )
        expected = self.csr_info.to_x509_name(identity.mac_address)
        if set(csr.subject) != set(expected):
            LOGGER.warning(
                "CSR subject %s differs from requested %s",
                csr.subject.rfc4514_string(),
                expected.rfc4514_string(),
                extra={"device": identity.management_address, "stage": "generate_csr"},
            )
        return csr_pem

    def _validate_profile(self, device: EosDevice) -> ProfileStatus:
        status = device.get_ssl_profile_status(self.config.ssl_profile)
        if not status.is_valid:
            errors = status.errors or [NO_PROFILE_ERROR]
            raise ProfileInvalidError(
                f"SSL profile '{status.name}' is not valid (state={status.state}). "
                f"Errors: {', '.join(errors)}",
                errors=errors,
            )
        return status


def _require_registered(records: list, hostname: str) -> None:
    if not confirm_registration(records, hostname):
        raise DeviceNotRegisteredError(f"Switch is not defined in AGNI: {hostname}")


def _check_certificate(certificate_pem: str, csr_pem: str) -> CertificateSummary:
    try:
        cert = deserialize_certificate(certificate_pem)
    except ValueError as e:
        raise EnrollmentError("signed certificate is not a valid PEM certificate") from e
    if not public_keys_match(cert, deserialize_csr(csr_pem)):
        raise EnrollmentError("signed certificate does not match the device key")
    return summarize_certificate(cert)
