"""Error taxonomy for RadSec provisioning.

Every error carries the workflow stage that raised it so batch results can
report where a device stopped.
"""


class ProvisioningError(Exception):
    """Base class for provisioning failures."""

    default_stage = "provisioning"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage


class ConfigurationError(ProvisioningError):
    """Required input missing or device prerequisite not configured."""

    default_stage = "preconditions"


class AuthenticationError(ProvisioningError):
    """Key login to the identity service failed."""

    default_stage = "authenticate"


class RegistrationError(ProvisioningError):
    """Device add or list call failed."""

    default_stage = "register"


class DeviceNotRegisteredError(RegistrationError):
    """Device name missing from the identity service listing."""

    default_stage = "confirm_registration"


class FetchError(ProvisioningError):
    """CA certificate could not be retrieved."""

    default_stage = "fetch_ca"


class EnrollmentError(ProvisioningError):
    """CSR was not signed."""

    default_stage = "enroll"


class DeviceCommandError(ProvisioningError):
    """Device rejected a command or returned unusable output."""

    default_stage = "device_command"


class InstallError(ProvisioningError):
    """Certificate transfer, import or profile binding failed."""

    default_stage = "install"


class ProfileInvalidError(ProvisioningError):
    """TLS profile did not reach a valid state."""

    default_stage = "validate_profile"

    def __init__(
        self, message: str, errors: list[str] | None = None, stage: str | None = None
    ) -> None:
        super().__init__(message, stage=stage)
        self.errors = list(errors or [])
