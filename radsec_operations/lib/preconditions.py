"""Pre-flight checks run before any remote call."""

from radsec_operations.lib.config import Credentials, CSRInfo, empty_fields
from radsec_operations.lib.device import EXEC_AUTHORIZATION_LINE
from radsec_operations.lib.exceptions import ConfigurationError


def validate_credentials(credentials: Credentials) -> None:
    """Raise ConfigurationError when a credential is empty."""
    missing = empty_fields(credentials)
    if missing:
        raise ConfigurationError(
            f"One or more required credentials are not set: {', '.join(missing)}"
        )


def validate_csr_info(csr_info: CSRInfo) -> None:
    """Raise ConfigurationError when a CSR subject field is empty."""
    missing = empty_fields(csr_info)
    if missing:
        raise ConfigurationError(
            f"One or more required CSR fields are not set: {', '.join(missing)}"
        )


def validate_run_inputs(credentials: Credentials, csr_info: CSRInfo) -> None:
    """Checks that abort the whole run."""
    validate_credentials(credentials)
    validate_csr_info(csr_info)


def validate_device_config(running_config: str, host: str) -> None:
    """Require exec authorization, without which EOS refuses scp."""
    if EXEC_AUTHORIZATION_LINE not in running_config:
        raise ConfigurationError(
            f"'{EXEC_AUTHORIZATION_LINE}' is not configured on {host} and is required for SCP",
            stage="device_preconditions",
        )
