"""SSM client for reading identity service credentials from AWS Parameter Store."""

import boto3
from botocore.exceptions import ClientError

from radsec_operations.lib.config import Credentials
from radsec_operations.lib.exceptions import ConfigurationError


class SSMClient:
    """SSM client for reading AGNI API credentials (writes handled out of band)."""

    def __init__(self, region: str = "eu-west-2") -> None:
        """Initialize SSM client.

        Args:
            region: AWS region for SSM client
        """
        self.client = boto3.client("ssm", region_name=region)

    def get_agni_credentials(self, project_name: str, environment: str) -> Credentials:
        """Fetch key ID, key value and org ID SecureStrings.

        Args:
            project_name: Project name prefix (e.g., 'radsec')
            environment: Environment name (e.g., 'production')

        Returns:
            Credentials read from /{project}/{environment}/agni/*

        Raises:
            ConfigurationError: If any parameter is missing
        """
        prefix = f"/{project_name}/{environment}/agni"
        names = {
            "key_id": f"{prefix}/key-id",
            "key_value": f"{prefix}/key-value",
            "org_id": f"{prefix}/org-id",
        }

        try:
            response = self.client.get_parameters(
                Names=list(names.values()), WithDecryption=True
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            raise ConfigurationError(
                f"Unable to read AGNI credentials from SSM ({error_code})"
            ) from e

        if response.get("InvalidParameters"):
            raise ConfigurationError(
                f"AGNI credentials not found in SSM. "
                f"Paths missing: {', '.join(response['InvalidParameters'])}"
            )

        values = {p["Name"]: p["Value"] for p in response.get("Parameters", [])}
        return Credentials(**{field: values.get(path, "") for field, path in names.items()})
