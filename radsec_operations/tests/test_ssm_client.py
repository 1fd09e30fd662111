"""Tests for SSM client module."""

from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from radsec_operations.lib.config import Credentials
from radsec_operations.lib.exceptions import ConfigurationError
from radsec_operations.lib.ssm_client import SSMClient


class TestGetAgniCredentials:
    """Tests for SSMClient.get_agni_credentials."""

    @pytest.fixture
    def mock_boto3(self) -> Generator[MagicMock]:
        with patch("radsec_operations.lib.ssm_client.boto3") as mock:
            yield mock

    def test_returns_credentials(self, mock_boto3: MagicMock) -> None:
        """Should map the three parameters onto Credentials."""
        mock_client = mock_boto3.client.return_value
        mock_client.get_parameters.return_value = {
            "Parameters": [
                {"Name": "/radsec/production/agni/org-id", "Value": "o1"},
                {"Name": "/radsec/production/agni/key-id", "Value": "k1"},
                {"Name": "/radsec/production/agni/key-value", "Value": "v1"},
            ],
            "InvalidParameters": [],
        }

        credentials = SSMClient().get_agni_credentials("radsec", "production")

        assert credentials == Credentials(key_id="k1", key_value="v1", org_id="o1")

    def test_uses_correct_ssm_paths(self, mock_boto3: MagicMock) -> None:
        """Should request /{project}/{environment}/agni/* with decryption."""
        mock_client = mock_boto3.client.return_value
        mock_client.get_parameters.return_value = {"Parameters": [], "InvalidParameters": []}

        SSMClient().get_agni_credentials("radsec", "sandbox")

        kwargs = mock_client.get_parameters.call_args.kwargs
        assert kwargs["Names"] == [
            "/radsec/sandbox/agni/key-id",
            "/radsec/sandbox/agni/key-value",
            "/radsec/sandbox/agni/org-id",
        ]
        assert kwargs["WithDecryption"] is True

    def test_uses_region(self, mock_boto3: MagicMock) -> None:
        SSMClient(region="us-east-1")
        mock_boto3.client.assert_called_once_with("ssm", region_name="us-east-1")

    def test_missing_parameters_raise(self, mock_boto3: MagicMock) -> None:
        """Should raise ConfigurationError naming the missing paths."""
        mock_client = mock_boto3.client.return_value
        mock_client.get_parameters.return_value = {
            "Parameters": [],
            "InvalidParameters": ["/radsec/sandbox/agni/key-value"],
        }

        with pytest.raises(ConfigurationError, match="key-value"):
            SSMClient().get_agni_credentials("radsec", "sandbox")

    def test_client_error_raises_configuration_error(self, mock_boto3: MagicMock) -> None:
        mock_client = mock_boto3.client.return_value
        mock_client.get_parameters.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "no access"}},
            "GetParameters",
        )

        with pytest.raises(ConfigurationError, match="AccessDeniedException"):
            SSMClient().get_agni_credentials("radsec", "sandbox")
