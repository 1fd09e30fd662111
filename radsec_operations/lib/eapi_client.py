"""Arista eAPI (JSON-RPC over HTTPS) command client."""

import base64
import itertools
import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any

from radsec_operations.lib.config import DeviceCredentials
from radsec_operations.lib.exceptions import DeviceCommandError

_request_ids = itertools.count(1)


class EapiClient:
    """Run CLI commands on an EOS device through the /command-api endpoint."""

    def __init__(
        self,
        host: str,
        credentials: DeviceCredentials,
        port: int = 443,
        timeout: int = 60,
        verify_tls: bool = True,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        """Initialize eAPI client.

        Args:
            host: Management address of the device
            credentials: eAPI login
            port: HTTPS port of the eAPI server
            timeout: Per-request timeout in seconds
            verify_tls: Verify the device's HTTPS certificate
            opener: Replacement for urllib.request.urlopen
        """
        self.host = host
        self.url = f"https://{host}:{port}/command-api"
        self.timeout = timeout
        self._auth = base64.b64encode(
            f"{credentials.username}:{credentials.password}".encode("utf-8")
        ).decode("utf-8")
        self._context = ssl.create_default_context()
        if not verify_tls:
            self._context.check_hostname = False
            self._context.verify_mode = ssl.CERT_NONE
        self._urlopen = opener or urllib.request.urlopen

    def run_commands(self, commands: list[str], fmt: str = "json") -> list[Any]:
        """Run commands in order in a single request, after ``enable``.

        Args:
            commands: CLI commands, applied in the given order
            fmt: "json" for structured output, "text" for raw CLI output

        Returns:
            One result per command (the ``enable`` result is dropped). Text
            results are the command's output string.

        Raises:
            DeviceCommandError: On transport failure or a command error
        """
        payload = {
            "jsonrpc": "2.0",
            "method": "runCmds",
            "params": {"version": 1, "cmds": ["enable", *commands], "format": fmt},
            "id": str(next(_request_ids)),
        }
        req = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Basic {self._auth}",
            },
            method="POST",
        )

        try:
            with self._urlopen(req, timeout=self.timeout, context=self._context) as response:
                body = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise DeviceCommandError(f"eAPI request to {self.host} failed (HTTP {e.code})") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise DeviceCommandError(f"eAPI request to {self.host} failed: {e}") from e
        except json.JSONDecodeError as e:
            raise DeviceCommandError(f"eAPI response from {self.host} is not JSON") from e

        if "error" in body:
            raise DeviceCommandError(_format_error(body["error"]))

        results = body.get("result", [])[1:]
        if fmt == "text":
            return [item.get("output", "") for item in results]
        return results


def _format_error(error: dict[str, Any]) -> str:
    """Render a JSON-RPC error, preferring the failing command's own errors."""
    message = error.get("message", "unknown eAPI error")
    details = []
    for item in (error.get("data") or [])[1:]:
        if isinstance(item, dict):
            details.extend(item.get("errors", []))
    if details:
        return f"{message}: {'; '.join(details)}"
    return message
