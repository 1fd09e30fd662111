"""HTTP client for the AGNI identity service REST API."""

import json
import threading
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie
from typing import Any

from radsec_operations.lib.config import ProvisioningConfig
from radsec_operations.lib.exceptions import (
    AuthenticationError,
    EnrollmentError,
    FetchError,
    RegistrationError,
)
from radsec_operations.lib.logging_config import LOGGER
from radsec_operations.lib.models import DeviceIdentity, NADRecord
from radsec_operations.lib.retry import AttemptFailed, RetryPolicy, RetryResult
from radsec_operations.lib.session import CookieSession, Session

KEY_LOGIN_PATH = "/cvcue/keyLogin"
NAD_ADD_PATH = "/api/config.nad.add"
NAD_LIST_PATH = "/api/config.nad.list"
CA_GET_PATH = "/api/config.cert.radSec.ca.get"
CLIENT_ENROLL_PATH = "/api/config.cert.radsec.client.enroll"
ORG_ID_HEADER = "X-AGNI-ORG-ID"


@dataclass(frozen=True)
class HttpResponse:
    """Status, parsed JSON body and Set-Cookie pairs of one call."""

    status: int
    body: dict[str, Any]
    cookies: list[tuple[str, str]]


def _parse_cookies(set_cookie_headers: list[str]) -> list[tuple[str, str]]:
    """Extract (name, value) pairs from Set-Cookie headers in header order."""
    pairs: list[tuple[str, str]] = []
    for header in set_cookie_headers:
        jar = SimpleCookie()
        try:
            jar.load(header)
        except CookieError:
            LOGGER.warning("Ignoring malformed Set-Cookie header")
            continue
        pairs.extend((name, morsel.value) for name, morsel in jar.items())
    return pairs


def _parse_body(raw: bytes) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _error_text(body: dict[str, Any]) -> str | None:
    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("message") or json.dumps(error)
    return str(error) if error else None


def confirm_registration(records: list[NADRecord], hostname: str) -> bool:
    """True iff some record's name equals hostname."""
    return any(record.name == hostname for record in records)


class IdentityServiceClient:
    """Client for key login, NAD registration, CA retrieval and CSR enrollment.

    Every call goes through the same RetryPolicy; a call is retried until the
    service answers HTTP 200.
    """

    def __init__(
        self,
        config: ProvisioningConfig,
        retry_policy: RetryPolicy | None = None,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        """Initialize identity service client.

        Args:
            config: Provisioning configuration (base URL, timeouts, retry bounds)
            retry_policy: Override for the config-derived retry policy
            cancel_event: Event that aborts in-flight retry loops when set
            deadline: time.monotonic() value after which no new attempt starts
            opener: Replacement for urllib.request.urlopen
        """
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.http_timeout
        self.vendor = config.vendor
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.retry_attempts, delay=config.retry_delay
        )
        self.cancel_event = cancel_event
        self.deadline = deadline
        self._urlopen = opener or urllib.request.urlopen

    def _request(
        self,
        method: str,
        path: str,
        session: Session | None = None,
        body: dict[str, Any] | None = None,
        query: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"

        request_headers = {"Accept": "application/json"}
        if session is not None:
            request_headers.update(session.auth_headers())
        if headers:
            request_headers.update(headers)

        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            request_headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, data=data, headers=request_headers, method=method)
        try:
            with self._urlopen(req, timeout=self.timeout) as response:
                return HttpResponse(
                    status=response.status,
                    body=_parse_body(response.read()),
                    cookies=_parse_cookies(response.headers.get_all("Set-Cookie") or []),
                )
        except urllib.error.HTTPError as e:
            return HttpResponse(status=e.code, body=_parse_body(e.read()), cookies=[])

    def _call_until_ok(self, description: str, **request_kwargs: Any) -> RetryResult[HttpResponse]:
        def attempt() -> HttpResponse:
            try:
                response = self._request(**request_kwargs)
            except (urllib.error.URLError, TimeoutError, OSError) as e:
                raise AttemptFailed(f"request error: {e}") from e
            if response.status != 200:
                detail = _error_text(response.body)
                raise AttemptFailed(f"HTTP {response.status}" + (f": {detail}" if detail else ""))
            return response

        return self.retry_policy.run(
            attempt, description, cancel_event=self.cancel_event, deadline=self.deadline
        )

    def authenticate(self, key_id: str, key_value: str) -> CookieSession:
        """Exchange an API key for a cookie session.

        Raises:
            AuthenticationError: If login does not succeed within the retry bound
        """
        result = self._call_until_ok(
            "key login",
            method="GET",
            path=KEY_LOGIN_PATH,
            query={"keyID": key_id, "keyValue": key_value},
        )
        if not result.ok:
            raise AuthenticationError(
                f"Key login failed after {result.attempts} attempts: {result.error}"
            )

        response = result.value
        if not response.cookies:
            LOGGER.warning("Key login returned no session cookies; continuing with an empty token")
        return CookieSession.from_cookies(response.cookies)

    def register_device(
        self,
        session: Session,
        org_id: str,
        identity: DeviceIdentity,
        name: str | None = None,
    ) -> None:
        """Submit the device as a NAD. A 200 here does not prove registration.

        Args:
            session: Session from key login
            org_id: Organisation the NAD belongs to
            identity: Facts read from the device
            name: NAD name; defaults to the hostname the device reports

        Raises:
            RegistrationError: If the add call keeps failing
        """
        nad_name = name or identity.hostname
        result = self._call_until_ok(
            f"NAD add for {nad_name}",
            method="POST",
            path=NAD_ADD_PATH,
            session=session,
            body={
                "orgID": org_id,
                "vendor": self.vendor,
                "serialNumber": identity.serial_number,
                "mac": identity.mac_address,
                "ipAddress": identity.management_address,
                "name": nad_name,
            },
        )
        if not result.ok:
            raise RegistrationError(f"Failed to add NAD {nad_name}: {result.error}")

    def list_devices(self, session: Session, org_id: str) -> list[NADRecord]:
        """Return every NAD the service knows for org_id.

        Raises:
            RegistrationError: If the list call keeps failing
        """
        result = self._call_until_ok(
            "NAD list",
            method="POST",
            path=NAD_LIST_PATH,
            session=session,
            body={"orgID": org_id},
        )
        if not result.ok:
            raise RegistrationError(
                f"Failed to list NADs: {result.error}", stage="list_devices"
            )

        data = result.value.body.get("data") or {}
        nads = data.get("nads") or []
        return [NADRecord.from_api(item) for item in nads if isinstance(item, dict)]

    def fetch_ca_certificate(self, session: Session) -> str:
        """Return the RadSec CA certificate as PEM text.

        Raises:
            FetchError: If retrieval fails or the response has no certificate
        """
        result = self._call_until_ok(
            "RadSec CA fetch",
            method="POST",
            path=CA_GET_PATH,
            session=session,
        )
        if not result.ok:
            raise FetchError(f"Failed to retrieve RadSec CA certificate: {result.error}")

        body = result.value.body
        cert = (body.get("data") or {}).get("cert")
        if not cert:
            raise FetchError(
                f"RadSec CA response has no certificate: {_error_text(body) or 'unknown error'}"
            )
        return cert

    def enroll(self, session: Session, org_id: str, csr_pem: str) -> str:
        """Submit a CSR and return the signed certificate PEM.

        A 200 response without data.x509Certificate is a failure.

        Raises:
            EnrollmentError: If the call fails or no certificate is returned
        """
        result = self._call_until_ok(
            "CSR enrollment",
            method="POST",
            path=CLIENT_ENROLL_PATH,
            session=session,
            headers={ORG_ID_HEADER: org_id},
            body={"csr": csr_pem, "orgID": org_id},
        )
        if not result.ok:
            raise EnrollmentError(f"CSR enrollment failed: {result.error}")

        body = result.value.body
        certificate = (body.get("data") or {}).get("x509Certificate")
        if not certificate:
            raise EnrollmentError(_error_text(body) or "unknown error")
        return certificate
