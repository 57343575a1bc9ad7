"""Azure DevOps REST API client using httpx.

Thin transport for the Azure DevOps Services/Server REST API: it authenticates,
asks the rate-limit governor before every request, feeds response telemetry
back to it, and maps HTTP failures onto the migration error taxonomy.

API Reference: https://learn.microsoft.com/en-us/rest/api/azure/devops/
Rate limits: https://learn.microsoft.com/en-us/azure/devops/integrate/concepts/rate-limits
"""

import logging
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from ..migration.errors import (
    AuthFailureError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
)
from ..migration.options import Credentials
from ..migration.rate_limit import RateLimitGovernor

logger = logging.getLogger(__name__)

class AzureDevOpsClient:
    """Azure DevOps REST client scoped to one organization.

    Paths passed to ``get``/``post`` are relative to ``{base_url}/{organization}``.

    Example:
        >>> with AzureDevOpsClient(
        ...     "https://dev.azure.com", "go-gitea", Credentials(token="pat")
        ... ) as client:
        ...     project = client.get("/_apis/projects/test_repo")
    """

    API_VERSION = "7.1"

    # Timeout configuration in seconds
    CONNECT_TIMEOUT = 5.0
    READ_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        organization: str,
        credentials: Credentials,
        governor: RateLimitGovernor | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server URL, e.g. https://dev.azure.com
            organization: Organization (or collection) name
            credentials: PAT or username/password; a PAT is sent as the basic
                auth password with an empty user name
            governor: Rate-limit governor shared by every request
            transport: Optional httpx transport, used by tests
        """
        self.organization = organization
        self.governor = governor or RateLimitGovernor()

        if credentials.uses_token:
            auth = httpx.BasicAuth("", credentials.token)
        else:
            auth = httpx.BasicAuth(credentials.username, credentials.password)

        self._http = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/{quote(organization)}",
            auth=auth,
            headers={
                "Accept": "application/json",
                "User-Agent": "repo-migrations/0.1.0",
            },
            timeout=httpx.Timeout(self.READ_TIMEOUT, connect=self.CONNECT_TIMEOUT),
            transport=transport,
        )

    def __enter__(self) -> "AzureDevOpsClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the httpx client and release connections."""
        if not self._http.is_closed:
            self._http.close()

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        api_version: str = API_VERSION,
    ) -> dict[str, Any]:
        """GET a JSON resource."""
        return self.request("GET", path, params=params, api_version=api_version)

    def post(
        self,
        path: str,
        json: dict[str, Any],
        params: dict[str, Any] | None = None,
        api_version: str = API_VERSION,
    ) -> dict[str, Any]:
        """POST a JSON body and return the JSON response."""
        return self.request(
            "POST", path, params=params, json=json, api_version=api_version
        )

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        api_version: str = API_VERSION,
    ) -> dict[str, Any]:
        """Issue a request, honoring the rate limit.

        A throttled (429) response is waited out once through the governor and
        the request retried; no other failure is retried.

        Returns:
            The JSON response body

        Raises:
            AuthFailureError: On 401/403, or the 203 sign-in page Azure DevOps
                serves for rejected credentials
            NotFoundError: On 404
            RateLimitedError: When still throttled after the wait
            RemoteError: On any other failure
        """
        query = dict(params or {})
        query["api-version"] = api_version

        for attempt in range(2):
            response = self._send(method, path, query, json)

            if response.status_code == 429:
                self.governor.observe_throttled(response.headers)
                if attempt == 0:
                    logger.warning("Throttled on %s %s, waiting for quota", method, path)
                    self.governor.wait()
                    continue
                raise RateLimitedError(self.governor.reset_at)

            self.governor.observe_headers(response.headers)
            self._raise_for_status(response, method, path)
            try:
                body = response.json()
            except ValueError as e:
                raise RemoteError(
                    f"Azure DevOps returned non-JSON body on {method} {path}",
                    status_code=response.status_code,
                ) from e
            return body

        raise RateLimitedError(self.governor.reset_at)

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any],
        json: dict[str, Any] | None,
    ) -> httpx.Response:
        self.governor.wait()
        try:
            return self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise RemoteError(f"HTTP error on {method} {path}: {e}") from e

    def _raise_for_status(self, response: httpx.Response, method: str, path: str) -> None:
        status = response.status_code
        # Rejected PATs get the sign-in page: 203 or a redirect to it
        if status in (401, 403, 203) or response.is_redirect:
            raise AuthFailureError(
                f"Azure DevOps rejected credentials ({status}) on {method} {path}"
            )
        if status == 404:
            raise NotFoundError(f"Azure DevOps resource not found: {path}")
        if response.is_error:
            raise RemoteError(
                f"Azure DevOps API error {status} on {method} {path}: {_error_message(response)}",
                status_code=status,
            )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message", response.text))
    return response.text
