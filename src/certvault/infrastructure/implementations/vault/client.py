"""
Thin HTTP client for the Vault API.

Wraps a single ``httpx.AsyncClient`` (one connection pool per storage).
Every call goes through ``request``, which also carries Vault's custom
``LIST`` method; ``post`` is a shorthand for the auth endpoints. Status
handling is left to the callers.
"""

from typing import Any

import httpx
from pydantic import ValidationError

from certvault.core.logging import logger
from certvault.exceptions import BackendError
from certvault.models.config import VaultStorageConfig
from certvault.models.vault import ErrorResponse

TOKEN_HEADER = "X-Vault-Token"


class VaultClient:
    """
    Async HTTP client bound to a Vault base URL.

    Every method returns the raw ``httpx.Response``; transport failures are
    raised as ``httpx.TransportError``.
    """

    def __init__(
        self,
        config: VaultStorageConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the Vault client.

        Args:
            config: Vault storage configuration
            http_client: Preconfigured client, mostly for tests. Created from
                         the configuration when omitted.
        """
        self.base_url = config.base_url
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            verify=not config.insecure_skip_verify,
            timeout=httpx.Timeout(config.request_timeout, connect=5.0),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

        if config.insecure_skip_verify:
            logger.warning("TLS verification disabled for Vault requests")

    def url(self, path: str) -> str:
        """Absolute URL of an API path, for log messages."""
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Send a request to Vault.

        Args:
            method: HTTP verb (GET, POST, DELETE, LIST)
            path: Path relative to ``/v1/``
            token: Value of the X-Vault-Token header, omitted when None
            body: JSON body

        Returns:
            The response, whatever its status
        """
        headers = {TOKEN_HEADER: token} if token is not None else None
        return await self._http.request(method, path, json=body, headers=headers)

    async def post(self, path: str, token: str | None, body: dict[str, Any]) -> httpx.Response:
        return await self.request("POST", path, token, body)

    async def aclose(self) -> None:
        """Close the connection pool if this client created it."""
        if self._owns_client:
            await self._http.aclose()


def parse_error(response: httpx.Response) -> ErrorResponse:
    """Decode Vault's ``{"errors": [...]}`` body, empty when absent or invalid."""
    try:
        return ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return ErrorResponse()


def backend_error(response: httpx.Response) -> BackendError:
    """Build the BackendError for an error response."""
    errors = parse_error(response)
    return BackendError(errors.message, status_code=response.status_code, errors=errors.errors)


def log_failure(
    action: str,
    url: str,
    response: httpx.Response | None = None,
    error: Exception | None = None,
) -> None:
    """
    Log a failed Vault call with everything needed to diagnose it.

    Args:
        action: What was attempted, e.g. "store certificate"
        url: Absolute URL of the request
        response: Response, when one was received
        error: Transport error, when no response was received
    """
    details: dict[str, Any] = {"url": url}
    if error is not None:
        details["error"] = str(error)
    if response is not None:
        details["vault_errors"] = parse_error(response).message
        details["response_code"] = response.status_code
        details["response_body"] = response.text
    logger.bind(**details).error(f"Unable to {action}: {details}")
