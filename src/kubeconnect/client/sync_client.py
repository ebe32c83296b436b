"""Synchronous HTTP client for the Kubernetes API server.

This module provides :class:`SyncClient`, a blocking client built from
resolved :class:`~kubeconnect.options.ConnectionOptions`. It wraps
:class:`httpx.Client` and layers on:

- **Credential injection** -- the options' strategy is applied to every
  request through :class:`~kubeconnect.transport.binder.StrategyAuth`;
  a 401 drops a refreshable credential and the request is retried once.
- **TLS** -- the SSL context from
  :class:`~kubeconnect.transport.binder.TransportBinder` (cluster CA,
  client certificate, insecure mode).
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- HTTP and TLS failures become
  :class:`~kubeconnect.exceptions.KubeConnectError` subclasses.
"""

from __future__ import annotations

import logging
import ssl
import time
from typing import Any, Optional

import httpx

from kubeconnect.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    ServerError,
    TlsValidationError,
)
from kubeconnect.models import RequestConfig
from kubeconnect.options import ConnectionOptions
from kubeconnect.transport.binder import TransportBinder

logger = logging.getLogger(__name__)


class SyncClient:
    """Synchronous HTTP client for one resolved cluster connection.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        options: Resolved connection options.
        request_config: Timeout, retry and verification settings.
        transport: Custom httpx transport (tests pass
            :class:`httpx.MockTransport`).

    Example::

        with SyncClient(options) as client:
            pods = client.get(f"/api/v1/namespaces/{options.namespace}/pods").json()
    """

    def __init__(
        self,
        options: ConnectionOptions,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._options = options
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def options(self) -> ConnectionOptions:
        return self._options

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SyncClient:
        binder = TransportBinder(self._options)
        verify: ssl.SSLContext | bool = False
        if self._config.verify_ssl:
            verify = binder.ssl_context()
        else:
            logger.warning("TLS verification disabled by request settings")
        self._client = httpx.Client(
            base_url=self._options.endpoint,
            timeout=self._config.timeout,
            verify=verify,
            auth=binder.auth(),
            headers={"Accept": "application/json"},
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send a request with credentials, retry, and error mapping.

        Args:
            method: HTTP method.
            path: URL path, relative to the API server endpoint.
            params: Query parameters.
            headers: Extra request headers.
            json_body: JSON-serialisable body.

        Returns:
            The successful :class:`httpx.Response`.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after all retries, or another 4xx.
            ConnectionError_: On network / timeout errors after all retries.
            TlsValidationError: If the server certificate is rejected.
            CredentialRefreshError: If the credential could not be refreshed.
        """
        response = self._execute_with_retry(method, path, params, headers, json_body)
        self._map_response_error(response)
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the request, retrying 5xx and network errors with backoff."""
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if json_body is not None:
            kwargs["json"] = json_body

        for attempt in range(max_retries + 1):
            try:
                response = self._client.request(method, path, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                verification = _certificate_verification_error(exc)
                if verification is not None:
                    raise TlsValidationError(
                        f"Server certificate for {self._options.endpoint} rejected: "
                        f"{getattr(verification, 'verify_message', None) or verification}"
                    ) from exc
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                time.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        # Kubernetes error bodies are Status objects with a "message".
        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("reason") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)


def _certificate_verification_error(
    exc: BaseException,
) -> Optional[ssl.SSLCertVerificationError]:
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLCertVerificationError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None
