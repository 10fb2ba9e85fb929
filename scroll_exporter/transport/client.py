"""
HTTP transport for the search service.

Issues exactly one request per call and hands back the raw body together
with the status code reported by the HTTP layer. No retries, no body
interpretation.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from scroll_exporter.config import ApiConfig
from scroll_exporter.utils.exceptions import NetworkTimeoutError, TransportError
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("transport")


@dataclass(frozen=True)
class TransportResponse:
    """Raw response: body text plus numeric status code."""
    body: str
    status_code: int

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class HttpTransport:
    """
    Thin wrapper around httpx.Client for search-service requests.

    Status codes are taken from the response object, so a JSON body can
    never be mistaken for the status line.
    """

    def __init__(
        self,
        api_config: Optional[ApiConfig] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the transport.

        Args:
            api_config: Connection settings (timeouts, auth, TLS)
            client: Pre-built httpx.Client (tests inject one with a MockTransport)
        """
        self._config = api_config or ApiConfig()

        if client is None:
            headers = {
                "User-Agent": "ScrollExporter/1.0",
                "Accept": "application/json",
            }
            if self._config.api_key:
                headers["Authorization"] = f"ApiKey {self._config.api_key}"

            auth = None
            if self._config.username is not None:
                auth = httpx.BasicAuth(self._config.username, self._config.password or "")

            client = httpx.Client(
                timeout=httpx.Timeout(self._config.timeout, connect=self._config.connect_timeout),
                headers=headers,
                auth=auth,
                verify=self._config.verify_tls,
            )

        self.client = client

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> TransportResponse:
        """
        Send a single request.

        Args:
            method: HTTP method (GET, POST, DELETE, ...)
            url: Absolute request URL
            headers: Extra request headers
            body: dict/list (JSON-encoded), str/bytes (sent as-is) or None

        Returns:
            TransportResponse with body text and status code

        Raises:
            NetworkTimeoutError: If the request timed out
            TransportError: On any other connection-level failure
        """
        request_headers = dict(headers or {})
        content = None

        if body is not None:
            if isinstance(body, (dict, list)):
                content = json.dumps(body).encode("utf-8")
                request_headers.setdefault("Content-Type", "application/json")
            elif isinstance(body, str):
                content = body.encode("utf-8")
            else:
                content = body

        logger.debug(f"{method} {url}")

        try:
            response = self.client.request(method, url, headers=request_headers, content=content)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout on {method} {url}: {e}")
            raise NetworkTimeoutError(endpoint=url, timeout=self._config.timeout) from e
        except httpx.TransportError as e:
            logger.error(f"Transport error on {method} {url}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}", endpoint=url) from e
        except httpx.RequestError as e:
            # Decoding and other request-level failures after the connection succeeded
            logger.error(f"Request error on {method} {url}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}", endpoint=url) from e

        return TransportResponse(body=response.text, status_code=response.status_code)
