"""HTTP transport for QBank remote calls."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

from qbank_folders.rpc.errors import QBankConnectionError

if TYPE_CHECKING:
    from qbank_folders.config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HttpTransport:
    """Sends one remote call per HTTP round trip."""

    def __init__(self, api_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialise the transport.

        Args:
            api_url: Base URL of the API; the operation name is appended to it.
            timeout: Socket timeout in seconds for each round trip.
        """
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

    def call(self, operation: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """POST a call to the API and return the decoded response envelope.

        The envelope is returned as-is; its success flag is not interpreted.

        Args:
            operation: Remote operation name (e.g. "getfolderinformation").
            arguments: JSON-serializable call arguments.

        Returns:
            Parsed JSON response body as a dict.

        Raises:
            QBankConnectionError: If the API is unreachable, answers with a
                non-2xx status, breaks the HTTP protocol, or the body is not
                a JSON object.
        """
        url = f"{self._api_url}/{operation}"
        req = urllib_request.Request(
            url,
            data=json.dumps(arguments).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method="POST",
        )
        try:
            with urllib_request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read()
        except HTTPError as exc:
            logger.error("[call] http error; operation:%s;status:%d", operation, exc.code)
            message = f"HTTP {exc.code} calling {operation}: {exc.reason}"
            raise QBankConnectionError(message) from exc
        except (URLError, TimeoutError, OSError) as exc:
            logger.error("[call] api unreachable; operation:%s;error:%s", operation, exc)
            raise QBankConnectionError(f"Could not reach API for {operation}: {exc}") from exc
        except HTTPException as exc:
            logger.error("[call] malformed http response; operation:%s;error:%r", operation, exc)
            raise QBankConnectionError(f"Malformed response for {operation}: {exc!r}") from exc

        try:
            envelope = json.loads(body)
        except ValueError as exc:
            logger.error("[call] response is not json; operation:%s", operation)
            raise QBankConnectionError(f"Malformed response for {operation}") from exc
        if not isinstance(envelope, dict):
            logger.error("[call] response is not an object; operation:%s", operation)
            raise QBankConnectionError(f"Malformed response for {operation}")
        return envelope


def http_transport_from_config(config: AppConfig) -> HttpTransport:
    """Construct an HttpTransport from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured HttpTransport instance.
    """
    return HttpTransport(api_url=config.api_url, timeout=config.request_timeout)
