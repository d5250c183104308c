"""HTTP transport with basic auth and status-to-error mapping."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from pypatients._redact import redact_for_log
from pypatients.config import PatientsConfig
from pypatients.exceptions import PatientsTransportError, PatientsUnexpectedError, error_for_status

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(self, method: str, endpoint: str, payload: Any = None) -> Any:
        ...


def _server_message(error_cls: type[PatientsTransportError], text: str) -> str | None:
    """Return the body's ``message`` field for statuses without a fixed text.

    401, 404 and 5xx always use their class default.  Anything else
    prefers the server's ``message`` and falls back to the generic text.
    """
    if error_cls is not PatientsUnexpectedError:
        return None
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class HttpTransport:
    """JSON-over-HTTP transport for the patient API."""

    def __init__(self, config: PatientsConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._auth: aiohttp.BasicAuth | None = None
        if config.username is not None and config.password is not None:
            self._auth = aiohttp.BasicAuth(config.username, config.password)
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request_json(self, method: str, endpoint: str, payload: Any = None) -> Any:
        """Send one request and return the decoded JSON body.

        An empty 2xx body decodes to ``None``.  Non-2xx responses raise the
        :class:`PatientsTransportError` subclass for their status code.
        Network failures and bodies that are not UTF-8 JSON raise
        :class:`PatientsUnexpectedError`.
        """
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        headers = {"accept": "application/json"}

        _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                json=payload,
                headers=headers,
                auth=self._auth,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                raw = await resp.read()
        except (aiohttp.ClientError, TimeoutError) as exc:
            _logger.debug("%s %s failed: %r", method, url, exc)
            raise PatientsUnexpectedError(endpoint=endpoint) from exc

        if not 200 <= status < 300:
            text = raw.decode("utf-8", errors="replace")
            _logger.debug("%s %s -> HTTP %d: %s", method, url, status, text[:200])
            error_cls = error_for_status(status)
            raise error_cls(_server_message(error_cls, text), status_code=status, endpoint=endpoint)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            _logger.debug("%s %s -> body is not UTF-8 (%d bytes)", method, url, len(raw))
            raise PatientsUnexpectedError(status_code=status, endpoint=endpoint) from exc

        if not text.strip():
            return None

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            _logger.debug("%s %s -> invalid JSON: %s", method, url, text[:200])
            raise PatientsUnexpectedError(status_code=status, endpoint=endpoint) from exc

        _logger.debug("%s %s -> %s", method, url, redact_for_log(result))
        return result
