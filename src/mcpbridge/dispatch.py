# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Turn a call template plus tool arguments into one outbound HTTP request.

:class:`CallDispatcher` is stateless between calls.  By default every call opens
and closes its own :class:`httpx.AsyncClient`; tests and embedders pass a
``http_client_factory`` to substitute a transport.  Nothing is retried.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import json
from typing import Any
from urllib.parse import quote

import httpx

from .config import DEFAULT_HTTP_TIMEOUT, DEFAULT_USER_AGENT
from .errors import DispatchError
from .registry import BODY_METHODS, CallTemplate
from .utils import get_logger


HttpClientFactory = Callable[..., httpx.AsyncClient]


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Successful (2xx) outcome of one dispatched call."""

    status_code: int
    body: Any
    url: str


def _path_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return quote(str(value), safe="")


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return value
    if isinstance(value, (list, tuple)) and all(isinstance(item, (str, int, float, bool)) for item in value):
        return [_query_value(item) for item in value]
    return json.dumps(value, separators=(",", ":"))


def join_url(api_base_url: str, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return api_base_url.rstrip("/") + path


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class CallDispatcher:
    """Execute call templates against a target API with :mod:`httpx`."""

    def __init__(
        self,
        *,
        http_client_factory: HttpClientFactory | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client_factory = http_client_factory or httpx.AsyncClient
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json", "User-Agent": user_agent}
        if headers:
            self._headers.update(headers)
        self._logger = get_logger("mcpbridge.dispatch")

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def build_request(
        self, template: CallTemplate, api_base_url: str, arguments: Mapping[str, Any] | None = None
    ) -> httpx.Request:
        """Resolve ``template`` against ``arguments`` without performing I/O.

        Raises:
            DispatchError: a path placeholder has no (non-null) argument, or
                the resulting URL is invalid.
        """
        args = dict(arguments or {})
        path = template.path
        for param in template.path_params:
            value = args.get(param.argument)
            if value is None:
                raise DispatchError(
                    f"Missing required path argument '{param.argument}' for {template.method} {template.path}"
                )
            path = path.replace("{" + param.placeholder + "}", _path_value(value))

        remaining = {
            key: value
            for key, value in args.items()
            if value is not None and key not in template.path_arguments
        }
        params = {key: _query_value(value) for key, value in remaining.items()} if template.has_query_params else None
        body = remaining if template.has_body and template.method in BODY_METHODS else None

        return self._request(template.method, join_url(api_base_url, path), params=params or None, json=body)

    async def execute(
        self, template: CallTemplate, api_base_url: str, arguments: Mapping[str, Any] | None = None
    ) -> DispatchResult:
        """Send the request built from ``template`` and return the decoded body.

        Raises:
            DispatchError: missing path argument, transport failure
                (``status_code`` is ``None``) or a non-2xx response.
        """
        request = self.build_request(template, api_base_url, arguments)
        return await self._send(request)

    async def read(self, api_base_url: str, path: str) -> DispatchResult:
        """Plain ``GET`` used for resource reads."""
        return await self._send(self._request("GET", join_url(api_base_url, path)))

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        try:
            request = httpx.Request(method, url, headers=self._headers, **kwargs)
        except httpx.InvalidURL as exc:
            raise DispatchError(f"Invalid request URL {url!r}: {exc}", url=url) from exc
        if request.url.scheme not in {"http", "https"} or not request.url.host:
            raise DispatchError(f"Invalid request URL {url!r}: expected an absolute http(s) URL", url=url)
        return request

    async def _send(self, request: httpx.Request) -> DispatchResult:
        url = str(request.url)
        self._logger.debug("%s %s", request.method, url)
        try:
            async with self._client_factory(timeout=httpx.Timeout(self._timeout)) as client:
                response = await client.send(request)
                await response.aread()
        except httpx.HTTPError as exc:
            message = str(exc) or exc.__class__.__name__
            self._logger.warning("%s %s failed: %s", request.method, url, message)
            raise DispatchError(f"Request failed: {message}", url=url) from exc

        if not response.is_success:
            self._logger.info("%s %s returned HTTP %s", request.method, url, response.status_code)
            raise DispatchError(
                f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
                url=url,
            )
        return DispatchResult(status_code=response.status_code, body=_decode_body(response), url=url)


__all__ = ["CallDispatcher", "DispatchResult", "HttpClientFactory", "join_url"]
