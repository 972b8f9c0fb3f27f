"""HTTP client for the broker management API and the time-series query API.

Callers get one of three separable failures:

- ``NoResponseError``: the request never produced a response (connect
  error, timeout, invalid URL).
- ``StatusError``: a response arrived with a non-2xx status; the body is
  not decoded.
- ``DecodeError``: the body is not valid JSON/BERT or does not have the
  expected shape.
"""

from __future__ import annotations

import logging
import ssl
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from core.config import Capability, Settings
from core.errors import ConfigurationError
from models.upstream import QueryResponse
from services import bert

logger = logging.getLogger(__name__)

QUERY_PATH = "/api/v1/query"
BERT_CONTENT_TYPE = "application/bert"


class UpstreamError(Exception):
    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(f"{message} ({url})" if url else message)


class NoResponseError(UpstreamError):
    """No response was received from the upstream."""


class StatusError(UpstreamError):
    def __init__(self, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"upstream answered with status {status_code}", url)


class DecodeError(UpstreamError):
    """The upstream body could not be decoded into the expected shape."""


def decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if content_type.startswith(BERT_CONTENT_TYPE):
        return bert.decode(response.content)
    return response.json()


class UpstreamClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        auth: tuple[str, str] | None = None,
        verify: ssl.SSLContext | bool = True,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth = auth
        self._verify = verify
        self._headers = {"Accept": "application/json", **(headers or {})}
        self._params = dict(params or {})
        self._transport = transport

    async def execute(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded body."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {**self._params, **(params or {})}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=self._auth,
                verify=self._verify,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=query)
        except (httpx.TransportError, httpx.InvalidURL) as exc:
            raise NoResponseError(f"no response: {exc!r}", url) from exc

        logger.debug(
            "%s %s -> %d",
            method,
            url,
            response.status_code,
            extra={"status_code": response.status_code, "path": path},
        )
        if not response.is_success:
            raise StatusError(response.status_code, url)

        try:
            return decode_body(response)
        except (ValueError, RecursionError, TypeError) as exc:
            raise DecodeError(f"cannot decode body: {exc!r}", url) from exc

    async def get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self.execute("GET", path, params)

    async def query(self, expression: str) -> QueryResponse:
        """Run an instant query against ``/api/v1/query``."""
        body = await self.get(QUERY_PATH, {"query": expression})
        try:
            return QueryResponse.model_validate(body)
        except ValidationError as exc:
            raise DecodeError(
                f"unexpected query envelope: {exc.error_count()} error(s)",
                f"{self.base_url}{QUERY_PATH}",
            ) from exc


def tls_context(settings: Settings) -> ssl.SSLContext | bool:
    """Client TLS material for an https management URL; files are optional."""
    if not settings.rabbit_url.lower().startswith("https"):
        return True
    try:
        cafile = settings.ca_file if Path(settings.ca_file).is_file() else None
        context = ssl.create_default_context(cafile=cafile)
        if Path(settings.cert_file).is_file() and Path(settings.key_file).is_file():
            context.load_cert_chain(settings.cert_file, settings.key_file)
    except (ssl.SSLError, OSError) as exc:
        raise ConfigurationError(f"cannot load TLS material: {exc}") from exc
    if settings.skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def management_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> UpstreamClient:
    headers = {}
    params = {}
    if settings.has_capability(Capability.BERT):
        headers["Accept"] = BERT_CONTENT_TYPE
    if settings.has_capability(Capability.NO_SORT):
        params["sort"] = ""
    return UpstreamClient(
        settings.rabbit_url,
        timeout=settings.rabbit_timeout,
        auth=(settings.rabbit_user, settings.rabbit_password),
        verify=tls_context(settings),
        headers=headers,
        params=params,
        transport=transport,
    )


def timeseries_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> UpstreamClient:
    return UpstreamClient(
        settings.timeseries_url,
        timeout=settings.rabbit_timeout,
        transport=transport,
    )
