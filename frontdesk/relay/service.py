"""Upstream relay - forwards every dashboard call to the spreadsheet script."""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from frontdesk.utils.logger import get_logger

logger = get_logger(__name__)

READ_METHODS = {"GET", "HEAD"}


@dataclass
class RelayResult:
    """What the relay answers with."""

    status: int
    content: bytes = b""
    media_type: str | None = "application/json"
    body: Any = None  # decoded payload, when the relay built it

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300


QueryItems = Sequence[tuple[str, str]] | Mapping[str, Any]


def envelope_params(params: QueryItems) -> dict[str, Any]:
    """Query pairs as a dict; repeated keys collect into a list."""
    items = params.items() if isinstance(params, Mapping) else params
    result: dict[str, Any] = {}
    for key, value in items:
        if key in result:
            previous = result[key]
            result[key] = previous + [value] if isinstance(previous, list) else [previous, value]
        else:
            result[key] = value
    return result


def error_envelope(
    message: str,
    *,
    method: str,
    url: str,
    params: QueryItems,
    body: Any,
    status: int,
    response: Any = None,
) -> dict[str, Any]:
    """Normalized failure body; carries enough of the request to replay it."""
    return {
        "error": message,
        "details": {
            "message": message,
            "response": response,
            "status": status,
            "config": {
                "method": method,
                "url": url,
                "params": envelope_params(params),
                "body": body,
            },
        },
    }


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _upstream_message(data: Any, status: int) -> str:
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    return f"Request failed with status code {status}"


class UpstreamRelay:
    """
    Relays requests to a single upstream URL.

    Each inbound call produces one upstream call. When ``read_retries`` is
    set, GET/HEAD calls that fail at the transport level are repeated up to
    that many extra times; writes are never repeated.

    Usage:
        relay = UpstreamRelay(url)
        await relay.start()
        result = await relay.forward("GET", {"action": "getEnquiries"})
        await relay.close()
    """

    def __init__(
        self,
        upstream_url: str,
        timeout: float = 30.0,
        read_retries: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.upstream_url = upstream_url
        self.timeout = timeout
        self.read_retries = read_retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Relay not started. Call 'await relay.start()' first.")
        return self._client

    async def forward(
        self,
        method: str,
        params: QueryItems,
        body: Any = None,
    ) -> RelayResult:
        """
        Forward one call upstream.

        Args:
            method: Inbound HTTP method
            params: Inbound query pairs, forwarded unchanged (repeats kept)
            body: Decoded JSON body (ignored for read methods)

        Returns:
            RelayResult with the upstream response or an error envelope
        """
        method = method.upper()
        is_read = method in READ_METHODS
        request_kwargs: dict[str, Any] = {"params": params}
        if not is_read and body is not None:
            request_kwargs["content"] = json.dumps(body).encode()

        attempts = 1 + (self.read_retries if is_read else 0)
        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.request(method, self.upstream_url, **request_kwargs)
            except httpx.RequestError as e:
                if isinstance(e, httpx.TransportError) and attempt < attempts:
                    logger.warning("relay_upstream_retry", method=method, attempt=attempt, error=str(e))
                    continue
                return self._failure(
                    str(e) or e.__class__.__name__,
                    method=method,
                    params=params,
                    body=body,
                    status=500,
                )
            break

        if response.is_success:
            logger.info("relay_upstream_success", method=method, status=response.status_code)
            return RelayResult(
                status=response.status_code,
                content=response.content,
                media_type=response.headers.get("content-type", "application/json"),
            )

        data = _decode(response)
        return self._failure(
            _upstream_message(data, response.status_code),
            method=method,
            params=params,
            body=body,
            status=response.status_code,
            response=data,
        )

    def _failure(
        self,
        message: str,
        *,
        method: str,
        params: QueryItems,
        body: Any,
        status: int,
        response: Any = None,
    ) -> RelayResult:
        envelope = error_envelope(
            message,
            method=method,
            url=self.upstream_url,
            params=params,
            body=body,
            status=status,
            response=response,
        )
        logger.error("relay_upstream_error", **envelope["details"])
        return RelayResult(
            status=status,
            content=json.dumps(envelope).encode(),
            body=envelope,
        )
