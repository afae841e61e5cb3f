# news_reader/fetcher.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from .errors import RequestAborted, TransportError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    asyncio counterpart of an AbortController.

    One token per request; ``cancel()`` wakes up everything awaiting on it,
    the in-flight HTTP call and a pending retry delay alike.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestAborted()

    async def sleep(self, seconds: float) -> None:
        """Sleeps, but returns early with RequestAborted once cancelled."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            return
        raise RequestAborted()


@dataclass
class FetchResult:
    data: Any = None
    error: Optional[BaseException] = None
    status: Optional[int] = None


def prepare_body(body: Any, headers: Dict[str, str]) -> Any:
    """
    Plain dict/list bodies are sent as JSON; Content-Type is added unless the
    caller already set one. str/bytes/form objects go out untouched.
    """
    if body is None or isinstance(body, (str, bytes, bytearray)):
        return body
    if isinstance(body, (Mapping, list, tuple)):
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
        return json.dumps(body, ensure_ascii=False)
    return body


def decode_payload(response: httpx.Response) -> Any:
    if not response.content:
        return None
    ctype = (response.headers.get("content-type") or "").lower()
    if "json" in ctype:
        return response.json()
    try:
        return response.json()
    except ValueError:
        return response.text


class Fetcher:
    """
    Async HTTP client used by the fetch orchestrator.

    Never raises for transport or HTTP failures: the outcome is a FetchResult
    with ``error`` set, and the caller decides whether to retry.
    """

    def __init__(
        self,
        user_agent: str = "NewsReader/1.0",
        timeout: float = 20.0,
        follow_redirects: bool = True,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.default_headers = {"User-Agent": self.user_agent, **(default_headers or {})}
        self.transport = transport

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Any,
        timeout: float,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=self.follow_redirects,
            timeout=timeout,
        ) as client:
            return await client.request(method, url, headers=headers, content=content)

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
        signal: Optional[CancellationToken] = None,
    ) -> FetchResult:
        merged_headers = {**self.default_headers, **(headers or {})}
        content = prepare_body(body, merged_headers)
        effective_timeout = self.timeout if timeout is None else float(timeout)

        if signal is not None and signal.cancelled:
            return FetchResult(error=RequestAborted())

        send = asyncio.ensure_future(
            self._send(method.upper(), url, merged_headers, content, effective_timeout)
        )
        try:
            if signal is None:
                response = await send
            else:
                aborted = asyncio.ensure_future(signal.wait())
                try:
                    await asyncio.wait({send, aborted}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    aborted.cancel()
                if not send.done():
                    send.cancel()
                    logger.debug("request aborted: %s %s", method, url)
                    return FetchResult(error=RequestAborted())
                response = send.result()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("transport error: %s %s -> %s", method, url, exc)
            return FetchResult(error=TransportError(str(exc) or type(exc).__name__))

        if response.status_code >= 400:
            message = f"HTTP {response.status_code} {response.reason_phrase}".strip()
            return FetchResult(
                data=None,
                error=TransportError(message, status_code=response.status_code),
                status=response.status_code,
            )

        try:
            data = decode_payload(response)
        except ValueError as exc:
            return FetchResult(error=TransportError(f"Invalid payload: {exc}"), status=response.status_code)
        return FetchResult(data=data, status=response.status_code)

    async def get_json(self, url: str, **kwargs: Any) -> Optional[Any]:
        result = await self.request(url, **kwargs)
        if result.error is not None:
            return None
        return result.data
