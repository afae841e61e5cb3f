# news_reader/fetch_data.py
"""
FetchData: one logical request with observable state.

Features:
  - base URL handling, ``:param`` replacement, query string generation
  - response cache with TTL (shared key-value store)
  - fixed-delay retry
  - debouncing of execute() and the initial auto-fetch
  - cancellation (abort) that also stops a pending retry
  - transform of the raw payload

Usage:
    posts = FetchData(
        "/api/users/:user_id/posts",
        FetchDataOptions(params={"user_id": 123}, query={"page": 1}, enable_cache=True),
    )
    await posts.execute()
    posts.data.value  # -> transformed payload
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, Set, TypeVar

from .cache import DEFAULT_CACHE_TTL_MS, Clock, ResponseCache, generate_cache_key, now_ms
from .config import Settings
from .errors import MissingUrlError, RequestAborted, TransportError
from .fetcher import CancellationToken, Fetcher
from .observable import Computed, MaybeRef, Observable, ReadonlyRef, Ref, is_observable, to_value
from .storage import KeyValueStore, MemoryStore
from .urls import PathParams, QueryParams, build_url

T = TypeVar("T")

logger = logging.getLogger(__name__)

# process-wide store, the localStorage of this package
shared_store = MemoryStore()

# option names that configure FetchData itself and never reach the HTTP call
_ORCHESTRATION_KEYS = {
    "debounce_ms",
    "enable_cache",
    "cache_key",
    "cache_ttl_ms",
    "immediate",
    "retry",
    "retry_delay_ms",
    "use_base_url",
    "transform",
    "params",
    "query",
    "signal",
}
_REQUEST_KEYS = {"method", "headers", "body", "timeout"}


@dataclass
class FetchDataOptions:
    debounce_ms: int = 0
    enable_cache: bool = False
    cache_key: Optional[str] = None
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    immediate: bool = True
    retry: int = 0
    retry_delay_ms: int = 1000
    use_base_url: bool = True
    transform: Optional[Callable[[Any], Any]] = None
    params: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)

    # passed through to the HTTP call
    method: str = "GET"
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    timeout: Optional[float] = None
    signal: Optional[CancellationToken] = None

    def request_kwargs(self, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "method": self.method,
            "headers": dict(self.headers or {}),
            "body": self.body,
            "timeout": self.timeout,
        }
        for key, value in (overrides or {}).items():
            if key in _ORCHESTRATION_KEYS:
                continue
            if key not in _REQUEST_KEYS:
                logger.debug("ignoring unknown request option %r", key)
                continue
            kwargs[key] = value
        kwargs["timeout"] = _coerce_timeout(kwargs.get("timeout"))
        return kwargs


def _coerce_timeout(value: Any) -> Optional[float]:
    if value is None or isinstance(value, (int, float)):
        return value
    try:
        return float(value) or None
    except (TypeError, ValueError):
        return None


@dataclass
class RequestState(Generic[T]):
    data: Optional[T] = None
    loading: bool = False
    error: Optional[BaseException] = None
    status_code: Optional[int] = None
    retry_count: int = 0
    abort_handle: Optional[CancellationToken] = None


class Debouncer:
    """
    Coalesces calls made within ``wait_ms``: only the last call runs.

    Every caller gets a future that resolves when that single run finishes.
    """

    def __init__(self, fn: Callable[..., Awaitable[Any]], wait_ms: int) -> None:
        self.fn = fn
        self.wait_ms = wait_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._waiters: List["asyncio.Future[Any]"] = []
        self._args: tuple = ()
        self._kwargs: Dict[str, Any] = {}

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> "asyncio.Future[Any]":
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._args, self._kwargs = args, kwargs
        waiter = loop.create_future()
        self._waiters.append(waiter)
        self._handle = loop.call_later(self.wait_ms / 1000, self._fire)
        return waiter

    def _fire(self) -> None:
        self._handle = None
        waiters, self._waiters = self._waiters, []
        task = asyncio.ensure_future(self.fn(*self._args, **self._kwargs))

        def _settle(done: "asyncio.Future[Any]") -> None:
            for waiter in waiters:
                if waiter.done():
                    continue
                if done.cancelled():
                    waiter.cancel()
                elif done.exception() is not None:
                    waiter.set_exception(done.exception())
                else:
                    waiter.set_result(done.result())

        task.add_done_callback(_settle)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()


class FetchData(Generic[T]):
    """
    Observable request orchestrator.

    ``url`` may be a plain string, a zero-argument getter, or an observable
    (Ref/Computed). With an observable URL and ``immediate`` set, every
    change of the resolved URL schedules a new fetch.

    Errors never escape ``execute``/``refresh``/``abort``; they end up in
    ``error``. A newer fetch fences off older ones: a late response from a
    superseded fetch is dropped.
    """

    def __init__(
        self,
        url: MaybeRef[str],
        options: Optional[FetchDataOptions] = None,
        *,
        fetcher: Optional[Fetcher] = None,
        store: Optional[KeyValueStore] = None,
        base_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        clock: Clock = now_ms,
    ) -> None:
        self.options = options or FetchDataOptions()
        settings = settings or Settings.from_env()
        self.base_url = settings.base_url_api if base_url is None else base_url
        self.fetcher = fetcher or Fetcher(user_agent=settings.user_agent, timeout=settings.http_timeout)
        self.cache = ResponseCache(
            store if store is not None else shared_store,
            ttl_ms=self.options.cache_ttl_ms,
            clock=clock,
        )
        self._url = url

        self.params: Ref[Dict[str, Any]] = Ref(dict(self.options.params))
        self.query: Ref[Dict[str, Any]] = Ref(dict(self.options.query))

        self._data: Ref[Optional[T]] = Ref(None)
        self._loading = Ref(False)
        self._error: Ref[Optional[BaseException]] = Ref(None)
        self._status_code: Ref[Optional[int]] = Ref(None)
        self._retry_count = Ref(0)
        self.abort_handle: Optional[CancellationToken] = None

        self.data = ReadonlyRef(self._data)
        self.loading = ReadonlyRef(self._loading)
        self.error = ReadonlyRef(self._error)
        self.status_code = ReadonlyRef(self._status_code)
        self.retry_count = ReadonlyRef(self._retry_count)

        sources: List[Observable[Any]] = [self.params, self.query]
        if is_observable(url):
            sources.append(url)  # type: ignore[arg-type]
        self.final_url: Computed[str] = Computed(self._resolve_current_url, *sources)

        self._generation = 0
        # bumped by abort(); a fetch scheduled under an older epoch never starts
        self._abort_epoch = 0
        self._pending: Set["asyncio.Future[Any]"] = set()
        self._debouncer: Optional[Debouncer] = (
            Debouncer(self.fetch_data, self.options.debounce_ms) if self.options.debounce_ms > 0 else None
        )
        self._unwatch: Optional[Callable[[], None]] = None

        if is_observable(url) and self.options.immediate:
            self._unwatch = self.final_url.subscribe(lambda _new, _old: self._schedule())
        if self.options.immediate:
            self._schedule()

    # ------------------------------------------------------------------
    # URL / cache helpers
    # ------------------------------------------------------------------
    def _resolve_current_url(self) -> str:
        raw = to_value(self._url)
        if not raw:
            return ""
        return self.build_url(raw)

    def build_url(self, path: str, use_base_url: Optional[bool] = None) -> str:
        return build_url(
            path,
            base_url=self.base_url,
            use_base_url=self.options.use_base_url if use_base_url is None else use_base_url,
            params=self.params.value,
            query=self.query.value,
        )

    def cache_key_for(self, url: str) -> str:
        return self.options.cache_key or generate_cache_key(url, self.params.value, self.query.value)

    @property
    def current_cache_key(self) -> str:
        return self.cache_key_for(self._resolve_current_url())

    @property
    def state(self) -> RequestState[T]:
        return RequestState(
            data=self._data.value,
            loading=self._loading.value,
            error=self._error.value,
            status_code=self._status_code.value,
            retry_count=self._retry_count.value,
            abort_handle=self.abort_handle,
        )

    # ------------------------------------------------------------------
    # Core fetch
    # ------------------------------------------------------------------
    async def fetch_data(
        self,
        fetch_url: Optional[str] = None,
        custom_options: Optional[Mapping[str, Any]] = None,
        *,
        abort_epoch: Optional[int] = None,
    ) -> None:
        if abort_epoch is not None and abort_epoch != self._abort_epoch:
            logger.debug("fetch aborted before it started")
            return
        custom = dict(custom_options or {})
        if fetch_url:
            target_url = self.build_url(fetch_url, custom.get("use_base_url"))
        else:
            target_url = self._resolve_current_url()

        if not target_url:
            self._error.value = MissingUrlError()
            logger.warning("fetch skipped: no URL")
            return

        self._generation += 1
        generation = self._generation
        opts = self.options
        cache_key = self.cache_key_for(target_url)

        if opts.enable_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("cache hit: %s", cache_key)
                self._data.value = cached
                self._error.value = None
                self._loading.value = False
                return

        self._loading.value = True
        self._error.value = None
        self._retry_count.value = 0
        token = CancellationToken()
        self.abort_handle = token
        unlink = self._link_external_signal(opts.signal, token)

        request_kwargs = opts.request_kwargs(custom)
        attempt = 0
        try:
            while True:
                try:
                    await self._attempt(target_url, request_kwargs, token, generation, cache_key)
                    return
                except RequestAborted:
                    logger.debug("fetch aborted: %s", target_url)
                    self._release_aborted(token)
                    return
                except Exception as exc:  # transport, HTTP or transform failure
                    if generation != self._generation:
                        return
                    self._error.value = exc
                    if attempt < opts.retry:
                        attempt += 1
                        self._retry_count.value = attempt
                        logger.info(
                            "fetch failed (%s), retry %d/%d in %d ms: %s",
                            exc, attempt, opts.retry, opts.retry_delay_ms, target_url,
                        )
                        try:
                            await token.sleep(opts.retry_delay_ms / 1000)
                        except RequestAborted:
                            self._release_aborted(token)
                            return
                        if generation != self._generation:
                            return
                        continue
                    logger.warning("fetch failed after %d attempt(s): %s -> %s", attempt + 1, target_url, exc)
                    self._loading.value = False
                    return
        finally:
            unlink()
            if self.abort_handle is token:
                self.abort_handle = None

    async def _attempt(
        self,
        url: str,
        request_kwargs: Dict[str, Any],
        token: CancellationToken,
        generation: int,
        cache_key: str,
    ) -> None:
        result = await self.fetcher.request(url, signal=token, **request_kwargs)
        if token.cancelled:
            raise RequestAborted()
        if result.error is not None:
            if isinstance(result.error, TransportError):
                raise result.error
            raise TransportError(str(result.error) or "Fetch failed")
        if generation != self._generation:
            logger.debug("dropping stale response for %s", url)
            return

        transform = self.options.transform
        payload = result.data
        transformed = transform(payload) if (transform and payload is not None) else payload

        self._data.value = transformed
        self._status_code.value = result.status
        if self.options.enable_cache and transformed is not None:
            self.cache.save(cache_key, transformed)
        self._retry_count.value = 0
        self._loading.value = False

    def _release_aborted(self, token: CancellationToken) -> None:
        # abort() already did this; a caller-supplied signal did not
        if self.abort_handle is token:
            self.abort_handle = None
            self._loading.value = False

    def _link_external_signal(
        self, external: Optional[CancellationToken], token: CancellationToken
    ) -> Callable[[], None]:
        if external is None:
            return lambda: None

        async def _forward() -> None:
            await external.wait()
            token.cancel()

        task = asyncio.ensure_future(_forward())
        return task.cancel

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def execute(
        self,
        url: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "asyncio.Future[None]":
        """
        Schedules a fetch and returns an awaitable for it. Needs a running loop.

        The call is bound to the current abort epoch right away, so an
        ``abort()`` issued before the fetch starts cancels it as well.
        """
        epoch = self._abort_epoch
        if self._debouncer is not None:
            return self._debouncer(url, options, abort_epoch=epoch)
        return asyncio.ensure_future(self.fetch_data(url, options, abort_epoch=epoch))

    async def refresh(self) -> None:
        """Drops the cached entry (if caching) and fetches again, bypassing debounce."""
        if self.options.enable_cache:
            self.cache.clear(self.current_cache_key)
        await self.fetch_data()

    def abort(self) -> None:
        self._abort_epoch += 1
        if self.abort_handle is not None:
            self.abort_handle.cancel()
            self.abort_handle = None
            self._loading.value = False

    def update_params(self, new_params: PathParams) -> None:
        self.params.value = {**self.params.value, **new_params}

    def update_query(self, new_query: QueryParams) -> None:
        self.query.value = {**self.query.value, **new_query}

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def _schedule(self) -> None:
        """Single entry point for the initial auto-fetch and URL-change refetches."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop, auto-fetch skipped; await execute() instead")
            return
        fut = self.execute()
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)

    async def wait_pending(self) -> None:
        """Waits for every scheduled (auto) fetch to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def dispose(self) -> None:
        """Tear-down: abort, drop timers and watchers."""
        self.abort()
        if self._debouncer is not None:
            self._debouncer.cancel()
        for fut in list(self._pending):
            fut.cancel()
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        self.final_url.dispose()


def use_fetch_data(url: MaybeRef[str], **kwargs: Any) -> FetchData[Any]:
    """
    Shorthand: keyword arguments are split between FetchDataOptions fields and
    FetchData collaborators (fetcher, store, base_url, settings, clock).
    """
    collaborator_keys = {"fetcher", "store", "base_url", "settings", "clock"}
    collaborators = {k: kwargs.pop(k) for k in list(kwargs) if k in collaborator_keys}
    return FetchData(url, FetchDataOptions(**kwargs), **collaborators)
