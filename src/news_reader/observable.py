# news_reader/observable.py
"""
Minimal observable state cells.

A ``Ref`` holds one value and notifies subscribers when it is replaced.
A ``Computed`` derives its value from other cells and re-evaluates when
any of them changes. Subscribers are plain callables ``(new, old)``;
``subscribe()`` returns the function that removes the subscription.
"""
from __future__ import annotations

from typing import Any, Callable, Generic, List, TypeVar, Union

T = TypeVar("T")

Listener = Callable[[Any, Any], None]
Unsubscribe = Callable[[], None]


_SCALARS = (str, int, float, bool, bytes, type(None))


def _has_changed(old: Any, new: Any) -> bool:
    if old is new:
        return False
    if isinstance(old, _SCALARS) and isinstance(new, _SCALARS):
        return old != new or type(old) is not type(new)
    return True


class Observable(Generic[T]):
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    @property
    def value(self) -> T:
        raise NotImplementedError

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def _notify(self, new: Any, old: Any) -> None:
        # copy: a listener may unsubscribe itself while we iterate
        for listener in list(self._listeners):
            listener(new, old)

    def readonly(self) -> "ReadonlyRef[T]":
        return ReadonlyRef(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class Ref(Observable[T]):
    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new: T) -> None:
        old = self._value
        self._value = new
        if _has_changed(old, new):
            self._notify(new, old)


class Computed(Observable[T]):
    """Read-only cell recomputed whenever one of its sources changes."""

    def __init__(self, getter: Callable[[], T], *sources: Observable[Any]) -> None:
        super().__init__()
        self._getter = getter
        self._value = getter()
        self._unsubscribers = [src.subscribe(self._on_source_change) for src in sources]

    @property
    def value(self) -> T:
        return self._value

    def _on_source_change(self, _new: Any, _old: Any) -> None:
        old = self._value
        self._value = self._getter()
        if _has_changed(old, self._value):
            self._notify(self._value, old)

    def dispose(self) -> None:
        for unsub in self._unsubscribers:
            unsub()
        self._unsubscribers = []


class ReadonlyRef(Observable[T]):
    """View over another cell that exposes ``value`` without a setter."""

    def __init__(self, source: Observable[T]) -> None:
        super().__init__()
        self._source = source

    @property
    def value(self) -> T:
        return self._source.value

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._source.subscribe(listener)


MaybeRef = Union[T, Observable[T], Callable[[], T]]


def to_value(source: "MaybeRef[T]") -> T:
    """Unwrap a plain value, an observable or a zero-argument getter."""
    if isinstance(source, Observable):
        return source.value
    if callable(source):
        return source()
    return source


def is_observable(source: Any) -> bool:
    return isinstance(source, Observable)


def watch(source: Observable[T], callback: Listener, *, immediate: bool = False) -> Unsubscribe:
    unsubscribe = source.subscribe(callback)
    if immediate:
        callback(source.value, None)
    return unsubscribe


__all__ = [
    "Observable",
    "Ref",
    "Computed",
    "ReadonlyRef",
    "MaybeRef",
    "to_value",
    "is_observable",
    "watch",
]
