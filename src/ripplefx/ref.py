"""Refs — mutable reactive values that track their readers.

When a Ref is read inside a computed or effect, the dependency is registered
automatically. When it is written, every dependent is marked and effects are
flushed (or deferred, inside a batch).

Every write counts as a change: the version is bumped and dependents are
notified even if the new value equals the old one. Pass `equals` to opt into
deduplication.

Thread safety: call set_scheduler() once from the thread that owns the graph.
After that, any .set() from another thread is marshalled through it; writes on
the owning thread stay synchronous.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from ripplefx import _anchor, _scheduler
from ripplefx._node import Source
from ripplefx._tracking import track_read

T = TypeVar("T")

_scheduler_fn = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the thread scheduler used for cross-thread Ref writes.

    Call once from the thread that owns the graph:
        ripplefx.set_scheduler(loop.call_soon_threadsafe)

    Pass None to go back to direct writes from any thread.
    """
    global _scheduler_fn, _scheduler_thread
    _scheduler_fn = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


class Ref(Source, Generic[T]):
    """A mutable value with automatic dependency tracking."""

    __slots__ = ()

    def __init__(self, value: T, *, equals: Callable[[T, T], bool] | None = None) -> None:
        super().__init__()
        self._init_source(value, equals)

    def get(self) -> T:
        """Read the value. If inside a computed or effect, registers the dependency."""
        track_read(self._id)
        return _anchor.values[self._id]

    __call__ = get

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return _anchor.values[self._id]

    def set(self, value: T) -> None:
        """Write a new value. Marshals writes coming from foreign threads."""
        if _scheduler_fn is not None and threading.current_thread() != _scheduler_thread:
            _scheduler_fn(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)

    def _set_direct(self, value: T) -> None:
        equals = _anchor.equality[self._id]
        if equals is not None and equals(_anchor.values[self._id], value):
            return
        _anchor.values[self._id] = value
        _anchor.versions[self._id] += 1
        _scheduler.notify(self._id)

    def update(self, fn: Callable[[T], T]) -> None:
        """Write fn(current value). The read is not tracked."""
        self.set(fn(self.peek()))

    value = property(get, set)

    def __repr__(self) -> str:
        return f"Ref({_anchor.values[self._id]!r})"


def ref(value: T, *, equals: Callable[[T, T], bool] | None = None) -> Ref[T]:
    """Create a Ref.

    Usage:
        count = ref(0)
        count()          # 0, tracked
        count.value = 5  # notifies dependents
        count.value      # 5

        name = ref("a", equals=operator.eq)
        name.set("a")    # no-op: equal writes are ignored for this ref
    """
    return Ref(value, equals=equals)
