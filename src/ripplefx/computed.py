"""Computed values — derived state with automatic dependency tracking.

A Computed wraps a function. When evaluated, it tracks which sources the
function reads and caches the result. When a source changes, the computed is
marked and the mark travels on to its own dependents, but nothing is
recomputed until the value is read again.

Its version only moves when the recomputed value differs from the cached one,
so dependents of a computed whose output did not change are left alone.

All state lives in _anchor — instances are thin handles holding an _id.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from ripplefx import _anchor, _scheduler
from ripplefx._node import CHECK, CLEAN, DIRTY, Observer, Source
from ripplefx._tracking import track_read, tracked
from ripplefx.errors import CircularDependencyError

T = TypeVar("T")

_UNSET = object()


def _same(old: object, new: object) -> bool:
    return old is new or old == new


class Computed(Source, Observer, Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ()

    def __init__(self, fn: Callable[[], T], *, equals: Callable[[T, T], bool] | None = None) -> None:
        super().__init__()
        self._init_source(_UNSET, equals)
        self._init_observer(fn)
        _anchor.nodes[self._id] = self

    @property
    def _fn(self) -> Callable[[], T]:
        return _anchor.fns[self._id]

    def get(self) -> T:
        """Read the computed value. Recomputes first if anything upstream changed."""
        try:
            self._refresh()
        finally:
            # Track even when evaluation failed, so a later fix upstream
            # still reaches whoever tried to read us.
            track_read(self._id)
        return _anchor.values[self._id]

    __call__ = get

    value = property(get)

    def peek(self) -> T:
        """Read the value without registering a dependency. Still recomputes."""
        self._refresh()
        return _anchor.values[self._id]

    def _refresh(self) -> None:
        """Bring the cached value up to date."""
        if self._id in _anchor.evaluating:
            raise CircularDependencyError(f"{self!r} depends on itself")
        state = _anchor.states[self._id]
        if state == CLEAN:
            return
        try:
            if state == DIRTY or self._sources_changed():
                self._evaluate()
            else:
                _anchor.states[self._id] = CLEAN
        except Exception:
            _anchor.states[self._id] = DIRTY
            _anchor.errored.add(self._id)
            raise

    def _evaluate(self) -> None:
        # Registered here as well as in __init__ so that a disposed computed
        # that is read again rejoins the graph.
        _anchor.nodes[self._id] = self
        _anchor.states[self._id] = CLEAN
        _anchor.evaluating.add(self._id)
        try:
            with tracked(self._id):
                value = self._fn()
        finally:
            _anchor.evaluating.discard(self._id)

        _anchor.errored.discard(self._id)
        old = _anchor.values[self._id]
        equals = _anchor.equality[self._id] or _same
        if old is _UNSET or not equals(old, value):
            _anchor.values[self._id] = value
            _anchor.versions[self._id] += 1

    def _mark(self, state: int) -> None:
        """Called during propagation when something upstream changed.

        We don't recompute eagerly. Our own dependents only get a CHECK mark,
        and only the first time we leave the clean state, so each computed
        forwards a change at most once however many paths lead to it.

        A computed whose last evaluation raised never got back to clean, so it
        forwards the next change once more to give its readers a retry.
        """
        previous = self._raise_state(state)
        if previous == CLEAN or self._id in _anchor.errored:
            _anchor.errored.discard(self._id)
            _scheduler.propagate(self._id, CHECK)

    def dispose(self) -> None:
        """Disconnect from all dependencies and drop the cached value.

        A disposed computed stays usable: reading it again re-evaluates from
        scratch and reconnects.
        """
        _anchor.unlink(self._id)
        _anchor.nodes.pop(self._id, None)
        _anchor.states[self._id] = DIRTY
        _anchor.values[self._id] = _UNSET
        _anchor.errored.discard(self._id)

    def __repr__(self) -> str:
        name = getattr(self._fn, "__name__", "computed")
        val = _anchor.values[self._id]
        state = "dirty" if self.dirty or val is _UNSET else f"cached={val!r}"
        return f"Computed({name}, {state})"


def computed(fn: Callable[[], T] | None = None, *, equals: Callable[[T, T], bool] | None = None):
    """Decorator/factory to create a Computed from a function.

    Usage:
        count = ref(1)

        @computed
        def doubled():
            return count() * 2

        doubled()  # 2
        count.value = 5
        doubled()  # 10

        @computed(equals=lambda a, b: abs(a - b) < 1e-9)
        def ratio():
            ...
    """
    if fn is None:
        return lambda f: Computed(f, equals=equals)
    return Computed(fn, equals=equals)
