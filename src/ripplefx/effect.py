"""Effects — side effects triggered by reactive state changes.

Unlike a Computed (lazy, only evaluated on read), an Effect runs as soon as it
is created and re-runs on every flush after one of the sources it read has
changed. Sources are re-tracked on each run, so branches not taken stop
triggering it.

Two flavors:
- effect(fn): runs fn immediately, re-runs when anything it read changes.
  If fn returns a callable, it is called before the next run and on dispose.
- watch(getter, callback): tracks getter, calls callback(new, old) only when
  getter's result changes.

All state lives in _anchor — instances are thin handles holding an _id.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from ripplefx import _anchor, _scheduler
from ripplefx._node import CHECK, CLEAN, DIRTY, Observer
from ripplefx._tracking import tracked, untracked

T = TypeVar("T")

_UNSET = object()


class Effect(Observer):
    """A reactive side effect that re-runs when its dependencies change.

    Effects run eagerly (unlike Computed which is lazy). Use the handle
    returned by effect() to dispose() it.
    """

    __slots__ = ()

    def __init__(self, fn: Callable[[], object]) -> None:
        super().__init__()
        self._init_observer(fn)
        _anchor.nodes[self._id] = self

    @property
    def _fn(self) -> Callable[[], object]:
        return _anchor.fns[self._id]

    @property
    def disposed(self) -> bool:
        return self._id not in _anchor.nodes

    def _mark(self, state: int) -> None:
        self._raise_state(state)
        _scheduler.enqueue(self._id)

    def _update(self) -> None:
        """Called by the scheduler's flush. Re-runs only if really needed."""
        if self.disposed:
            return
        state = _anchor.states[self._id]
        if state == CLEAN:
            return  # already re-ran earlier in this flush
        if state == CHECK:
            try:
                changed = self._sources_changed()
            except Exception:
                _anchor.states[self._id] = DIRTY
                raise
            if not changed:
                _anchor.states[self._id] = CLEAN
                return
        self._run()

    def _run(self) -> None:
        """Run the effect function, re-tracking dependencies."""
        self._cleanup()
        # Clean before running: writes made by fn itself must re-queue us.
        _anchor.states[self._id] = CLEAN
        with tracked(self._id):
            result = self._fn()
        if callable(result):
            if self.disposed:
                untracked(result)
            else:
                _anchor.cleanups[self._id] = result

    def _cleanup(self) -> None:
        cleanup = _anchor.cleanups.pop(self._id, None)
        if cleanup is not None:
            untracked(cleanup)

    def dispose(self) -> None:
        """Stop this effect. Disconnects from all dependencies."""
        if self.disposed:
            return
        del _anchor.nodes[self._id]
        _scheduler.dequeue(self._id)
        _anchor.unlink(self._id)
        _anchor.sources.pop(self._id, None)
        self._cleanup()

    def __enter__(self) -> Effect:
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def __repr__(self) -> str:
        name = getattr(self._fn, "__name__", "effect")
        state = "disposed" if self.disposed else "active"
        return f"Effect({name}, {state})"


def effect(fn: Callable[[], object]) -> Effect:
    """Run fn immediately, then re-run whenever anything it reads changes.

    Returns the Effect (call .dispose() to stop). If the first run, or the
    flush of what it wrote, raises, the effect is disposed and the exception
    propagates.

    Usage:
        count = ref(0)
        log = []

        handle = effect(lambda: log.append(count()))
        # log == [0] — ran immediately

        count.value = 1
        # log == [0, 1] — re-ran because count changed

        handle.dispose()
        count.value = 2
        # log == [0, 1] — stopped
    """
    e = Effect(fn)
    # Writes made by the first run are flushed after it returns, not inside it.
    _scheduler.begin_batch()
    try:
        e._run()
    except BaseException:
        e.dispose()
        _scheduler.end_batch()
        raise
    try:
        _scheduler.end_batch()
    except BaseException:
        # The caller never gets the handle, so it could never dispose it.
        e.dispose()
        raise
    return e


def watch(
    getter: Callable[[], T],
    callback: Callable[[T, T | None], None],
    *,
    immediate: bool = False,
) -> Effect:
    """Track getter; call callback(new, old) when its result changes.

    Unlike effect, the callback only fires when getter's *return value*
    changes, not on every dependency notification, and nothing it reads is
    tracked. With immediate=True it also fires once on setup, with old=None.

    Usage:
        first = ref("Alice")
        last = ref("Smith")

        names = []
        w = watch(
            lambda: f"{first()} {last()}",
            lambda new, old: names.append(new),
        )
        # names == [] — getter ran to establish deps, callback didn't fire

        first.value = "Bob"
        # names == ["Bob Smith"]

        w.dispose()
    """
    last: list[object] = [_UNSET]

    def watcher() -> None:
        new = getter()
        old = last[0]
        if old is _UNSET:
            last[0] = new
            if immediate:
                untracked(lambda: callback(new, None))
            return
        if old is new or old == new:
            return
        last[0] = new
        untracked(lambda: callback(new, old))

    return effect(watcher)
