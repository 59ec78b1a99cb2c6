"""Dependency tracking engine — the heart of ripplefx.

Uses a contextvar to remember which observer (computed or effect) is currently
running. Any tracked read made while it is set records an edge between the
source that was read and that observer, together with the source version that
was seen. Each thread and asyncio task gets its own frame stack.

Edges are rebuilt from scratch on every run: sources read last time but not
this time are unsubscribed when the run exits, however it exits.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from ripplefx import _anchor

T = TypeVar("T")

# Id of the innermost running observer, or None outside any tracked run.
current_observer: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "current_observer", default=None
)


def track_read(node_id: int) -> None:
    """Record that the active observer (if any) read node_id."""
    observer_id = current_observer.get()
    if observer_id is None or observer_id == node_id:
        return
    sources = _anchor.sources.get(observer_id)
    subs = _anchor.subscribers.get(node_id)
    if sources is None or subs is None:
        # observer disposed mid-run, or source already released
        return
    sources[node_id] = _anchor.versions[node_id]
    subs[observer_id] = None


@contextmanager
def tracked(observer_id: int) -> Iterator[None]:
    """Make observer_id the active observer for the duration of the block."""
    previous = _anchor.sources.get(observer_id, {})
    _anchor.sources[observer_id] = {}
    token = current_observer.set(observer_id)
    try:
        yield
    finally:
        current_observer.reset(token)
        fresh = _anchor.sources.get(observer_id, {})
        for source_id in previous.keys() - fresh.keys():
            subs = _anchor.subscribers.get(source_id)
            if subs is not None:
                subs.pop(observer_id, None)


def run_tracked(observer_id: int, fn: Callable[[], T]) -> T:
    with tracked(observer_id):
        return fn()


def untracked(fn: Callable[[], T]) -> T:
    """Run fn without recording any dependencies on the active observer.

    Usage:
        @effect
        def log_changes():
            # re-runs when `count` changes, but not when `label` does
            print(untracked(label.get), count.get())
    """
    token = current_observer.set(None)
    try:
        return fn()
    finally:
        current_observer.reset(token)
