"""Scheduler — change propagation, effect queue and batching.

Propagation is two-phase. On write, direct subscribers are marked DIRTY and
everything further downstream is marked CHECK, without recomputing anything;
each node is visited at most once. Effects reached by the marks are queued.
The flush then pulls: a queued effect re-runs only if one of its sources
really produced a new version, and computeds are re-evaluated on demand, at
most once each.

Batching: writes inside a batch mark synchronously (reads stay fresh) but the
flush is deferred until the outermost batch exits.
"""

from __future__ import annotations

import logging
from collections import Counter

from ripplefx import _anchor
from ripplefx._node import CLEAN, DIRTY
from ripplefx.errors import PropagationCycleError

logger = logging.getLogger("ripplefx.scheduler")

DEFAULT_MAX_EFFECT_RUNS = 100

# Batch depth counter. When > 0, flushes are deferred.
_batch_depth: int = 0

# Effect ids awaiting a run, in the order they were first queued.
# A dict is used as an ordered set.
_pending: dict[int, None] = {}

_flushing: bool = False

_max_effect_runs: int = DEFAULT_MAX_EFFECT_RUNS


def set_max_effect_runs(limit: int) -> None:
    """Set how often a single effect may run within one flush.

    Exceeding it raises PropagationCycleError instead of looping forever.
    """
    global _max_effect_runs
    if limit < 1:
        raise ValueError(f"max effect runs must be at least 1, got {limit}")
    _max_effect_runs = limit


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, flush."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0:
        flush()


def _reopen(effect_ids: list[int]) -> None:
    """Let stale computeds upstream of discarded effects forward changes again.

    A computed only forwards a mark when it leaves the clean state. Once the
    effects that would have pulled it are dropped from the queue, nothing
    brings it back to clean, so the next write would stop there.
    """
    seen: set[int] = set()
    stack = list(effect_ids)
    while stack:
        for source_id in _anchor.sources.get(stack.pop(), ()):
            if source_id in seen:
                continue
            seen.add(source_id)
            if source_id in _anchor.nodes and _anchor.states.get(source_id) != CLEAN:
                _anchor.errored.add(source_id)
                stack.append(source_id)


def propagate(source_id: int, state: int) -> None:
    """Mark every subscriber of source_id with at least `state`."""
    for observer_id in list(_anchor.subscribers.get(source_id, ())):
        node = _anchor.nodes.get(observer_id)
        if node is not None:
            node._mark(state)


def notify(source_id: int) -> None:
    """A source changed: mark its dependents, then flush unless batching."""
    propagate(source_id, DIRTY)
    if _batch_depth == 0:
        flush()


def enqueue(effect_id: int) -> None:
    _pending[effect_id] = None


def dequeue(effect_id: int) -> None:
    _pending.pop(effect_id, None)


def flush() -> None:
    """Run queued effects until the queue is empty.

    Effects queued while flushing are appended and run in the same flush.
    A failing effect does not stop the others: failures are logged and
    re-raised once the queue has drained.
    """
    global _flushing
    if _flushing:
        # Re-entrant call from inside an effect: the outer loop picks it up.
        return
    _flushing = True
    runs: Counter[int] = Counter()
    errors: list[Exception] = []
    try:
        while _pending:
            effect_id = next(iter(_pending))
            del _pending[effect_id]
            effect = _anchor.nodes.get(effect_id)
            if effect is None:
                continue  # disposed while queued
            runs[effect_id] += 1
            if runs[effect_id] > _max_effect_runs:
                _reopen([effect_id, *_pending])
                _pending.clear()
                logger.error("Aborting flush: %r did not settle", effect)
                raise PropagationCycleError(effect, runs[effect_id] - 1)
            try:
                effect._update()
            except Exception as exc:
                logger.exception("Effect %r failed during flush", effect)
                errors.append(exc)
    finally:
        _flushing = False

    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise ExceptionGroup(f"{len(errors)} effects failed during flush", errors)


def get_pending_count() -> int:
    """Number of effects waiting to run. Useful for testing."""
    return len(_pending)
