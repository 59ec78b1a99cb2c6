"""Graph node handles shared by Ref, Computed and Effect.

Source: something that can be read and observed (Ref, Computed).
Observer: something that reads sources during a tracked run (Computed, Effect).
Computed is both, which is what lets change marks travel through it.
"""

from __future__ import annotations

import weakref

from ripplefx import _anchor

# Observer states, ordered by severity.
CLEAN = 0
CHECK = 1  # some transitive source may have changed
DIRTY = 2  # a direct source changed


class Node:
    """Identity handle. All state lives in _anchor under self._id.

    The finalizer only releases a handle nobody references. Computeds and
    effects are held by _anchor.nodes from construction until dispose(), so in
    practice it fires for Refs and for disposed observers.
    """

    __slots__ = ("_id", "__weakref__")

    def __init__(self) -> None:
        self._id = _anchor.new_id()
        weakref.finalize(self, _anchor.release, self._id)


class Source(Node):
    __slots__ = ()

    def _init_source(self, value: object, equals) -> None:
        _anchor.values[self._id] = value
        _anchor.versions[self._id] = 0
        _anchor.subscribers[self._id] = {}
        _anchor.equality[self._id] = equals

    @property
    def version(self) -> int:
        """Bumped every time the observed value changes."""
        return _anchor.versions[self._id]

    @property
    def subscriber_count(self) -> int:
        return len(_anchor.subscribers[self._id])


class Observer(Node):
    __slots__ = ()

    def _init_observer(self, fn) -> None:
        _anchor.fns[self._id] = fn
        _anchor.sources[self._id] = {}
        _anchor.states[self._id] = DIRTY

    @property
    def dirty(self) -> bool:
        return _anchor.states.get(self._id, DIRTY) != CLEAN

    @property
    def source_count(self) -> int:
        return len(_anchor.sources.get(self._id, ()))

    def _raise_state(self, state: int) -> int:
        """Raise our state to at least `state`; return the previous one."""
        previous = _anchor.states.get(self._id, DIRTY)
        if state > previous:
            _anchor.states[self._id] = state
        return previous

    def _sources_changed(self) -> bool:
        """Pull computed sources up to date and compare the versions we saw.

        Sources are visited in the order they were first read, and we stop at
        the first change, so a branch that is about to be dropped is not
        recomputed needlessly.
        """
        for source_id, seen in list(_anchor.sources.get(self._id, {}).items()):
            node = _anchor.nodes.get(source_id)
            if node is not None:
                node._refresh()
            if _anchor.versions.get(source_id) != seen:
                return True
        return False
