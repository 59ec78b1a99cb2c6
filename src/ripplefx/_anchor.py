"""Data anchor — plain Python structures that hold all reactive graph state.

Handles (Ref, Computed, Effect) are thin objects holding an _id. Edges between
them are id relations stored here, never object references, so a subscriber
never keeps its sources alive and vice versa.
"""

import itertools

# Source state (Ref + Computed)
values: dict[int, object] = {}  # ref value / computed cached value
versions: dict[int, int] = {}
subscribers: dict[int, dict[int, None]] = {}  # source_id -> observer ids, in subscription order
equality: dict[int, object] = {}  # node_id -> equals(old, new) or None

# Observer state (Computed + Effect)
sources: dict[int, dict[int, int]] = {}  # observer_id -> {source_id: version seen}
states: dict[int, int] = {}
fns: dict[int, object] = {}
cleanups: dict[int, object] = {}  # effect_id -> cleanup callable
errored: set[int] = set()  # computeds whose last evaluation raised
evaluating: set[int] = set()

# Live observers, looked up by id during propagation. Held until dispose().
nodes: dict[int, object] = {}

_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def unlink(observer_id: int) -> None:
    """Drop every edge from observer_id to its sources."""
    for source_id in sources.get(observer_id, ()):
        subs = subscribers.get(source_id)
        if subs is not None:
            subs.pop(observer_id, None)
    if observer_id in sources:
        sources[observer_id] = {}


def release(node_id: int) -> None:
    """Forget everything about node_id. Called when its handle is collected."""
    unlink(node_id)
    for table in (values, versions, subscribers, equality, sources, states, fns, cleanups, nodes):
        table.pop(node_id, None)
    errored.discard(node_id)
    evaluating.discard(node_id)
