"""Tests for dependency tracking: dynamic edges, nesting and cleanup."""

import pytest

from ripplefx import _anchor
from ripplefx import computed, effect, ref, untracked
from ripplefx._tracking import current_observer, run_tracked, track_read


class TestDynamicDependencies:
    def test_effect_follows_the_taken_branch(self):
        cond = ref(True)
        a = ref("a1")
        b = ref("b1")
        log = []
        effect(lambda: log.append(a() if cond() else b()))
        assert log == ["a1"]

        cond.value = False
        assert log == ["a1", "b1"]

        a.value = "a2"  # no longer read
        assert log == ["a1", "b1"]

        b.value = "b2"
        assert log == ["a1", "b1", "b2"]

    def test_stale_edges_removed(self):
        cond = ref(True)
        a = ref(1)
        b = ref(2)
        e = effect(lambda: a() if cond() else b())
        assert a.subscriber_count == 1
        assert b.subscriber_count == 0
        assert e.source_count == 2

        cond.value = False
        assert a.subscriber_count == 0
        assert b.subscriber_count == 1
        assert e.source_count == 2

    def test_repeated_reads_record_one_edge(self):
        a = ref(1)
        e = effect(lambda: a() + a() + a())
        assert a.subscriber_count == 1
        assert e.source_count == 1

    def test_edges_cleaned_up_when_run_raises(self):
        cond = ref(True)
        a = ref(1)
        b = ref(2)

        def fn():
            if cond():
                a()
            else:
                raise RuntimeError("no b for you")

        effect(fn)
        with pytest.raises(RuntimeError):
            cond.value = False
        assert a.subscriber_count == 0
        assert cond.subscriber_count == 1
        assert current_observer.get() is None


class TestNesting:
    def test_reads_attribute_to_innermost_observer(self):
        outer_src = ref(1)
        inner_src = ref(2)
        inner = computed(lambda: inner_src() * 10)
        e = effect(lambda: (outer_src(), inner()))

        assert e.source_count == 2  # outer_src and inner, not inner_src
        assert inner.source_count == 1
        assert inner_src.subscriber_count == 1

    def test_observer_restored_after_nested_run(self):
        a = ref(1)
        b = ref(2)
        c = computed(lambda: a() + 1)
        e = effect(lambda: (c(), b()))
        assert b.subscriber_count == 1
        assert e.source_count == 2


class TestTrackerPrimitives:
    def test_track_read_without_observer_is_noop(self):
        a = ref(1)
        track_read(a._id)
        assert a.subscriber_count == 0

    def test_run_tracked_rebuilds_sources(self):
        a = ref(1)
        b = ref(2)
        e = effect(lambda: None)
        run_tracked(e._id, lambda: (a(), b()))
        assert set(_anchor.sources[e._id]) == {a._id, b._id}
        run_tracked(e._id, b)
        assert set(_anchor.sources[e._id]) == {b._id}
        assert a.subscriber_count == 0
        e.dispose()

    def test_run_tracked_returns_result(self):
        e = effect(lambda: None)
        assert run_tracked(e._id, lambda: 7) == 7
        e.dispose()

    def test_untracked(self):
        a = ref(1)
        b = ref(2)
        log = []
        effect(lambda: log.append(a() + untracked(b)))
        b.value = 20
        assert log == [3]
        a.value = 10
        assert log == [3, 30]


class TestRelease:
    def test_collected_ref_releases_its_state(self):
        import gc

        r = ref(1)
        node_id = r._id
        assert node_id in _anchor.values
        del r
        gc.collect()
        assert node_id not in _anchor.values
        assert node_id not in _anchor.subscribers

    def test_disposed_effect_leaves_no_state(self):
        a = ref(1)
        e = effect(lambda: a())
        e.dispose()
        assert e._id not in _anchor.nodes
        assert e._id not in _anchor.sources
        assert a.subscriber_count == 0
