"""Tests for Effect, create_effect and watch_effect."""

import logging

import pytest

from reftrack import Effect, create_effect, ref, watch_effect


class TestEffect:
    def test_does_not_run_on_creation(self):
        runs = []
        create_effect(lambda: runs.append(1))
        assert runs == []

    def test_reruns_once_per_trigger(self):
        r = ref(0)
        runs = []
        effect = Effect(lambda: runs.append(r.get()))
        effect.run()
        r.set(1)
        r.set(2)
        assert runs == [0, 1, 2]

    def test_equal_write_does_not_rerun(self):
        r = ref(0)
        runs = []
        Effect(lambda: runs.append(r.get())).run()
        r.set(0)
        assert runs == [0]

    def test_stop_prevents_reruns(self):
        r = ref(0)
        runs = []
        effect = Effect(lambda: runs.append(r.get()))
        effect.run()
        effect.stop()
        r.set(1)
        assert runs == [0]

    def test_stop_removes_all_edges(self, graph):
        a, b = ref(0), ref(0)
        effect = Effect(lambda: (a.get(), b.get()))
        effect.run()
        assert graph.edge_count() == 2
        effect.stop()
        assert graph.edge_count() == 0

    def test_stopped_effect_never_runs(self):
        runs = []
        effect = Effect(lambda: runs.append(1))
        effect.stop()
        effect.run()
        assert runs == []

    def test_stop_is_idempotent(self):
        effect = Effect(lambda: None)
        effect.stop()
        effect.stop()
        assert effect.stopped

    def test_stop_from_inside_body(self):
        r = ref(0)
        runs = []
        holder = {}

        def body():
            runs.append(r.get())
            if r.get() > 0:
                holder["effect"].stop()

        holder["effect"] = Effect(body)
        holder["effect"].run()
        r.set(1)
        r.set(2)
        assert runs == [0, 1]
        assert holder["effect"].state == "stopped"

    def test_states(self):
        seen = []
        holder = {}
        holder["effect"] = Effect(lambda: seen.append(holder["effect"].state))
        assert holder["effect"].state == "idle"
        holder["effect"].run()
        assert seen == ["running"]
        assert holder["effect"].state == "idle"
        assert holder["effect"].active

    def test_repr(self):
        def render():
            pass

        assert repr(Effect(render)) == "Effect(render, idle)"


class TestAdditiveTracking:
    def test_edges_accumulate_across_runs(self):
        """Reading a on run 1 and b on run 2 leaves the effect subscribed to both."""
        a, b = ref(0), ref(0)
        use_b = [False]
        runs = []

        def body():
            runs.append(1)
            if use_b[0]:
                b.get()
            else:
                a.get()

        effect = Effect(body)
        effect.run()
        use_b[0] = True
        effect.run()
        assert len(runs) == 2

        a.set(1)
        assert len(runs) == 3
        b.set(1)
        assert len(runs) == 4

    def test_edges_survive_until_stop(self, graph):
        a = ref(0)
        read = [True]
        effect = Effect(lambda: a.get() if read[0] else None)
        effect.run()
        read[0] = False
        effect.run()
        assert graph.subscribers(a, "value") == (effect,)
        effect.stop()
        assert graph.subscribers(a, "value") == ()


class TestEffectErrors:
    def test_exception_propagates_to_run_caller(self, graph):
        def boom():
            raise ValueError("boom")

        effect = Effect(boom)
        with pytest.raises(ValueError, match="boom"):
            effect.run()
        assert graph.get_active() is None
        assert effect.state == "idle"

    def test_exception_propagates_to_writer(self):
        r = ref(0)

        def body():
            if r.get() == 1:
                raise ValueError("bad value")

        Effect(body).run()
        with pytest.raises(ValueError, match="bad value"):
            r.set(1)
        assert r.get() == 1

    def test_effect_runnable_after_exception(self):
        r = ref(0)
        runs = []

        def body():
            value = r.get()
            runs.append(value)
            if value == 1:
                raise ValueError("bad value")

        Effect(body).run()
        with pytest.raises(ValueError):
            r.set(1)
        r.set(2)
        assert runs == [0, 1, 2]

    def test_reads_after_failure_are_untracked(self, graph):
        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            Effect(boom).run()
        other = ref(0)
        other.get()
        assert graph.subscribers(other, "value") == ()

    def test_exception_logged_at_debug(self, caplog):
        def boom():
            raise ValueError("boom")

        with caplog.at_level(logging.DEBUG, logger="reftrack.effect"):
            with pytest.raises(ValueError):
                Effect(boom).run()
        assert "raised" in caplog.text


class TestWatchEffect:
    def test_runs_immediately(self):
        r = ref(10)
        log = []
        watch_effect(lambda: log.append(r.get()))
        assert log == [10]

    def test_reruns_on_change(self):
        r = ref(10)
        log = []
        watch_effect(lambda: log.append(r.get()))
        r.set(20)
        assert log == [10, 20]

    def test_stop_handle(self):
        r = ref(10)
        log = []
        stop = watch_effect(lambda: log.append(r.get()))
        stop()
        r.set(20)
        assert log == [10]

    def test_not_immediate_stays_dormant(self):
        r = ref(10)
        log = []
        watch_effect(lambda: log.append(r.get()), immediate=False)
        r.set(20)
        assert log == []

    def test_self_write_converges(self):
        """A write back to a tracked ref re-runs until the value settles."""
        r = ref(0)
        runs = []

        def clamp():
            value = r.get()
            runs.append(value)
            if value < 3:
                r.set(value + 1)

        watch_effect(clamp)
        assert r.get() == 3
        assert runs[0] == 0
        assert 3 in runs
