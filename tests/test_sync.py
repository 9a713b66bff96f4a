"""
Tests for change detection, reload decisions and the debounced sync engine.
Engine tests run on a private event loop via asyncio.run().
"""

import asyncio

from livegen.models import (
    FULL_REFRESH, NONE, SOFT_INVALIDATE, ChangeDelta, FileSnapshot, GeneratedFile,
    ReloadDecision,
)
from livegen.sandbox import SandboxError
from livegen.sync import (
    ReloadPolicy, SyncEngine, build_mount_tree, compute_delta, is_structural, plan_sync,
)


def delta_of(*paths):
    return ChangeDelta(added=[GeneratedFile(p, "x") for p in paths])


# ── Change detection ─────────────────────────────────────────────────


class TestDelta:
    def test_added_modified_removed(self):
        prev = {"a.ts": "1", "b.ts": "2", "c.ts": "3"}
        new = {"a.ts": "1", "b.ts": "changed", "d.ts": "4"}
        d = compute_delta(prev, new)
        assert [f.path for f in d.added] == ["d.ts"]
        assert [f.path for f in d.modified] == ["b.ts"]
        assert d.removed == ["c.ts"]
        assert len(d) == 3

    def test_identical_content_is_no_change(self):
        d = compute_delta({"a.ts": "1"}, [GeneratedFile("./a.ts", "1")])
        assert not d

    def test_partial_incoming_without_removal(self):
        d = compute_delta({"a.ts": "1", "b.ts": "2"}, [GeneratedFile("a.ts", "9")],
                          detect_removed=False)
        assert d.removed == []
        assert d.paths() == ["a.ts"]

    def test_snapshot_as_input(self):
        snap = FileSnapshot([GeneratedFile("src/App.tsx", "x")])
        assert [f.path for f in compute_delta({}, snap).added] == ["src/App.tsx"]

    def test_mount_tree(self):
        tree = build_mount_tree([
            GeneratedFile("package.json", "{}"),
            GeneratedFile("src/App.tsx", "app"),
            GeneratedFile("src/components/Nav.tsx", "nav"),
        ])
        assert tree == {
            "package.json": {"file": {"contents": "{}"}},
            "src": {"directory": {
                "App.tsx": {"file": {"contents": "app"}},
                "components": {"directory": {"Nav.tsx": {"file": {"contents": "nav"}}}},
            }},
        }

    def test_structural_names(self):
        assert is_structural("package.json")
        assert is_structural("./vite.config.ts")
        assert is_structural("tailwind.config.js")
        assert not is_structural("src/App.tsx")


# ── Reload policy ────────────────────────────────────────────────────


class TestPolicy:
    def test_thresholds(self):
        p = ReloadPolicy()
        assert p.decide(ChangeDelta()) == ReloadDecision(NONE, 0)
        assert p.decide(delta_of("src/a.tsx")) == ReloadDecision(SOFT_INVALIDATE, 200)
        assert p.decide(delta_of("src/a.tsx", "src/b.tsx")) == ReloadDecision(SOFT_INVALIDATE, 200)
        assert p.decide(delta_of("src/a.tsx", "src/b.tsx", "src/c.tsx")) == ReloadDecision(FULL_REFRESH, 600)
        assert p.decide(delta_of("package.json")) == ReloadDecision(FULL_REFRESH, 1000)

    def test_removal_counts(self):
        p = ReloadPolicy()
        assert p.decide(ChangeDelta(removed=["src/a.tsx"])).action == SOFT_INVALIDATE
        assert p.decide(ChangeDelta(removed=["index.html"])).action == FULL_REFRESH

    def test_coalesce_keeps_stronger(self):
        p = ReloadPolicy()
        p.coalesce(ReloadDecision(SOFT_INVALIDATE, 200))
        p.coalesce(ReloadDecision(FULL_REFRESH, 600))
        assert p.coalesce(ReloadDecision(SOFT_INVALIDATE, 200)) == ReloadDecision(FULL_REFRESH, 600)
        assert p.coalesce(ReloadDecision(FULL_REFRESH, 1000)) == ReloadDecision(FULL_REFRESH, 1000)
        assert p.take() == ReloadDecision(FULL_REFRESH, 1000)
        assert p.take() == ReloadDecision(NONE, 0)

    def test_plan_is_pure(self):
        prev = {"a.ts": "1"}
        plan = plan_sync(prev, {"a.ts": "2"})
        assert prev == {"a.ts": "1"}
        assert plan.decision.action == SOFT_INVALIDATE
        assert plan.mount_tree == {"a.ts": {"file": {"contents": "2"}}}


# ── Engine ───────────────────────────────────────────────────────────


def engine_for(sandbox, debounce_ms=20, **kw):
    snap = FileSnapshot()
    policy = ReloadPolicy(structural_delay=30, bulk_delay=20, soft_delay=10)
    return snap, SyncEngine(sandbox, snap, policy, debounce_ms=debounce_ms, **kw)


class TestEngine:
    def test_debounce_collapses_requests(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            for i in range(5):
                snap.set(f"src/f{i}.ts", "x")
                engine.request_sync()
                await asyncio.sleep(0.005)
            await asyncio.sleep(0.1)
            return engine

        engine = asyncio.run(scenario())
        assert engine.passes == 1
        assert len(fake_sandbox.mounts) == 1
        assert len(engine.mirror) == 5

    def test_request_during_pass_runs_exactly_one_more(self, slow_sandbox):
        async def scenario():
            snap, engine = engine_for(slow_sandbox, debounce_ms=0)
            snap.set("src/a.ts", "1")
            engine.request_sync()
            await asyncio.sleep(0.01)
            assert engine.in_flight
            for i in range(3):
                snap.set("src/a.ts", f"v{i}")
                engine.request_sync()
                await asyncio.sleep(0.005)
            await engine.flush()
            return engine

        engine = asyncio.run(scenario())
        assert engine.passes == 2
        assert len(slow_sandbox.mounts) == 2
        assert engine.mirror == {"src/a.ts": "v2"}

    def test_sandbox_error_keeps_mirror(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            snap.set("src/a.ts", "1")
            fake_sandbox.fail_next = 1
            first = await engine.flush()
            mirror_after_failure = dict(engine.mirror)
            second = await engine.flush()
            return first, mirror_after_failure, second, engine

        first, mirror_after_failure, second, engine = asyncio.run(scenario())
        assert isinstance(first.error, SandboxError)
        assert not first.ok
        assert mirror_after_failure == {}
        assert second.ok
        assert [f.path for f in second.delta.added] == ["src/a.ts"]
        assert engine.mirror == {"src/a.ts": "1"}

    def test_only_changed_files_are_mounted(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            snap.set("src/a.ts", "1")
            snap.set("src/b.ts", "2")
            await engine.flush()
            snap.set("src/b.ts", "3")
            await engine.flush()
            await engine.flush()

        asyncio.run(scenario())
        assert fake_sandbox.mounts[-1] == {"src": {"directory": {"b.ts": {"file": {"contents": "3"}}}}}
        assert len(fake_sandbox.mounts) == 2

    def test_removal_reaches_sandbox(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            snap.set("src/a.ts", "1")
            snap.set("src/b.ts", "2")
            await engine.flush()
            snap.delete("src/b.ts")
            result = await engine.flush()
            return result, engine

        result, engine = asyncio.run(scenario())
        assert fake_sandbox.removed == ["src/b.ts"]
        assert result.delta.removed == ["src/b.ts"]
        assert "src/b.ts" not in engine.mirror

    def test_reloads_coalesce(self, fake_sandbox):
        seen = []

        async def on_reload(decision):
            seen.append(decision)

        async def scenario():
            snap, engine = engine_for(fake_sandbox, on_reload=on_reload)
            snap.set("src/a.ts", "1")
            await engine.flush()
            snap.set("package.json", "{}")
            await engine.flush()
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert fake_sandbox.refreshes == [ReloadDecision(FULL_REFRESH, 30)]
        assert seen == [ReloadDecision(FULL_REFRESH, 30)]

    def test_plain_callback(self, fake_sandbox):
        seen = []

        async def scenario():
            snap, engine = engine_for(fake_sandbox, on_reload=seen.append)
            snap.set("src/a.ts", "1")
            await engine.flush()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert seen == [ReloadDecision(SOFT_INVALIDATE, 10)]

    def test_failed_background_task_is_logged(self, fake_sandbox, caplog):
        def on_reload(decision):
            raise RuntimeError("reload hook broke")

        async def scenario():
            snap, engine = engine_for(fake_sandbox, on_reload=on_reload)
            snap.set("src/a.ts", "1")
            await engine.flush()
            await asyncio.sleep(0.05)
            snap.set("src/b.ts", "2")
            result = await engine.flush()
            return result, engine

        with caplog.at_level("ERROR", logger="sync"):
            result, engine = asyncio.run(scenario())
        assert "reload hook broke" in caplog.text
        assert "sync task failed" in caplog.text
        assert result.ok
        assert engine.mirror == {"src/a.ts": "1", "src/b.ts": "2"}
        assert engine._tasks == set()

    def test_reset_remounts_everything(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            snap.set("src/a.ts", "1")
            await engine.flush()
            engine.reset()
            return await engine.flush()

        result = asyncio.run(scenario())
        assert [f.path for f in result.delta.added] == ["src/a.ts"]
        assert len(fake_sandbox.mounts) == 2

    def test_close_cancels_pending_work(self, fake_sandbox):
        async def scenario():
            snap, engine = engine_for(fake_sandbox)
            snap.set("src/a.ts", "1")
            engine.request_sync()
            engine.close()
            engine.request_sync()
            await asyncio.sleep(0.06)

        asyncio.run(scenario())
        assert fake_sandbox.mounts == []
