"""
Keeps a running sandbox in step with the session snapshot.

Every request is debounced; a pass diffs the snapshot against what the sandbox
last acknowledged, mounts only the changed files and then schedules a reload
whose strength depends on what changed:

    structural file touched   → full refresh after 1000 ms
    3+ files                  → full refresh after  600 ms
    1–2 files                 → soft invalidate after 200 ms
    nothing                   → no action
"""
import asyncio, inspect, logging, posixpath
from typing import NamedTuple

from .config import (DEBOUNCE_MS, STRUCTURAL_DELAY, BULK_DELAY, SOFT_DELAY,
                     BULK_THRESHOLD)
from .models import (ChangeDelta, GeneratedFile, ReloadDecision, normalize_path,
                     NONE, SOFT_INVALIDATE, FULL_REFRESH)
from .sandbox import SandboxError

log = logging.getLogger("sync")

STRUCTURAL_NAMES = frozenset({
    "package.json",
    "vite.config.ts", "vite.config.js", "vite.config.mjs",
    "tsconfig.json", "tsconfig.node.json",
    "tailwind.config.js", "tailwind.config.ts", "tailwind.config.cjs",
    "postcss.config.js", "postcss.config.cjs",
    "index.html",
})


def is_structural(path: str) -> bool:
    return posixpath.basename(normalize_path(path)) in STRUCTURAL_NAMES


def _pairs(files):
    if hasattr(files, "items"):             # dict or FileSnapshot
        return [(normalize_path(p), c) for p, c in files.items()]
    return [(normalize_path(f.path), f.content) for f in files]


def compute_delta(previous, incoming, detect_removed: bool = True) -> ChangeDelta:
    """
    Diff `incoming` against `previous` (both path → content, or file lists).
    Content-identical entries are ignored. With detect_removed, paths missing
    from `incoming` count as removed, so `incoming` must be the full state.
    """
    prev = dict(_pairs(previous))
    delta = ChangeDelta()
    seen = set()
    for path, content in _pairs(incoming):
        seen.add(path)
        if path not in prev:
            delta.added.append(GeneratedFile(path, content))
        elif prev[path] != content:
            delta.modified.append(GeneratedFile(path, content))
    if detect_removed:
        delta.removed = [p for p in prev if p not in seen]
    return delta


def build_mount_tree(files) -> dict:
    """`src/App.tsx` → {"src": {"directory": {"App.tsx": {"file": {"contents": ...}}}}}"""
    tree: dict = {}
    for f in files:
        parts = normalize_path(f.path).split("/")
        node = tree
        for part in parts[:-1]:
            node = node.setdefault(part, {"directory": {}})["directory"]
        node[parts[-1]] = {"file": {"contents": f.content}}
    return tree


# ── Reload policy ─────────────────────────────────────────────────────────────

class ReloadPolicy:
    def __init__(self, structural_delay: int = STRUCTURAL_DELAY,
                 bulk_delay: int = BULK_DELAY, soft_delay: int = SOFT_DELAY,
                 bulk_threshold: int = BULK_THRESHOLD):
        self.structural_delay = structural_delay
        self.bulk_delay       = bulk_delay
        self.soft_delay       = soft_delay
        self.bulk_threshold   = bulk_threshold
        self.pending: ReloadDecision = ReloadDecision()

    def decide(self, delta: ChangeDelta) -> ReloadDecision:
        if not delta:
            return ReloadDecision(NONE, 0)
        if any(is_structural(p) for p in delta.paths()):
            return ReloadDecision(FULL_REFRESH, self.structural_delay)
        if len(delta) >= self.bulk_threshold:
            return ReloadDecision(FULL_REFRESH, self.bulk_delay)
        return ReloadDecision(SOFT_INVALIDATE, self.soft_delay)

    def coalesce(self, decision: ReloadDecision) -> ReloadDecision:
        """Merge into the pending reload; the stronger action wins."""
        self.pending = self.pending.stronger(decision)
        return self.pending

    def take(self) -> ReloadDecision:
        decision, self.pending = self.pending, ReloadDecision()
        return decision


class SyncPlan(NamedTuple):
    delta:      ChangeDelta
    mount_tree: dict
    decision:   ReloadDecision


class SyncResult(NamedTuple):
    delta:    ChangeDelta
    decision: ReloadDecision
    error:    Exception = None

    @property
    def ok(self) -> bool:
        return self.error is None


def plan_sync(previous, incoming, policy: ReloadPolicy = None) -> SyncPlan:
    """Pure: what a pass would mount and which reload it would ask for."""
    policy = policy or ReloadPolicy()
    delta = compute_delta(previous, incoming)
    return SyncPlan(delta, build_mount_tree(delta.changed), policy.decide(delta))


# ── Engine ────────────────────────────────────────────────────────────────────

class SyncEngine:
    """
    One per session, driven from the session's event loop.

    request_sync() is cheap and can be called on every snapshot change; passes
    never overlap, and requests arriving mid-pass trigger exactly one more pass.
    """

    def __init__(self, sandbox, snapshot, policy: ReloadPolicy = None,
                 debounce_ms: int = DEBOUNCE_MS, on_reload=None):
        self.sandbox     = sandbox
        self.snapshot    = snapshot
        self.policy      = policy or ReloadPolicy()
        self.debounce_ms = debounce_ms
        self.on_reload   = on_reload
        self.mirror: dict[str, str] = {}     # what the sandbox has acknowledged
        self.last_result: SyncResult = None
        self.passes      = 0
        self._in_flight  = False
        self._pending    = False
        self._closed     = False
        self._debounce   = None
        self._reload     = None
        self._idle       = asyncio.Event()
        self._idle.set()
        self._tasks: set = set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ── Requests ──────────────────────────────────────────────────────────────

    def request_sync(self):
        """Debounced: every call restarts the timer."""
        if self._closed:
            return
        if self._debounce:
            self._debounce.cancel()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(self.debounce_ms / 1000, self._kick)

    def _kick(self):
        self._debounce = None
        if self._closed:
            return
        if self._in_flight:
            self._pending = True
            return
        self._spawn(self._drain())

    async def flush(self) -> SyncResult:
        """Skip the debounce and wait until the sandbox has caught up."""
        if self._debounce:
            self._debounce.cancel()
            self._debounce = None
        if self._in_flight:
            self._pending = True
            await self._idle.wait()
        else:
            await self._drain()
        return self.last_result

    async def _drain(self):
        self._in_flight = True
        self._idle.clear()
        try:
            while True:
                self._pending = False
                await self.sync()
                if not self._pending or self._closed:
                    break
        finally:
            self._in_flight = False
            self._idle.set()

    # ── One pass ──────────────────────────────────────────────────────────────

    async def sync(self) -> SyncResult:
        plan = plan_sync(self.mirror, self.snapshot, self.policy)
        delta = plan.delta
        self.passes += 1
        if not delta:
            self.last_result = SyncResult(delta, plan.decision)
            return self.last_result

        log.info(f"🔄 sync: +{len(delta.added)} ~{len(delta.modified)} "
                 f"-{len(delta.removed)} → {plan.decision.action}")
        try:
            if delta.changed:
                await self.sandbox.mount(plan.mount_tree)
            for path in delta.removed:
                await self.sandbox.remove(path)
        except SandboxError as e:
            log.error(f"   sandbox rejected sync: {e}")
            self.last_result = SyncResult(delta, plan.decision, e)
            return self.last_result

        for f in delta.changed:
            self.mirror[f.path] = f.content
        for path in delta.removed:
            self.mirror.pop(path, None)

        self._schedule_reload(plan.decision)
        self.last_result = SyncResult(delta, plan.decision)
        return self.last_result

    # ── Reloads ───────────────────────────────────────────────────────────────

    def _schedule_reload(self, decision: ReloadDecision):
        if decision.action == NONE or self._closed:
            return
        merged = self.policy.coalesce(decision)
        if self._reload:
            self._reload.cancel()
        loop = asyncio.get_running_loop()
        self._reload = loop.call_later(merged.delay_ms / 1000, self._fire_reload)

    def _fire_reload(self):
        self._reload = None
        decision = self.policy.take()
        if decision.action != NONE and not self._closed:
            self._spawn(self._reload_now(decision))

    async def _reload_now(self, decision: ReloadDecision):
        log.info(f"   ♻️  {decision.action}")
        try:
            await self.sandbox.refresh(decision)
        except SandboxError as e:
            log.error(f"   refresh failed: {e}")
            return
        if self.on_reload:
            result = self.on_reload(decision)
            if inspect.isawaitable(result):
                await result

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            log.error(f"   sync task failed: {task.exception()!r}", exc_info=task.exception())

    def reset(self):
        """Forget what the sandbox has; the next pass remounts everything."""
        self.mirror.clear()

    def close(self):
        self._closed = True
        for handle in (self._debounce, self._reload):
            if handle:
                handle.cancel()
        self._debounce = self._reload = None
        for task in list(self._tasks):
            task.cancel()
