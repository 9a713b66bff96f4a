import inspect, logging

from . import events as ev
from .actions import ActionApplier
from .config import Settings
from .llm import ModelClient
from .models import FileSnapshot
from .orchestrator import Generator
from .sync import SyncEngine, ReloadPolicy

log = logging.getLogger("session")

HISTORY_LIMIT = 10


class Session:
    """
    Everything one user session owns: settings, model client, snapshot,
    applier, sync engine and generator. Nothing here is shared between
    sessions.
    """

    def __init__(self, settings: Settings = None, sandbox=None, client=None,
                 policy: ReloadPolicy = None, on_reload=None):
        self.settings  = settings or Settings.from_env()
        self.client    = client or ModelClient(self.settings)
        self.snapshot  = FileSnapshot()
        self.applier   = ActionApplier(self.snapshot)
        self.generator = Generator(self.settings, self.client)
        self.sandbox   = sandbox
        self.sync      = None
        if sandbox is not None:
            self.sync = SyncEngine(sandbox, self.snapshot, policy,
                                   debounce_ms=self.settings.debounce_ms,
                                   on_reload=on_reload)
        self.history: list = []
        self._channel: ev.EventChannel = None

    # ── Generation ────────────────────────────────────────────────────────────

    def start_generation(self, prompt: str, force_generation: bool = False) -> ev.EventChannel:
        """Cancel whatever is running and start a fresh run."""
        self.cancel()
        self._channel = self.generator.start(
            prompt, files=self.snapshot.files(),
            force_generation=force_generation, history=tuple(self.history))
        return self._channel

    async def run(self, prompt: str, emit=None, force_generation: bool = False):
        """Drive one prompt on the event loop. Every event is applied to the
        snapshot before it is forwarded; returns the terminal event (None if
        cancelled)."""
        channel = self.start_generation(prompt, force_generation)
        terminal = None
        async for event in channel.events():
            if self.applier.apply_event(event):
                self._request_sync()
            if emit:
                result = emit(event)
                if inspect.isawaitable(result):
                    await result
            if ev.is_terminal(event):
                terminal = event

        if self._channel is channel:
            self._channel = None
        if terminal and terminal["type"] == ev.COMPLETE:
            self._remember(prompt, terminal["data"].get("message", ""))
        return terminal

    def _remember(self, prompt: str, answer: str):
        self.history += [{"role": "user", "content": prompt},
                         {"role": "assistant", "content": answer}]
        self.history = self.history[-HISTORY_LIMIT:]

    # ── Manual edits ──────────────────────────────────────────────────────────

    def edit_file(self, path: str, content: str) -> list:
        changed = self.applier.upsert(path, content)
        if changed:
            self._request_sync()
        return changed

    def delete_file(self, path: str) -> list:
        changed = self.applier.delete(path)
        if changed:
            self._request_sync()
        return changed

    def _request_sync(self):
        if self.sync:
            self.sync.request_sync()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def cancel(self) -> bool:
        channel, self._channel = self._channel, None
        if channel is None or channel.closed:
            return False
        channel.close()
        self.generator.cancel()
        log.info("   ⏹ cancelled running generation")
        return True

    def close(self):
        self.cancel()
        if self.sync:
            self.sync.close()
