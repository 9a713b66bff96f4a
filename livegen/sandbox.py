"""
Where generated files run.

`Sandbox` is the narrow surface the sync engine talks to (mount, write, remove,
spawn, refresh, server-ready). `LocalSandbox` implements it on a plain project
directory with npm + the Vite dev server, the same way the build pipeline has
always run generated apps.
"""
import asyncio, logging, os, re, shutil
from pathlib import Path

from .config import DEV_PORT
from .models import FULL_REFRESH, normalize_path
from .preview import parse_terminal_output

log = logging.getLogger("sandbox")

_SERVER_URL = re.compile(r"(https?://(?:localhost|127\.0\.0\.1|\[::1\]|[\d.]+):\d+/?)")
_ANSI       = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


class SandboxError(Exception):
    """A recoverable sandbox-side failure; the caller retries on the next pass."""


class Process:
    """A spawned command: stream its `output` lines, await `exit`."""

    def __init__(self, proc, name: str):
        self.proc  = proc
        self.name  = name
        self.lines: list = []

    async def output(self):
        while True:
            raw = await self.proc.stdout.readline()
            if not raw:
                return
            line = _ANSI.sub("", raw.decode("utf-8", errors="replace")).rstrip()
            if line:
                self.lines.append(line)
                yield line

    async def exit(self) -> int:
        return await self.proc.wait()

    def kill(self):
        if self.proc.returncode is None:
            self.proc.terminate()

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class Sandbox:
    async def mount(self, tree: dict):
        raise NotImplementedError

    async def write_file(self, path: str, content: str):
        raise NotImplementedError

    async def remove(self, path: str):
        raise NotImplementedError

    async def spawn(self, cmd: str, args=()) -> Process:
        raise NotImplementedError

    async def refresh(self, decision):
        raise NotImplementedError

    def on_server_ready(self, callback):
        raise NotImplementedError


def _walk(tree: dict, prefix: str = ""):
    for name, node in tree.items():
        path = f"{prefix}{name}"
        if "directory" in node:
            yield from _walk(node["directory"], path + "/")
        else:
            yield path, node["file"]["contents"]


def find_npm():
    npm = os.environ.get("LIVEGEN_NPM") or shutil.which("npm")
    return [npm] if npm else None


class LocalSandbox(Sandbox):
    def __init__(self, project_dir, port: int = DEV_PORT):
        self.project_dir = Path(project_dir)
        self.port        = port
        self.url         = None
        self.errors: list = []
        self.reloads: list = []
        self._callbacks: list = []
        self._dev: Process = None
        self._reader = None
        self._packages_dirty = True

    # ── Files ─────────────────────────────────────────────────────────────────

    def _target(self, path: str) -> Path:
        rel = normalize_path(path)
        target = (self.project_dir / rel).resolve()
        root = self.project_dir.resolve()
        if not rel or (target != root and root not in target.parents):
            raise SandboxError(f"path escapes the project: {path!r}")
        return target

    async def mount(self, tree: dict):
        for path, content in _walk(tree):
            await self.write_file(path, content)

    async def write_file(self, path: str, content: str):
        target = self._target(path)
        try:
            await asyncio.to_thread(self._write, target, content)
        except OSError as e:
            raise SandboxError(f"write {path} failed: {e}") from e
        if normalize_path(path) == "package.json":
            self._packages_dirty = True
        log.debug(f"   ✎ {path} ({len(content)}B)")

    @staticmethod
    def _write(target: Path, content: str):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def remove(self, path: str):
        target = self._target(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as e:
            raise SandboxError(f"remove {path} failed: {e}") from e

    # ── Processes ─────────────────────────────────────────────────────────────

    async def spawn(self, cmd: str, args=()) -> Process:
        try:
            proc = await asyncio.create_subprocess_exec(
                cmd, *args, cwd=self.project_dir,
                stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.STDOUT,
                env={**os.environ, "CI": "true", "FORCE_COLOR": "0"},
            )
        except FileNotFoundError as e:
            raise SandboxError(f"{cmd} not found") from e
        return Process(proc, os.path.basename(cmd))

    async def install(self):
        npm = find_npm()
        if not npm:
            raise SandboxError("npm not found! Install Node.js: https://nodejs.org")
        log.info("   Running npm install...")
        proc = await self.spawn(npm[0], ["install"])
        async for _ in proc.output():
            pass
        code = await proc.exit()
        if code != 0:
            raise SandboxError(f"npm install failed ({code}):\n{proc.text[-1500:]}")
        self._packages_dirty = False
        log.info("   ✅ npm install complete")

    async def start_dev_server(self):
        if self._packages_dirty or not (self.project_dir / "node_modules").exists():
            await self.install()
        await self.stop()
        npm = find_npm()
        if not npm:
            raise SandboxError("npm not found! Install Node.js: https://nodejs.org")
        log.info(f"🌐 Starting Vite on port {self.port}...")
        self.url = None
        self._dev = await self.spawn(npm[0], ["run", "dev", "--", "--port", str(self.port), "--host"])
        self._reader = asyncio.get_running_loop().create_task(self._watch(self._dev))

    async def _watch(self, proc: Process):
        async for line in proc.output():
            log.info(f"   [vite] {line}")
            found = parse_terminal_output(line)
            if found:
                self.errors = (self.errors + found)[-50:]
            m = _SERVER_URL.search(line)
            if m and not self.url:
                self.url = m.group(1)
                log.info(f"   🖥️  dev server ready → {self.url}")
                for cb in list(self._callbacks):
                    cb(self.url)
        code = await proc.exit()
        log.info(f"   dev server exited ({code})")

    async def stop(self):
        if self._dev:
            self._dev.kill()
            await self._dev.exit()
            self._dev = None
        if self._reader:
            self._reader.cancel()
            self._reader = None

    # ── Sync hooks ────────────────────────────────────────────────────────────

    async def refresh(self, decision):
        """Vite reloads source changes itself; only a dependency change needs
        a reinstall and a fresh dev server."""
        self.reloads.append(decision)
        if decision.action == FULL_REFRESH and self._packages_dirty and self._dev:
            log.info("   📦 package.json changed — reinstalling and restarting")
            await self.start_dev_server()

    def on_server_ready(self, callback):
        self._callbacks.append(callback)
        if self.url:
            callback(self.url)

    def take_errors(self) -> list:
        errors, self.errors = self.errors, []
        return errors
