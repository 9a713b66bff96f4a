#!/usr/bin/env python3
"""
livegen server  —  HTTP :7824  |  WebSocket :7825

- POST /generate streams generation events as `data: {json}` frames, ending
  with `data: [DONE]`
- the WebSocket side is a live session: generate / edit / delete / cancel,
  with the project mirrored into a Vite dev server and reload hints pushed back
"""
import sys, json, asyncio, logging, threading, itertools, os
from pathlib import Path
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler

import websockets

from livegen import events as ev
from livegen.config import Settings, DEV_PORT
from livegen.orchestrator import Generator
from livegen.sandbox import LocalSandbox, SandboxError
from livegen.session import Session

BASE_DIR     = Path(__file__).parent
PROJECTS_DIR = BASE_DIR / "projects"
LOGS_DIR     = BASE_DIR / "logs"
UI_PORT      = int(os.environ.get("LIVEGEN_HTTP_PORT", 7824))
WS_PORT      = int(os.environ.get("LIVEGEN_WS_PORT", 7825))
RUN_SANDBOX  = os.environ.get("LIVEGEN_SANDBOX", "1").strip().lower() not in ("0", "false", "no", "off")

for d in [PROJECTS_DIR, LOGS_DIR]: d.mkdir(exist_ok=True)
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
log = logging.getLogger("server")

_session_ids = itertools.count(1)


# ── HTTP: one-shot generation stream ──────────────────────────────────────────

class GenerateHandler(BaseHTTPRequestHandler):
    def log_message(self, *a): pass

    def _cors(self):
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")

    def _json(self, code: int, body: dict):
        data = json.dumps(body).encode()
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self._cors()
        self.end_headers()
        self.wfile.write(data)

    def do_OPTIONS(self):
        self.send_response(200)
        self._cors()
        self.end_headers()

    def do_GET(self):
        if self.path == "/health":
            s = Settings.from_env()
            self._json(200, {"ok": True, "models": s.model_chain()})
        else:
            self._json(404, {"error": "not found"})

    def do_POST(self):
        if self.path != "/generate":
            self._json(404, {"error": "not found"})
            return
        try:
            length = int(self.headers.get("Content-Length", 0))
            body = json.loads(self.rfile.read(length) or b"{}")
        except (ValueError, json.JSONDecodeError):
            self._json(400, {"error": "invalid JSON body"})
            return
        prompt = (body.get("prompt") or "").strip()
        if not prompt:
            self._json(400, {"error": "prompt is required"})
            return

        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "close")
        self._cors()
        self.end_headers()

        log.info(f"▶ /generate: {prompt[:80]!r}")
        generator = Generator(Settings.from_env())
        channel = generator.start(prompt, force_generation=bool(body.get("forceGeneration")))
        try:
            for event in channel:
                self.wfile.write(ev.encode_frame(event).encode("utf-8"))
                self.wfile.flush()
            self.wfile.write(ev.DONE_FRAME.encode("utf-8"))
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            log.info("   client went away — cancelling")
            channel.close()
            generator.cancel()


def start_http():
    httpd = ThreadingHTTPServer(("127.0.0.1", UI_PORT), GenerateHandler)
    log.info(f"HTTP server listening on 127.0.0.1:{UI_PORT}")
    httpd.serve_forever()


# ── WebSocket: live session ───────────────────────────────────────────────────

class LiveSession:
    """One WebSocket connection = one Session (+ its own dev server)."""

    def __init__(self, websocket):
        self.ws    = websocket
        self.id    = next(_session_ids)
        self._tasks: set = set()
        self.sandbox = None
        if RUN_SANDBOX:
            self.sandbox = LocalSandbox(PROJECTS_DIR / f"session-{self.id}",
                                        port=DEV_PORT + self.id - 1)
            self.sandbox.on_server_ready(
                lambda url: self._spawn(self.send({"type": "server-ready", "url": url})))
        self.session = Session(Settings.from_env(), self.sandbox, on_reload=self._on_reload)
        self.task    = None
        self.dev_started = False

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            log.error(f"   session {self.id} task failed: {task.exception()!r}", exc_info=task.exception())

    async def send(self, msg: dict):
        try:
            await self.ws.send(json.dumps(msg, ensure_ascii=False))
        except websockets.exceptions.ConnectionClosed:
            pass

    async def _on_reload(self, decision):
        await self.send({"type": "reload", "action": decision.action,
                         "delayMs": decision.delay_ms})

    async def generate(self, prompt: str, force: bool):
        terminal = await self.session.run(prompt, emit=self.send, force_generation=force)
        if terminal is None:
            await self.send({"type": "cancelled"})
            return
        if not self.session.sync:
            return
        result = await self.session.sync.flush()
        if result and result.error:
            await self.send({"type": "sandbox-error", "message": str(result.error)})
            return
        if not self.dev_started and len(self.session.snapshot):
            self.dev_started = True
            try:
                await self.sandbox.start_dev_server()
            except SandboxError as e:
                self.dev_started = False
                log.error(f"   dev server failed: {e}")
                await self.send({"type": "sandbox-error", "message": str(e)})

    async def handle(self, msg: dict):
        kind = msg.get("type")
        if kind == "generate":
            prompt = (msg.get("prompt") or "").strip()
            if prompt:
                if self.task and not self.task.done():
                    self.session.cancel()
                self.task = self._spawn(self.generate(prompt, bool(msg.get("force"))))
        elif kind == "edit":
            changed = self.session.edit_file(msg.get("path", ""), msg.get("content", ""))
            await self.send({"type": "edited", "paths": changed})
        elif kind == "delete":
            changed = self.session.delete_file(msg.get("path", ""))
            await self.send({"type": "deleted", "paths": changed})
        elif kind == "cancel":
            self.session.cancel()
        elif kind == "files":
            await self.send({"type": "files",
                             "files": [f.as_dict() for f in self.session.snapshot.files()]})
        else:
            await self.send({"type": "error", "data": {"message": f"unknown message type: {kind}"}})

    async def close(self):
        self.session.close()
        for task in list(self._tasks):
            task.cancel()
        if self.sandbox:
            await self.sandbox.stop()


async def ws_handler(websocket, path=None):
    live = LiveSession(websocket)
    log.info(f"WS connected (session {live.id})")
    try:
        await live.send({"type": "hello", "session": live.id})
        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            await live.handle(msg)
    except websockets.exceptions.ConnectionClosed:
        pass
    finally:
        await live.close()
        log.info(f"WS disconnected (session {live.id})")


# ── Main ──────────────────────────────────────────────────────────────────────

async def main():
    threading.Thread(target=start_http, daemon=True).start()
    s = Settings.from_env()
    print(f"\n{'━'*46}")
    print(f"  ⚡ livegen starting...")
    print(f"  ⚡ HTTP        →  http://127.0.0.1:{UI_PORT}/generate")
    print(f"  🔌 WebSocket   →  ws://127.0.0.1:{WS_PORT}")
    print(f"  🧠 Models      :  {' → '.join(s.model_chain())}")
    print(f"  🧪 Sandbox     :  {'on' if RUN_SANDBOX else 'off'}")
    print(f"{'━'*46}\n")
    async with websockets.serve(ws_handler, "127.0.0.1", WS_PORT):
        await asyncio.Future()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n⛔ Stopped.")
        sys.exit(0)
