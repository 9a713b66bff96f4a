#!/usr/bin/env python3
"""
Drop-an-idea pipeline: every .txt file written to ideas/ is generated into
production-ready/<name>/, served by Vite and smoke-tested in a headless browser.
Preview problems are fed back to the model as a fix request.
"""
import sys, time, asyncio, logging, threading, webbrowser
from pathlib import Path
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from livegen.config import Settings, DEV_PORT
from livegen.preview import PreviewChecker
from livegen.sandbox import LocalSandbox, SandboxError
from livegen.session import Session

BASE_DIR  = Path(__file__).parent
IDEAS_DIR = BASE_DIR / "ideas"
PROD_DIR  = BASE_DIR / "production-ready"
LOGS_DIR  = BASE_DIR / "logs"
MAX_FIX   = 2
READY_TIMEOUT = 60

for d in [IDEAS_DIR, PROD_DIR, LOGS_DIR]:
    d.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.FileHandler(LOGS_DIR / "pipeline.log"),
        logging.StreamHandler(sys.stdout)
    ]
)
log = logging.getLogger("pipeline")

# Dev servers outlive a single pipeline run, so they live on one long-running loop.
LOOP = asyncio.new_event_loop()
threading.Thread(target=LOOP.run_forever, daemon=True, name="pipeline-loop").start()
active = {"session": None, "sandbox": None}


class IdeaFileHandler(FileSystemEventHandler):
    def __init__(self): self.processing = set()
    def on_created(self, event):  self._handle(event.src_path)
    def on_modified(self, event): self._handle(event.src_path)
    def _handle(self, path):
        p = Path(path)
        if p.suffix == ".txt" and p not in self.processing:
            time.sleep(0.5)
            self.processing.add(p)
            try: run_pipeline(p)
            finally: self.processing.discard(p)


def run_pipeline(idea_file: Path):
    log.info("=" * 60)
    log.info("🚀 PIPELINE STARTED")
    log.info("=" * 60)
    raw_idea = idea_file.read_text(encoding="utf-8").strip()
    if not raw_idea:
        log.warning("Idea file is empty. Skipping.")
        return
    log.info(f"💡 Idea: {raw_idea[:200]}...")

    project_name = idea_file.stem.replace(" ", "_").lower()
    try:
        url = asyncio.run_coroutine_threadsafe(build(project_name, raw_idea), LOOP).result()
    except SandboxError as e:
        log.error(f"Sandbox failed: {e}")
        return
    if not url:
        return

    write_readme(project_name, PROD_DIR / project_name, raw_idea)

    def open_later():
        time.sleep(3)
        webbrowser.open(url)
        log.info(f"🖥️  Opened browser → {url}")
    threading.Thread(target=open_later, daemon=True).start()

    log.info("=" * 60)
    log.info(f"🎉 DONE!  {url}")
    log.info(f"   📁 Code: production-ready/{project_name}/")
    log.info("=" * 60)


async def build(project_name: str, raw_idea: str):
    await stop_active()
    settings = Settings.from_env()
    sandbox  = LocalSandbox(PROD_DIR / project_name, port=DEV_PORT)
    session  = Session(settings, sandbox)
    active.update(session=session, sandbox=sandbox)

    log.info(f"\n🏗️  Generating with {' → '.join(settings.model_chain())}...")
    terminal = await session.run(raw_idea, force_generation=True)
    if not terminal or terminal["type"] != "complete":
        msg = terminal["data"].get("message") if terminal else "cancelled"
        log.error(f"Generation failed: {msg}")
        return None
    log.info(f"✅ {terminal['data']['message']}")
    await session.sync.flush()

    ready = asyncio.Event()
    sandbox.on_server_ready(lambda _url: ready.set())
    await sandbox.start_dev_server()
    try:
        await asyncio.wait_for(ready.wait(), READY_TIMEOUT)
    except asyncio.TimeoutError:
        log.error(f"Dev server did not come up within {READY_TIMEOUT}s")
        return None

    log.info("\n🧪 Checking the preview...")
    for attempt in range(1, MAX_FIX + 1):
        problems = await asyncio.to_thread(PreviewChecker(sandbox.url).check)
        problems += [e for e in sandbox.take_errors() if e.severity == "error"]
        if not problems:
            log.info("✅ Preview is clean!")
            break
        log.warning(f"⚠️  Attempt {attempt}/{MAX_FIX} — {len(problems)} issue(s):")
        for p in problems: log.warning(f"   • {p.message}")
        if attempt == MAX_FIX:
            log.warning("⚠️  Max attempts reached. Serving anyway.")
            break
        report = "\n".join(f"- {p.message}" for p in problems)
        await session.run(f"Fix these errors in the app:\n{report}")
        await session.sync.flush()
        await asyncio.sleep(2)
    return sandbox.url


async def stop_active():
    if active["session"]:
        active["session"].close()
    if active["sandbox"]:
        await active["sandbox"].stop()
    active.update(session=None, sandbox=None)


def write_readme(project_name, project_dir, raw_idea):
    (project_dir / "README.md").write_text(
        f"# {project_name.replace('_',' ').title()}\n\n"
        f"## Idea\n{raw_idea}\n\n"
        f"## Run\n```bash\nnpm install\nnpm run dev\n```\n"
    )


if __name__ == "__main__":
    s = Settings.from_env()
    log.info("🤖 livegen pipeline")
    log.info(f"   👁️  Watching : {IDEAS_DIR}")
    log.info(f"   📦 Output   : {PROD_DIR}")
    log.info(f"   🧠 Models   : {' → '.join(s.model_chain())}")
    log.info(f"   🌐 Dev URL  : http://localhost:{DEV_PORT}")
    log.info("\nDrop a .txt file into ideas/ to start!\n")

    handler = IdeaFileHandler()
    observer = Observer()
    observer.schedule(handler, str(IDEAS_DIR), recursive=False)
    observer.start()
    try:
        while True: time.sleep(1)
    except KeyboardInterrupt:
        log.info("\n⛔ Stopping...")
        asyncio.run_coroutine_threadsafe(stop_active(), LOOP).result(timeout=10)
        observer.stop()
    observer.join()
