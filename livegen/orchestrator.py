"""
Generation orchestrator: one prompt in, a typed event sequence out.

    classifying → templating | chatting | generating → validating → repairing → complete
                                                                      (or error / cancelled)

The blocking model stream runs in a worker thread and only ever talks to the
caller through an EventChannel. Closing the channel cancels the run.
"""
import logging, re, threading, time

from . import events as ev
from .classifier import classify_intent, GENERATE, CHAT
from .extractor import StreamExtractor
from .llm import ModelClient, ModelError
from .models import GeneratedFile, is_safe_path, normalize_path
from .packages import find_unknown_packages, package_stubs, rewrite_package_imports
from .parser import parse_response, parse_actions, strip_reasoning
from .prompts import generation_messages, chat_messages
from .stubs import repair
from .templates import BASE_FILES, is_base_file, match_template
from .validator import validate

log = logging.getLogger("generator")

CLASSIFYING = "classifying"
TEMPLATING  = "templating"
CHATTING    = "chatting"
GENERATING  = "generating"
VALIDATING  = "validating"
REPAIRING   = "repairing"
COMPLETE    = "complete"
ERROR       = "error"
CANCELLED   = "cancelled"

_HAS_EXTENSION = re.compile(r"\.(tsx?|jsx?|mjs|cjs|css|json|html|md|svg)$")
_JSX_HINTS     = ("</", "/>", "React", "export default function", "export function")


def fix_extension(f: GeneratedFile) -> GeneratedFile:
    """`src/App` → `src/App.tsx` when the content looks like a component."""
    if _HAS_EXTENSION.search(f.path):
        return f
    if f.path.startswith("src/") and any(h in f.content for h in _JSX_HINTS):
        path = f.path + ".tsx"
    elif "export " in f.content or "import " in f.content:
        path = f.path + ".ts"
    else:
        return f
    log.info(f"   🔧 fixed extension: {f.path} → {path}")
    return GeneratedFile(path, f.content)


class Cancelled(Exception):
    pass


class ParseError(Exception):
    pass


class _Run:
    """Per-run bookkeeping: what was emitted, what was held back, which npm
    packages need stubbing."""

    def __init__(self, channel, lock_base_files: bool):
        self.channel   = channel
        self.lock_base = lock_base_files
        self.files: dict[str, GeneratedFile] = {}    # emitted, in order
        self.held:  dict[str, GeneratedFile] = {}    # blank so far, not emitted
        self.unknown: dict = {}                      # package name → UnknownPackage
        self.stubs: list = []
        self.stream = None
        self.state  = CLASSIFYING

    def emit(self, kind: str, **data):
        if not self.channel.push(ev.make_event(kind, **data)):
            raise Cancelled()

    def emit_file(self, f: GeneratedFile):
        self.files[f.path] = f
        self.held.pop(f.path, None)
        if not self.channel.push(ev.file_event(f)):
            raise Cancelled()

    def accept(self, record: GeneratedFile):
        """Clean up one model record; returns it if it should become a file event."""
        f = fix_extension(GeneratedFile(normalize_path(record.path), record.content))
        if not f.path or f.path in self.files:
            return None
        if not is_safe_path(f.path):
            log.warning(f"   ⚠️ dropping file outside the project: {record.path!r}")
            return None
        if self.lock_base and is_base_file(f.path):
            log.info(f"   🔒 ignoring model output for base file {f.path}")
            return None

        unknown = find_unknown_packages([f])
        for pkg in unknown:
            if pkg.name in self.unknown:
                prev = self.unknown[pkg.name]
                names = prev.names + tuple(n for n in pkg.names if n not in prev.names)
                self.unknown[pkg.name] = prev._replace(names=names)
            else:
                log.warning(f"   unknown npm package '{pkg.name}' in {f.path}")
                self.unknown[pkg.name] = pkg
        f = rewrite_package_imports(f, [p.name for p in unknown])

        if not f.content.strip():
            self.held[f.path] = f
            return None
        return f


class Generator:
    def __init__(self, settings, client=None):
        self.settings = settings
        self.client   = client or ModelClient(settings)
        self._active: _Run = None
        self._last:   _Run = None
        self._lock    = threading.Lock()

    @property
    def state(self):
        """State of the most recently started run."""
        return self._last.state if self._last else None

    # ── Public API ────────────────────────────────────────────────────────────

    def start(self, prompt: str, files=None, force_generation: bool = False,
              history=()) -> ev.EventChannel:
        """Run in a worker thread; events arrive on the returned channel."""
        channel = ev.EventChannel()
        threading.Thread(
            target=self.run, args=(prompt, channel),
            kwargs={"files": files, "force_generation": force_generation, "history": history},
            daemon=True, name="generator",
        ).start()
        return channel

    def cancel(self):
        """Abort the active model stream, if any. Closing the channel is the
        caller's half of cancellation."""
        with self._lock:
            run = self._active
        if run and run.stream:
            run.stream.close()

    def run(self, prompt: str, channel: ev.EventChannel, files=None,
            force_generation: bool = False, history=()):
        """Blocking. Drives one prompt to a terminal event on `channel`."""
        run = _Run(channel, self.settings.lock_base_files)
        with self._lock:
            self._active = self._last = run
        existing = list(files or [])
        try:
            run.emit(ev.START, message="Starting…", prompt=prompt)
            if force_generation:
                intent = GENERATE
            else:
                intent = classify_intent(prompt, default=CHAT if existing else GENERATE)

            if intent == CHAT:
                self._chat(run, prompt, existing, history)
                return

            template = match_template(prompt) if self.settings.templates_enabled else None
            if template:
                self._template(run, template)
            else:
                self._generate(run, prompt)
        except Cancelled:
            self._cancelled(run)
        except ModelError as e:
            if channel.closed:
                self._cancelled(run)
                return
            run.state = ERROR
            log.error(f"❌ Generation failed: {e}")
            channel.push(ev.make_event(ev.ERROR, message=e.message, status=e.status, model=e.model))
        except ParseError as e:
            run.state = ERROR
            log.error(f"❌ {e}")
            channel.push(ev.make_event(ev.ERROR, message=str(e), status=None))
        except Exception as e:
            if channel.closed:
                self._cancelled(run)
                return
            run.state = ERROR
            log.exception(f"❌ Generation crashed: {e}")
            channel.push(ev.make_event(ev.ERROR, message=str(e), status=None))
        finally:
            with self._lock:
                if self._active is run:
                    self._active = None

    # ── States ────────────────────────────────────────────────────────────────

    def _template(self, run: _Run, template):
        run.state = TEMPLATING
        run.emit(ev.PLANNING, message=f"Using the {template.name} template")
        for f in BASE_FILES + template.files:
            run.emit_file(f)
        self._complete(run, f"Created {template.name} from template", mode="template")

    def _chat(self, run: _Run, prompt: str, existing, history):
        run.state = CHATTING
        paths = [f.path for f in existing]
        stream = self._open(run, chat_messages(prompt, paths, history),
                            max_tokens=self.settings.chat_max_tokens)
        chunks = []
        for delta in stream:
            self._check(run)
            chunks.append(delta)
            run.emit(ev.GENERATING, delta=delta)
        self._check(run)

        answer = "".join(chunks)
        actions = parse_actions(answer)
        if actions:
            log.info(f"   💬 chat answer carries {len(actions)} file action(s)")
            run.emit(ev.ACTIONS, actions=actions)
        run.state = COMPLETE
        run.emit(ev.COMPLETE, message=strip_reasoning(answer), files=[], mode="chat")

    def _generate(self, run: _Run, prompt: str):
        run.state = GENERATING
        s = self.settings
        run.emit(ev.PLANNING, message="Planning application structure…")
        if run.lock_base:
            for f in BASE_FILES:
                run.emit_file(f)

        stream = self._open(run, generation_messages(prompt), max_tokens=s.max_tokens)
        run.emit(ev.GENERATING, message=f"Generating with {stream.model}…")

        extractor = StreamExtractor()
        chunks, chars = 0, 0
        last_progress = time.monotonic()
        try:
            for delta in stream:
                self._check(run)
                chunks += 1
                chars  += len(delta)
                for record in extractor.add_chunk(delta):
                    f = run.accept(record)
                    if f:
                        log.info(f"   ✎ {f.path} ({len(f.content)}B)")
                        run.emit_file(f)
                now = time.monotonic()
                if now - last_progress >= s.progress_every:
                    last_progress = now
                    run.emit(ev.PROGRESS, message=f"Generated {len(run.files)} files…",
                             chunks=chunks, chars=chars, files=len(run.files))
            self._check(run)
        except Cancelled:
            extractor.reset()
            raise

        log.info(f"   stream done: {chunks} chunks, {chars} chars, "
                 f"{extractor.extracted_count} streamed records")
        self._finish(run, extractor.buffer)

    def _finish(self, run: _Run, response: str):
        run.state = VALIDATING
        parsed = parse_response(response)
        if parsed is None:
            generated = [p for p in run.files if not is_base_file(p)] + list(run.held)
            if not generated:
                raise ParseError("Could not parse any files from the model response")
            log.warning("   full parse failed; keeping the streamed files")
        for record in parsed or []:
            f = run.accept(record)
            if f:
                log.info(f"   ✎ {f.path} ({len(f.content)}B, recovered)")
                run.emit_file(f)

        if not run.lock_base:
            for f in BASE_FILES:
                if f.path not in run.files and f.path not in run.held:
                    run.emit_file(f)

        candidates = list(run.files.values()) + list(run.held.values())
        report = validate(candidates)
        dropped = set(report.empty_files)
        for path in dropped:
            log.warning(f"   dropping empty file {path}")
            run.held.pop(path, None)
        kept = [f for f in candidates if f.path not in dropped]

        run.state = REPAIRING
        # rewritten npm imports already point at these, so they count as present
        npm_stubs = [s for s in package_stubs(run.unknown.values()) if s.path not in run.files]
        report = validate(kept + npm_stubs)
        stubs = npm_stubs + repair(report.missing_imports)
        for stub in stubs:
            if stub.path in run.files:
                continue
            run.stubs.append(stub)
            run.emit_file(stub)

        residue = validate(list(run.files.values()))
        for w in residue.errors + residue.warnings:
            log.warning(f"   unresolved after repair: {w}")
        self._complete(run, f"Generated {len(run.files)} files", warnings=residue.warnings)

    def _complete(self, run: _Run, message: str, warnings=(), mode: str = "generate"):
        run.state = COMPLETE
        log.info(f"✅ {message} ({len(run.stubs)} stubs)")
        run.emit(ev.COMPLETE, message=message, mode=mode,
                 files=[f.as_dict() for f in run.files.values()],
                 stubs=[f.path for f in run.stubs],
                 warnings=list(warnings))

    def _cancelled(self, run: _Run):
        run.state = CANCELLED
        if run.stream:
            run.stream.close()
        log.info("   ⏹ generation cancelled")

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _open(self, run: _Run, messages, max_tokens: int):
        run.stream = self.client.invoke(messages, stream=True, max_tokens=max_tokens)
        self._check(run)
        return run.stream

    def _check(self, run: _Run):
        if run.channel.closed:
            raise Cancelled()
