import logging, re, textwrap
from pathlib import PurePosixPath

from .models import GeneratedFile, StubCandidate, normalize_path

log = logging.getLogger("stubs")

HOOK, UTIL, COMPONENT = "hook", "util", "component"

UTIL_DIRS  = {"utils", "util", "lib", "helpers"}
VIEW_DIRS  = {"pages", "components"}
CODE_EXTS  = (".tsx", ".ts", ".jsx", ".js")
STYLE_EXTS = (".css",)

_HOOK_NAME = re.compile(r"^use(?:[A-Z0-9_]|$)")


# ── Stub templates (no imports: a stub must never add unresolved references) ──

COMPONENT_STUB = textwrap.dedent("""\
    // Auto-generated placeholder: {name} was imported but never generated.
    export function {name}() {
      return (
        <div className="p-8 m-4 text-center rounded-xl border border-dashed border-amber-400/60 bg-gray-900">
          <div className="text-4xl mb-4">🚧</div>
          <h2 className="text-xl font-semibold text-white mb-2">{name}</h2>
          <p className="text-gray-400">{what} is not implemented yet.</p>
        </div>
      )
    }
    """)

HOOK_STUB = textwrap.dedent("""\
    // Auto-generated stub hook: {name} was imported but never generated.
    export function {name}({params}){returns} {
      return null
    }
    """)

UTIL_STUB = textwrap.dedent("""\
    // Auto-generated stub: {name} was imported but never generated.
    export function {name}({params}){returns} {
      return undefined
    }
    """)

STYLE_STUB = "/* Auto-generated stub stylesheet, imported from {importer} */\n"


def identifier(segment: str, capitalize: bool = False) -> str:
    """File name → JS identifier (`date-utils` → `dateUtils`)."""
    words = [w for w in re.split(r"[^A-Za-z0-9_$]+", segment) if w]
    if not words:
        return "Placeholder" if capitalize else "placeholder"
    name = words[0] + "".join(w[:1].upper() + w[1:] for w in words[1:])
    if name[0].isdigit():
        name = "_" + name
    if capitalize:
        name = name[:1].upper() + name[1:]
    return name


def infer_kind(resolved_path: str) -> str:
    """Best-effort guess at what an unresolved module was meant to be.
    Naming convention only; swap this function out for anything smarter."""
    p = PurePosixPath(normalize_path(resolved_path))
    stem = p.name.split(".")[0]
    if stem == "index" and len(p.parts) > 1:
        stem = p.parts[-2]
    if _HOOK_NAME.match(stem):
        return HOOK
    dirs = {d.lower() for d in p.parts[:-1]}
    if dirs & UTIL_DIRS:
        return UTIL
    if stem[:1].isupper() or dirs & VIEW_DIRS:
        return COMPONENT
    return UTIL


def stub_target(resolved_path: str) -> StubCandidate:
    path = normalize_path(resolved_path)
    kind = infer_kind(path)
    if not path.endswith(CODE_EXTS + STYLE_EXTS):
        # a lowercase component only lives under pages/ or components/
        capitalized = PurePosixPath(path).name[:1].isupper()
        path += ".tsx" if capitalized or kind == COMPONENT else ".ts"
    return StubCandidate(path, kind)


# ── Rendering ─────────────────────────────────────────────────────────────────

def _render_named(kind: str, name: str, what: str, typed: bool) -> str:
    if kind == COMPONENT and name[:1].isupper():
        return COMPONENT_STUB.replace("{name}", name).replace("{what}", what)
    template = HOOK_STUB if kind == HOOK or _HOOK_NAME.match(name) else UTIL_STUB
    return (template.replace("{name}", name)
                    .replace("{params}", "..._args: unknown[]" if typed else "..._args")
                    .replace("{returns}", ": any" if typed else ""))


def render_stub(candidate: StubCandidate, names=(), importer: str = "") -> str:
    path = candidate.resolved_path
    if path.endswith(STYLE_EXTS):
        return STYLE_STUB.replace("{importer}", importer or "unknown")

    p = PurePosixPath(path)
    stem = p.name.split(".")[0]
    if stem == "index" and len(p.parts) > 1:
        stem = p.parts[-2]
    what  = "This page" if "pages" in p.parts[:-1] else "This component"
    jsx   = path.endswith((".tsx", ".jsx"))
    typed = path.endswith((".ts", ".tsx"))
    kind  = candidate.inferred_kind
    if kind == COMPONENT and not jsx:
        kind = UTIL

    main = identifier(stem, capitalize=(kind == COMPONENT))
    parts, emitted = [_render_named(kind, main, what, typed)], {main}
    for n in names:
        if n not in emitted:
            emitted.add(n)
            parts.append(_render_named(kind, n, what, typed))
    parts.append(f"export default {main}\n")
    return "\n".join(parts)


def repair(missing_imports) -> list:
    """One stub file per distinct target path, however many importers ask for it."""
    grouped: dict[str, dict] = {}
    for m in missing_imports:
        candidate = stub_target(m.resolved_path)
        slot = grouped.setdefault(candidate.resolved_path,
                                  {"candidate": candidate, "names": [], "importer": m.from_file})
        for n in m.names:
            if n not in slot["names"]:
                slot["names"].append(n)

    stubs = []
    for path, slot in grouped.items():
        content = render_stub(slot["candidate"], slot["names"], slot["importer"])
        stubs.append(GeneratedFile(path, content))
        log.info(f"   🧩 stub {path} ({slot['candidate'].inferred_kind})")
    return stubs
