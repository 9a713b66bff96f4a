"""
npm packages the generated app is allowed to import, and what to do about the
ones it isn't.

Anything outside ALLOWED_PACKAGES would break `npm run dev` with an unresolved
import, so each unknown package gets a local mock module under src/stubs/ and
the importing file is rewritten to point at it.
"""
import logging, posixpath, re, textwrap
from typing import NamedTuple

from .models import GeneratedFile
from .validator import find_imports, SOURCE_FILE

log = logging.getLogger("packages")

# Must match the dependencies block of the base package.json.
ALLOWED_PACKAGES = frozenset({
    "react", "react-dom", "react-router-dom",
    "lucide-react", "framer-motion",
    "react-hot-toast", "sonner", "zustand",
    "@radix-ui/react-dialog", "@radix-ui/react-dropdown-menu",
    "@radix-ui/react-slot", "@radix-ui/react-tabs",
    "@radix-ui/react-toast", "@radix-ui/react-tooltip",
    "class-variance-authority", "clsx", "tailwind-merge",
})

NODE_BUILTINS = frozenset({"path", "fs", "crypto", "util", "stream", "events", "buffer"})

STUB_DIR = "src/stubs"


class UnknownPackage(NamedTuple):
    from_file:   str
    name:        str
    full_import: str
    names:       tuple = ()


def package_name(spec: str) -> str:
    """`@scope/pkg/sub` → `@scope/pkg`, `pkg/sub` → `pkg`."""
    parts = spec.split("/")
    return "/".join(parts[:2]) if spec.startswith("@") else parts[0]


def is_external(spec: str) -> bool:
    """True for bare npm specifiers (not relative, absolute, aliased or a URL)."""
    if spec.startswith((".", "/", "@/", "~/", "http://", "https://")):
        return False
    return not spec.startswith("node:")


def is_allowed(name: str) -> bool:
    return name in ALLOWED_PACKAGES or name in NODE_BUILTINS


def find_unknown_packages(files) -> list:
    """First importer of every package outside the allowed set."""
    unknown: dict[str, UnknownPackage] = {}
    for f in files:
        if not SOURCE_FILE.search(f.path):
            continue
        for spec, names in find_imports(f.content):
            if not is_external(spec):
                continue
            name = package_name(spec)
            if is_allowed(name):
                continue
            if name in unknown:
                prev = unknown[name]
                merged = prev.names + tuple(n for n in names if n not in prev.names)
                unknown[name] = prev._replace(names=merged)
            else:
                unknown[name] = UnknownPackage(f.path, name, spec, tuple(names))
    return list(unknown.values())


def package_stub_path(name: str) -> str:
    return f"{STUB_DIR}/{name.replace('@', '').replace('/', '-')}.ts"


# ── Mock modules ──────────────────────────────────────────────────────────────

_MOCKS = [
    (("toast", "notification"), """\
        export const toast = (msg: string) => console.log('Toast:', msg)
        export const Toaster = () => null
        export default { toast, Toaster }
        """),
    (("chart", "graph"), """\
        export const Chart = () => null
        export const LineChart = () => null
        export const BarChart = () => null
        export default Chart
        """),
    (("date", "moment", "dayjs"), """\
        export const format = (d: Date) => d.toLocaleDateString()
        export const parse = (s: string) => new Date(s)
        export default { format, parse }
        """),
    (("form",), """\
        export const useForm = () => ({ register: () => ({}), handleSubmit: (fn: any) => fn, watch: () => {}, formState: { errors: {} } })
        export default useForm
        """),
    (("query", "swr"), """\
        export const useQuery = () => ({ data: null, isLoading: false, error: null })
        export const useMutation = () => ({ mutate: () => {}, isLoading: false })
        export default { useQuery, useMutation }
        """),
    (("axios", "fetch"), """\
        const client = { get: async () => ({ data: {} }), post: async () => ({ data: {} }), put: async () => ({ data: {} }), delete: async () => ({ data: {} }) }
        export default client
        """),
]

_EXPORTED = re.compile(r"export\s+const\s+(\w+)")


def render_package_stub(pkg: UnknownPackage) -> str:
    body = None
    for needles, template in _MOCKS:
        if any(n in pkg.name for n in needles):
            body = textwrap.dedent(template)
            break
    if body is None:
        body = "export default (..._args: unknown[]): any => null\n"

    have = set(_EXPORTED.findall(body))
    extra = [f"export const {n} = (..._args: unknown[]): any => null\n"
             for n in pkg.names if n not in have]
    return (f"// Stub for {pkg.name}: not available in this project, mock implementation\n"
            + body + "".join(extra))


def package_stubs(unknown) -> list:
    stubs, done = [], set()
    for pkg in unknown:
        path = package_stub_path(pkg.name)
        if path in done:
            continue
        done.add(path)
        stubs.append(GeneratedFile(path, render_package_stub(pkg)))
        log.info(f"   📦 npm stub {path} for '{pkg.name}'")
    return stubs


# ── Import rewriting ──────────────────────────────────────────────────────────

def _relative_to(from_path: str, target: str) -> str:
    rel = posixpath.relpath(target, posixpath.dirname(from_path) or ".")
    return rel if rel.startswith(".") else "./" + rel


def rewrite_package_imports(f: GeneratedFile, names) -> GeneratedFile:
    """Point every import of the given packages (and their subpaths) at the
    local stub module, relative to the importing file."""
    if not SOURCE_FILE.search(f.path) or not names:
        return f
    content = f.content
    for name in names:
        target = package_stub_path(name)[: -len(".ts")]
        spec = _relative_to(f.path, target)
        pattern = re.compile(
            r"""(\bfrom\s+|\bimport\s+|\bimport\(\s*)(['"])""" + re.escape(name) + r"""(?:/[^'"\n]*)?\2""")
        content = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{spec}{m.group(2)}", content)
    if content == f.content:
        return f
    return GeneratedFile(f.path, content)
