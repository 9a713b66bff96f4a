import logging, re

from .models import MissingImport, ImportReference
from .resolver import resolve, resolve_path, known_index, is_satisfied

log = logging.getLogger("validator")

SOURCE_FILE = re.compile(r"\.(tsx?|jsx?|mjs|cjs)$")

_IMPORT_FROM = re.compile(
    r"\bimport\s+(type\s+)?([\w$*{}\s,]+?)\s+from\s+['\"]([^'\"\n]+)['\"]")
_EXPORT_FROM = re.compile(
    r"\bexport\s+(type\s+)?(\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s+from\s+['\"]([^'\"\n]+)['\"]")
_SIDE_EFFECT = re.compile(r"\bimport\s+['\"]([^'\"\n]+)['\"]")
_DYNAMIC     = re.compile(r"\bimport\(\s*['\"]([^'\"\n]+)['\"]\s*\)")
_IDENT       = re.compile(r"^[A-Za-z_$][\w$]*$")


def _named(clause: str) -> list:
    """Value names pulled out of the braces of an import/export clause.
    Type-only specifiers are skipped; a stub cannot satisfy them anyway."""
    m = re.search(r"\{([^}]*)\}", clause)
    if not m:
        return []
    names = []
    for part in m.group(1).split(","):
        part = part.strip()
        if re.match(r"type\s+", part):
            continue
        name = part.split(" as ")[0].strip()
        if name and name != "default" and _IDENT.match(name):
            names.append(name)
    return names


def find_imports(content: str) -> list:
    """[(import_path, names)] for every import literal, first-seen order."""
    found: dict[str, list] = {}

    def add(path, names=()):
        bucket = found.setdefault(path, [])
        for n in names:
            if n not in bucket:
                bucket.append(n)

    hits = []
    for rx in (_IMPORT_FROM, _EXPORT_FROM):
        for m in rx.finditer(content):
            names = [] if m.group(1) else _named(m.group(2))
            hits.append((m.start(), m.group(3), names))
    for rx in (_SIDE_EFFECT, _DYNAMIC):
        for m in rx.finditer(content):
            hits.append((m.start(), m.group(1), []))
    for _, path, names in sorted(hits, key=lambda h: h[0]):
        add(path, names)
    return [(p, tuple(n)) for p, n in found.items()]


def import_references(path: str, content: str) -> list:
    refs = []
    for imp, _ in find_imports(content):
        candidates = resolve(path, imp)
        if candidates:
            refs.append(ImportReference(path, imp, tuple(candidates)))
    return refs


class ValidationReport:
    def __init__(self):
        self.errors:          list = []
        self.warnings:        list = []
        self.missing_imports: list = []
        self.empty_files:     list = []

    @property
    def valid(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict:
        return {
            "valid":    self.valid,
            "errors":   list(self.errors),
            "warnings": list(self.warnings),
            "missingImports": [
                {"from": m.from_file, "importPath": m.import_path,
                 "resolvedPath": m.resolved_path}
                for m in self.missing_imports
            ],
        }

    def __repr__(self):
        return (f"ValidationReport(valid={self.valid}, errors={len(self.errors)}, "
                f"missing={len(self.missing_imports)})")


def validate(files) -> ValidationReport:
    """Flag empty files and relative imports that point at nothing."""
    report = ValidationReport()
    files = list(files)
    index = known_index(f.path for f in files)

    for f in files:
        if not f.content.strip():
            report.errors.append(f"{f.path}: file is empty")
            report.empty_files.append(f.path)
            continue
        if not SOURCE_FILE.search(f.path):
            continue

        for imp, names in find_imports(f.content):
            candidates = resolve(f.path, imp)
            if not candidates or is_satisfied(candidates, index):
                continue
            resolved = resolve_path(f.path, imp)
            report.warnings.append(f"{f.path}: unresolved import '{imp}' ({resolved})")
            report.missing_imports.append(MissingImport(f.path, imp, resolved, names))

    if report.errors:
        log.warning(f"   validation: {len(report.errors)} error(s)")
    if report.missing_imports:
        log.warning(f"   validation: {len(report.missing_imports)} unresolved import(s)")
    return report
