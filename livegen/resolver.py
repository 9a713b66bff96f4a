import posixpath

from .models import normalize_path

SOURCE_EXTENSIONS = (".ts", ".tsx")
INDEX_NAME = "index"

# Extensions stripped when indexing known files, so `./utils` finds utils.js too.
KNOWN_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".mjs", ".cjs", ".css", ".json")


def is_relative(import_path: str) -> bool:
    return import_path in (".", "..") or import_path.startswith(("./", "../"))


def resolve_path(from_path: str, import_path: str) -> str:
    """Join a relative import onto the importing file's directory.
    Parent segments that would climb above the project root are dropped."""
    base = posixpath.dirname(normalize_path(from_path))
    joined = posixpath.normpath(posixpath.join(base, import_path))
    parts = [p for p in joined.split("/") if p not in ("", ".", "..")]
    return "/".join(parts)


def resolve(from_path: str, import_path: str) -> list:
    """Candidate files a relative import may refer to; [] for bare/aliased imports."""
    if not is_relative(import_path):
        return []
    resolved = resolve_path(from_path, import_path)
    if not resolved:
        return []
    candidates = [resolved]
    candidates += [resolved + ext for ext in SOURCE_EXTENSIONS]
    candidates += [f"{resolved}/{INDEX_NAME}{ext}" for ext in SOURCE_EXTENSIONS]
    return candidates


def strip_extension(path: str) -> str:
    for ext in KNOWN_EXTENSIONS:
        if path.endswith(ext):
            return path[: -len(ext)]
    return path


def known_index(paths) -> set:
    """Every known path plus its extension-less form (and the directory of an
    index module, whatever its extension)."""
    index = set()
    for p in paths:
        key = normalize_path(p)
        bare = strip_extension(key)
        index.add(key)
        index.add(bare)
        if bare.endswith("/" + INDEX_NAME):
            index.add(bare[: -len(INDEX_NAME) - 1])
    return index


def is_satisfied(candidates, index: set) -> bool:
    return any(c in index for c in candidates)
