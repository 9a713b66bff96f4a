import re
from typing import NamedTuple


def normalize_path(path: str) -> str:
    """Canonical snapshot key: no surrounding whitespace, no leading ./ or /,
    forward slashes only, no empty segments."""
    p = (path or "").strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    p = re.sub(r"/{2,}", "/", p).lstrip("/")
    return p


_DRIVE = re.compile(r"^[A-Za-z]:")


def is_safe_path(path: str) -> bool:
    """True when the normalized path stays inside the project root: no `..`
    segment and no drive letter. A leading `/` already means the root."""
    p = normalize_path(path)
    return bool(p) and not _DRIVE.match(p) and ".." not in p.split("/")


class GeneratedFile(NamedTuple):
    path:    str
    content: str

    @classmethod
    def make(cls, path: str, content: str) -> "GeneratedFile":
        return cls(normalize_path(path), content)

    def as_dict(self) -> dict:
        return {"path": self.path, "content": self.content}


class ImportReference(NamedTuple):
    from_file:           str
    import_path:         str
    resolved_candidates: tuple


class MissingImport(NamedTuple):
    from_file:     str
    import_path:   str
    resolved_path: str
    names:         tuple = ()


class StubCandidate(NamedTuple):
    resolved_path: str
    inferred_kind: str     # hook | util | component


# ── Snapshot ──────────────────────────────────────────────────────────────────

class FileSnapshot:
    """Ordered path → content mapping. Keys are always normalized."""

    def __init__(self, files=None):
        self._files: dict[str, str] = {}
        for f in files or []:
            self.set(f.path, f.content)

    def set(self, path: str, content: str) -> bool:
        """Store content; returns False when nothing changed."""
        key = normalize_path(path)
        if not is_safe_path(key):
            raise ValueError(f"not a project path: {path!r}")
        if self._files.get(key) == content:
            return False
        self._files[key] = content
        return True

    def delete(self, path: str) -> bool:
        return self._files.pop(normalize_path(path), None) is not None

    def get(self, path: str, default=None):
        return self._files.get(normalize_path(path), default)

    def files(self) -> list:
        return [GeneratedFile(p, c) for p, c in self._files.items()]

    def paths(self) -> list:
        return list(self._files)

    def items(self):
        return self._files.items()

    def copy(self) -> "FileSnapshot":
        snap = FileSnapshot()
        snap._files = dict(self._files)
        return snap

    def clear(self):
        self._files.clear()

    def __contains__(self, path) -> bool:
        return normalize_path(path) in self._files

    def __getitem__(self, path) -> str:
        return self._files[normalize_path(path)]

    def __iter__(self):
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self):
        return f"FileSnapshot({len(self._files)} files)"


# ── Sync values ───────────────────────────────────────────────────────────────

class ChangeDelta:
    def __init__(self, added=None, modified=None, removed=None):
        self.added:    list = list(added or [])
        self.modified: list = list(modified or [])
        self.removed:  list = list(removed or [])

    @property
    def changed(self) -> list:
        return self.added + self.modified

    def paths(self) -> list:
        return [f.path for f in self.changed] + list(self.removed)

    def __len__(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __repr__(self):
        return (f"ChangeDelta(added={[f.path for f in self.added]}, "
                f"modified={[f.path for f in self.modified]}, "
                f"removed={self.removed})")


NONE = "none"
SOFT_INVALIDATE = "soft-invalidate"
FULL_REFRESH = "full-refresh"

# Higher wins when two decisions are coalesced.
_STRENGTH = {NONE: 0, SOFT_INVALIDATE: 1, FULL_REFRESH: 2}


class ReloadDecision(NamedTuple):
    action:   str = NONE
    delay_ms: int = 0

    def stronger(self, other: "ReloadDecision") -> "ReloadDecision":
        if _STRENGTH[other.action] > _STRENGTH[self.action]:
            return other
        if _STRENGTH[other.action] == _STRENGTH[self.action]:
            return self if self.delay_ms >= other.delay_ms else other
        return self
