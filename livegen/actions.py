import logging

from . import events as ev
from .models import FileSnapshot, is_safe_path, normalize_path
from .parser import CREATE_OR_UPDATE, DELETE

log = logging.getLogger("actions")


class ActionApplier:
    """The only writer of a session snapshot. Every method returns the paths
    whose content actually changed, so identical rewrites never reach the sync
    engine."""

    def __init__(self, snapshot: FileSnapshot):
        self.snapshot = snapshot

    def upsert(self, path: str, content: str) -> list:
        key = normalize_path(path)
        if not is_safe_path(key):
            log.warning(f"   ignoring write to {path!r}: not a project path")
            return []
        return [key] if self.snapshot.set(key, content) else []

    def delete(self, path: str) -> list:
        key = normalize_path(path)
        if not is_safe_path(key):
            log.warning(f"   ignoring delete of {path!r}: not a project path")
            return []
        return [key] if self.snapshot.delete(key) else []

    def apply_files(self, files) -> list:
        changed = []
        for f in files:
            if isinstance(f, dict):
                changed += self.upsert(f.get("path", ""), f.get("content", ""))
            else:
                changed += self.upsert(f.path, f.content)
        return changed

    def apply_action(self, action: dict) -> list:
        kind = action.get("type")
        if kind == CREATE_OR_UPDATE:
            return self.upsert(action.get("path", ""), action.get("content", ""))
        if kind == DELETE:
            return self.delete(action.get("path", ""))
        log.warning(f"   unknown action type: {kind}")
        return []

    def apply_event(self, event: dict) -> list:
        kind = event.get("type")
        data = event.get("data") or {}
        if kind == ev.FILE and data.get("file"):
            return self.apply_files([data["file"]])
        if kind == ev.COMPLETE:
            return self.apply_files(data.get("files") or [])
        if kind == ev.ACTIONS:
            changed = []
            for action in data.get("actions") or []:
                changed += self.apply_action(action)
            return changed
        return []
