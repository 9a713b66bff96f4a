import json, logging, re

from .models import GeneratedFile, normalize_path

log = logging.getLogger("parser")

_THINK  = re.compile(r"<(think|thinking)>[\s\S]*?</\1>", re.IGNORECASE)
# A reasoning block the model opened but never closed swallows the rest.
_THINK_OPEN = re.compile(r"^\s*<(think|thinking)>[\s\S]*$", re.IGNORECASE)
_FENCE  = re.compile(r"```[\w-]*[ \t]*\n?([\s\S]*?)```")

_decoder = json.JSONDecoder(strict=False)


def strip_reasoning(text: str) -> str:
    cleaned = _THINK.sub("", text or "")
    if _THINK_OPEN.match(cleaned):
        return ""
    return cleaned.strip()


def _loads(text: str):
    return _decoder.decode(text.strip())


def _records(items) -> list:
    """Validate and normalize a decoded `files` list. Keeps the first of duplicates."""
    out, seen = [], set()
    for item in items:
        if not isinstance(item, dict):
            continue
        path, content = item.get("path"), item.get("content")
        if not isinstance(path, str) or not isinstance(content, str):
            continue
        key = normalize_path(path)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(GeneratedFile(key, content))
    return out


def _files_of(obj):
    if isinstance(obj, dict) and isinstance(obj.get("files"), list):
        return _records(obj["files"])
    return None


def _find_object(text: str, key: str):
    """Decode the first JSON object in `text` that carries `key` at top level."""
    needle = f'"{key}"'
    pos = text.find(needle)
    while pos != -1:
        start = text.rfind("{", 0, pos)
        while start != -1:
            try:
                obj, _ = _decoder.raw_decode(text, start)
            except ValueError:
                obj = None
            if isinstance(obj, dict) and key in obj:
                return obj
            start = text.rfind("{", 0, start)
        pos = text.find(needle, pos + 1)
    return None


def parse_response(response: str):
    """
    Recover the file list from a complete model response.

    Tries, in order: the whole (trimmed) text as JSON, the first fenced block,
    then any `{ ... "files": [...] ... }` object embedded in prose.
    Returns None if nothing usable was found.
    """
    cleaned = strip_reasoning(response)
    if not cleaned:
        return None

    try:
        files = _files_of(_loads(cleaned))
        if files is not None:
            return files
    except ValueError:
        pass

    for m in _FENCE.finditer(cleaned):
        try:
            files = _files_of(_loads(m.group(1)))
        except ValueError:
            continue
        if files is not None:
            log.info("   parsed files from fenced block")
            return files

    obj = _find_object(cleaned, "files")
    files = _files_of(obj)
    if files is not None:
        log.info("   recovered files object from surrounding text")
        return files

    log.warning(f"   could not parse a file list ({len(cleaned)} chars)")
    return None


# ── Chat edit actions ─────────────────────────────────────────────────────────

CREATE_OR_UPDATE = "create_or_update_file"
DELETE           = "delete_file"


def _actions_of(obj):
    if not isinstance(obj, dict) or not isinstance(obj.get("actions"), list):
        return None
    actions = []
    for a in obj["actions"]:
        if not isinstance(a, dict) or not isinstance(a.get("path"), str):
            continue
        path = normalize_path(a["path"])
        if not path:
            continue
        if a.get("type") == CREATE_OR_UPDATE and isinstance(a.get("content"), str):
            actions.append({"type": CREATE_OR_UPDATE, "path": path, "content": a["content"]})
        elif a.get("type") == DELETE:
            actions.append({"type": DELETE, "path": path})
    return actions


def parse_actions(response: str) -> list:
    """File actions from a chat answer (`{"actions": [...]}` in a fence or inline)."""
    cleaned = strip_reasoning(response)
    for m in _FENCE.finditer(cleaned):
        try:
            actions = _actions_of(_loads(m.group(1)))
        except ValueError:
            continue
        if actions is not None:
            return actions
    return _actions_of(_find_object(cleaned, "actions")) or []
