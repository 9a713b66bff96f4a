import json, logging, re

from .models import GeneratedFile, normalize_path

log = logging.getLogger("extractor")

# `{ "path": "<p>", "content": "`, up to the first content character.
HEADER = re.compile(r'\{\s*"path"\s*:\s*"((?:[^"\\\n]|\\.)*)"\s*,\s*"content"\s*:\s*"')

_decoder = json.JSONDecoder(strict=False)

_WAIT, _DROP = "wait", "drop"


def decode_json_string(raw: str) -> str:
    """Decode the body of a JSON string literal (without its quotes)."""
    value, end = _decoder.raw_decode('"' + raw + '"')
    if end != len(raw) + 2:
        raise ValueError("trailing data after string")
    return value


class _Candidate:
    __slots__ = ("raw_path", "start", "pos", "escaped")

    def __init__(self, raw_path: str, start: int):
        self.raw_path = raw_path
        self.start    = start      # first content character
        self.pos      = start      # resume point for the quote scan
        self.escaped  = False


class StreamExtractor:
    """
    Pulls complete `{path, content}` objects out of a response that is still
    arriving. Call add_chunk() with each new piece of text; it returns only the
    records that became complete since the previous call, each path once.
    """

    def __init__(self):
        self.buffer = ""
        self.files: list = []
        self._seen: set = set()
        self._pending: list = []
        self._cursor = 0

    def add_chunk(self, text: str) -> list:
        if text:
            self.buffer += text

        for m in HEADER.finditer(self.buffer, self._cursor):
            self._pending.append(_Candidate(m.group(1), m.end()))
            self._cursor = m.end()

        found, waiting = [], []
        for cand in self._pending:
            result = self._advance(cand)
            if result is _WAIT:
                waiting.append(cand)
            elif result is not _DROP:
                found.append(result)
        self._pending = waiting
        return found

    def reset(self):
        """Forget everything, including partial objects. Used on cancel."""
        self.__init__()

    @property
    def extracted_count(self) -> int:
        return len(self._seen)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _advance(self, cand: _Candidate):
        buf, n = self.buffer, len(self.buffer)
        i, escaped = cand.pos, cand.escaped
        while i < n:
            ch = buf[i]
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                break
            i += 1
        cand.pos, cand.escaped = i, escaped
        if i >= n:
            return _WAIT

        # The closing quote must be followed by the object's closing brace,
        # otherwise a truncated stream could hand us half a file.
        j = i + 1
        while j < n and buf[j] in " \t\r\n":
            j += 1
        if j >= n:
            return _WAIT
        if buf[j] != "}":
            log.debug(f"   extra fields after content at {i}; leaving it to the full parser")
            return _DROP

        try:
            path    = normalize_path(decode_json_string(cand.raw_path))
            content = decode_json_string(buf[cand.start:i])
        except ValueError as e:
            log.debug(f"   undecodable record at {cand.start}: {e}")
            return _DROP

        if not path or path in self._seen:
            return _DROP
        self._seen.add(path)
        record = GeneratedFile(path, content)
        self.files.append(record)
        log.debug(f"   extracted {path} ({len(content)}B)")
        return record
