"""
Generation events and the channel that carries them.

Events are plain dicts so they go straight onto the wire:
    {"type": "file", "data": {"file": {"path": ..., "content": ...}}, "timestamp": 1700000000000}

Wire framing is one `data: <json>` line per event followed by a blank line; a
stream ends with `data: [DONE]`.
"""
import json, logging, queue, threading, time, asyncio

log = logging.getLogger("events")

START      = "start"
PLANNING   = "planning"
GENERATING = "generating"
PROGRESS   = "progress"
FILE       = "file"
ACTIONS    = "actions"
COMPLETE   = "complete"
ERROR      = "error"

EVENT_TYPES = (START, PLANNING, GENERATING, PROGRESS, FILE, ACTIONS, COMPLETE, ERROR)
TERMINAL    = (COMPLETE, ERROR)

DONE_MARKER = "[DONE]"
DONE_FRAME  = f"data: {DONE_MARKER}\n\n"


def make_event(kind: str, **data) -> dict:
    if kind not in EVENT_TYPES:
        raise ValueError(f"unknown event type: {kind}")
    return {"type": kind, "data": data, "timestamp": int(time.time() * 1000)}


def file_event(f) -> dict:
    return make_event(FILE, file=f.as_dict())


def is_terminal(event: dict) -> bool:
    return event.get("type") in TERMINAL


def encode_frame(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def decode_frames(text: str) -> list:
    """Parse a block of frames back into events. Stops at [DONE]."""
    events = []
    for line in text.splitlines():
        if not line.startswith("data:"):
            continue
        payload = line[5:].strip()
        if payload == DONE_MARKER:
            break
        try:
            events.append(json.loads(payload))
        except json.JSONDecodeError:
            log.warning(f"   dropping malformed frame: {payload[:80]}")
    return events


# ── Channel ───────────────────────────────────────────────────────────────────

_CLOSED = object()


class ChannelClosed(Exception):
    pass


class EventChannel:
    """
    Single-producer / single-consumer event pipe.

    The orchestrator pushes from a worker thread; the caller pulls (blocking or
    from asyncio) until a terminal event. Closing the channel is the cancel
    signal: the producer sees `closed` and stops, the consumer wakes up.
    """

    def __init__(self):
        self._q      = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, event: dict) -> bool:
        if self.closed:
            return False
        self._q.put(event)
        return True

    def close(self):
        if not self.closed:
            self._closed.set()
            self._q.put(_CLOSED)

    def get(self, timeout=None) -> dict:
        """Next event; raises ChannelClosed once the channel is drained and closed."""
        item = self._q.get(timeout=timeout)
        if item is _CLOSED:
            raise ChannelClosed()
        return item

    def __iter__(self):
        while True:
            try:
                event = self.get()
            except ChannelClosed:
                return
            yield event
            if is_terminal(event):
                return

    async def events(self):
        """Async view of the channel for code running on the event loop."""
        while True:
            try:
                event = await asyncio.to_thread(self.get)
            except ChannelClosed:
                return
            yield event
            if is_terminal(event):
                return
