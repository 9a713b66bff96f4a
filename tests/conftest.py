"""
Shared test fixtures: settings, fake HTTP, fake model client, fake sandbox.
"""
import asyncio
import json

import pytest
import requests

from livegen.config import Settings
from livegen.sandbox import Sandbox, SandboxError


@pytest.fixture
def settings() -> Settings:
    """Fast, deterministic settings: no retry sleeps, no templates."""
    return Settings(
        api_key="test-key",
        primary_model="primary/model",
        fallback_model="fallback/model",
        templates_enabled=False,
        retry_delays=(0,),
        progress_every=3600,
        debounce_ms=20,
    )


# ── Fake HTTP ────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status_code=200, lines=(), body=None, text=""):
        self.status_code = status_code
        self.lines = list(lines)
        self.body = body
        self.text = text
        self.reason = ""
        self.closed = False

    def iter_lines(self, decode_unicode=False):
        for line in self.lines:
            if self.closed:
                return
            yield line

    def json(self):
        if self.body is None:
            raise ValueError("no JSON body")
        return self.body

    def close(self):
        self.closed = True


def sse_lines(deltas, done=True):
    lines = []
    for d in deltas:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": d}}]}))
        lines.append("")
    if done:
        lines.append("data: [DONE]")
    return lines


class FakeHttp:
    """Queue of responses (or exceptions) handed out by requests.Session.post."""

    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def post(self, session, url, json=None, headers=None, stream=False, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "stream": stream})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def models(self):
        return [c["json"]["model"] for c in self.calls]


@pytest.fixture
def http(monkeypatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(requests.Session, "post",
                        lambda self, url, **kw: fake.post(self, url, **kw))
    return fake


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def sse():
    return sse_lines


# ── Fake model client ────────────────────────────────────────────────


class FakeStream:
    def __init__(self, chunks, model="primary/model", on_chunk=None, error=None):
        self.chunks = list(chunks)
        self.model = model
        self.on_chunk = on_chunk
        self.error = error
        self.closed = False

    def __iter__(self):
        for i, c in enumerate(self.chunks):
            if self.closed:
                return
            if self.on_chunk:
                self.on_chunk(i)
            yield c
        if self.error:
            raise self.error

    def close(self):
        self.closed = True


class FakeClient:
    """Returns one scripted stream (or raises) per invoke() call."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls = []
        self.streams = []

    def invoke(self, messages, stream=True, temperature=None, max_tokens=None):
        self.calls.append({"messages": messages, "max_tokens": max_tokens})
        script = self.scripts.pop(0)
        if isinstance(script, Exception):
            raise script
        if not isinstance(script, FakeStream):
            script = FakeStream(script)
        self.streams.append(script)
        return script


def chunked(text: str, size: int = 7) -> list:
    return [text[i:i + size] for i in range(0, len(text), size)]


@pytest.fixture
def make_client():
    def factory(*responses, size=7):
        scripts = []
        for r in responses:
            if isinstance(r, str):
                scripts.append(FakeStream(chunked(r, size)))
            else:
                scripts.append(r)
        return FakeClient(*scripts)
    return factory


@pytest.fixture
def fake_stream():
    return FakeStream


# ── Fake sandbox ─────────────────────────────────────────────────────


class FakeSandbox(Sandbox):
    def __init__(self, mount_delay=0.0):
        self.mounts = []
        self.removed = []
        self.refreshes = []
        self.fail_next = 0
        self.mount_delay = mount_delay
        self.callbacks = []

    async def mount(self, tree):
        if self.mount_delay:
            await asyncio.sleep(self.mount_delay)
        if self.fail_next:
            self.fail_next -= 1
            raise SandboxError("mount rejected")
        self.mounts.append(tree)

    async def write_file(self, path, content):
        self.mounts.append({path: {"file": {"contents": content}}})

    async def remove(self, path):
        self.removed.append(path)

    async def spawn(self, cmd, args=()):
        raise SandboxError("no processes in tests")

    async def refresh(self, decision):
        self.refreshes.append(decision)

    def on_server_ready(self, callback):
        self.callbacks.append(callback)


@pytest.fixture
def fake_sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture
def slow_sandbox() -> FakeSandbox:
    return FakeSandbox(mount_delay=0.05)
