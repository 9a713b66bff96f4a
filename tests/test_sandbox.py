"""
Tests for LocalSandbox file operations (no npm involved).
"""

import asyncio

import pytest

from livegen.models import FULL_REFRESH, GeneratedFile, ReloadDecision
from livegen.sandbox import LocalSandbox, SandboxError
from livegen.sync import build_mount_tree


class TestLocalSandbox:
    def test_mount_writes_tree(self, tmp_path):
        box = LocalSandbox(tmp_path / "app")
        tree = build_mount_tree([GeneratedFile("src/components/Nav.tsx", "nav"),
                                 GeneratedFile("index.html", "<html>")])
        asyncio.run(box.mount(tree))
        assert (tmp_path / "app/src/components/Nav.tsx").read_text() == "nav"
        assert (tmp_path / "app/index.html").read_text() == "<html>"

    def test_remove(self, tmp_path):
        box = LocalSandbox(tmp_path)

        async def scenario():
            await box.write_file("a.ts", "x")
            await box.remove("a.ts")
            await box.remove("never-existed.ts")

        asyncio.run(scenario())
        assert not (tmp_path / "a.ts").exists()

    def test_paths_cannot_escape(self, tmp_path):
        box = LocalSandbox(tmp_path / "app")
        with pytest.raises(SandboxError):
            asyncio.run(box.write_file("../outside.ts", "x"))
        assert not (tmp_path / "outside.ts").exists()

    def test_refresh_without_dev_server_only_records(self, tmp_path):
        box = LocalSandbox(tmp_path)
        asyncio.run(box.refresh(ReloadDecision(FULL_REFRESH, 1000)))
        assert box.reloads == [ReloadDecision(FULL_REFRESH, 1000)]

    def test_server_ready_callback_fires_late_subscribers(self, tmp_path):
        box = LocalSandbox(tmp_path)
        seen = []
        box.url = "http://localhost:5173/"
        box.on_server_ready(seen.append)
        assert seen == ["http://localhost:5173/"]

    def test_take_errors_drains(self, tmp_path):
        box = LocalSandbox(tmp_path)
        box.errors.append("boom")
        assert box.take_errors() == ["boom"]
        assert box.take_errors() == []
