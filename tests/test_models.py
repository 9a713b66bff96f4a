"""
Tests for paths, snapshots and reload decisions.
"""

import pytest

from livegen.models import (
    FULL_REFRESH, NONE, SOFT_INVALIDATE, ChangeDelta, FileSnapshot, GeneratedFile,
    ReloadDecision, is_safe_path, normalize_path,
)


class TestNormalize:
    @pytest.mark.parametrize("raw,expected", [
        ("./src/App.tsx", "src/App.tsx"),
        ("././src/App.tsx", "src/App.tsx"),
        ("/src//App.tsx", "src/App.tsx"),
        ("src\\components\\Nav.tsx", "src/components/Nav.tsx"),
        ("  package.json \n", "package.json"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_make(self):
        assert GeneratedFile.make("./a.ts", "x") == GeneratedFile("a.ts", "x")

    @pytest.mark.parametrize("raw,safe", [
        ("src/App.tsx", True),
        ("/src/App.tsx", True),
        ("src/..hidden/x.ts", True),
        ("../outside.txt", False),
        ("src/../../etc/passwd", False),
        ("src\\..\\..\\x.ts", False),
        ("C:/Windows/x.ts", False),
        ("", False),
    ])
    def test_is_safe_path(self, raw, safe):
        assert is_safe_path(raw) is safe


class TestSnapshot:
    def test_keys_are_normalized(self):
        snap = FileSnapshot()
        assert snap.set("./src/App.tsx", "x") is True
        assert snap.set("src/App.tsx", "x") is False
        assert "src/App.tsx" in snap
        assert snap["./src/App.tsx"] == "x"
        assert snap.paths() == ["src/App.tsx"]

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            FileSnapshot().set("./", "x")

    def test_parent_path_rejected(self):
        with pytest.raises(ValueError):
            FileSnapshot().set("../outside.txt", "x")

    def test_copy_is_independent(self):
        snap = FileSnapshot([GeneratedFile("a.ts", "1")])
        other = snap.copy()
        other.set("a.ts", "2")
        assert snap["a.ts"] == "1"

    def test_delete_and_clear(self):
        snap = FileSnapshot([GeneratedFile("a.ts", "1"), GeneratedFile("b.ts", "2")])
        assert snap.delete("./a.ts")
        assert not snap.delete("a.ts")
        assert snap.get("a.ts") is None
        snap.clear()
        assert len(snap) == 0


class TestDecisions:
    def test_stronger_action_wins(self):
        soft = ReloadDecision(SOFT_INVALIDATE, 200)
        full = ReloadDecision(FULL_REFRESH, 600)
        assert soft.stronger(full) == full
        assert full.stronger(soft) == full
        assert ReloadDecision().stronger(soft) == soft

    def test_same_action_keeps_longer_delay(self):
        a, b = ReloadDecision(FULL_REFRESH, 600), ReloadDecision(FULL_REFRESH, 1000)
        assert a.stronger(b) == b
        assert b.stronger(a) == b

    def test_empty_delta(self):
        d = ChangeDelta()
        assert not d
        assert len(d) == 0
        assert ReloadDecision() == ReloadDecision(NONE, 0)
