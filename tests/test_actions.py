"""
Tests for ActionApplier, the single writer of the session snapshot.
"""

from livegen import events as ev
from livegen.actions import ActionApplier
from livegen.models import FileSnapshot, GeneratedFile


def applier():
    return ActionApplier(FileSnapshot())


class TestApply:
    def test_upsert_reports_only_real_changes(self):
        a = applier()
        assert a.upsert("./src/App.tsx", "x") == ["src/App.tsx"]
        assert a.upsert("src/App.tsx", "x") == []
        assert a.upsert("src/App.tsx", "y") == ["src/App.tsx"]
        assert a.upsert("  ", "y") == []

    def test_apply_files_accepts_dicts_and_records(self):
        a = applier()
        changed = a.apply_files([{"path": "a.ts", "content": "1"}, GeneratedFile("b.ts", "2")])
        assert changed == ["a.ts", "b.ts"]

    def test_actions(self):
        a = applier()
        a.upsert("old.ts", "x")
        assert a.apply_action({"type": "delete_file", "path": "old.ts"}) == ["old.ts"]
        assert a.apply_action({"type": "delete_file", "path": "old.ts"}) == []
        assert a.apply_action({"type": "create_or_update_file", "path": "n.ts", "content": "1"}) == ["n.ts"]
        assert a.apply_action({"type": "rename", "path": "n.ts"}) == []

    def test_events(self):
        a = applier()
        f = GeneratedFile("src/App.tsx", "x")
        assert a.apply_event(ev.file_event(f)) == ["src/App.tsx"]
        complete = ev.make_event(ev.COMPLETE, files=[f.as_dict(), {"path": "b.ts", "content": "2"}])
        assert a.apply_event(complete) == ["b.ts"]
        actions = ev.make_event(ev.ACTIONS, actions=[{"type": "delete_file", "path": "b.ts"}])
        assert a.apply_event(actions) == ["b.ts"]
        assert a.apply_event(ev.make_event(ev.PROGRESS, chunks=3)) == []
        assert a.snapshot.paths() == ["src/App.tsx"]

    def test_paths_outside_the_project_are_refused(self):
        a = applier()
        assert a.upsert("../outside.txt", "x") == []
        assert a.upsert("src/../../x.ts", "x") == []
        assert a.upsert("C:/x.ts", "x") == []
        assert a.delete("../outside.txt") == []
        changed = a.apply_files([{"path": "../outside.txt", "content": "x"},
                                 {"path": "src/App.tsx", "content": "y"}])
        assert changed == ["src/App.tsx"]
        assert a.snapshot.paths() == ["src/App.tsx"]
