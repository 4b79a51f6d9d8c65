import os

import pytest

from cpp_executor.core.errors import WorkspaceError
from cpp_executor.services import workspace as workspace_mod
from cpp_executor.services.workspace import WorkspaceManager


def test_create_gives_unique_directories(tmp_path):
    wm = WorkspaceManager(tmp_path, prefix="t_")
    a = wm.create("job")
    b = wm.create("job")
    assert a != b
    assert a.is_dir() and b.is_dir()
    assert a.name.startswith("t_job_")


def test_destroy_removes_everything(tmp_path):
    wm = WorkspaceManager(tmp_path)
    ws = wm.create()
    (ws / "main.cpp").write_text("int main(){}")
    (ws / "sub").mkdir()
    (ws / "sub" / "x").write_bytes(b"1")

    assert wm.destroy(ws) is True
    assert not ws.exists()


def test_context_manager_removes_on_error(tmp_path):
    wm = WorkspaceManager(tmp_path)
    with pytest.raises(RuntimeError):
        with wm.workspace("j1") as ws:
            (ws / "main").write_bytes(b"\x7fELF")
            raise RuntimeError("stage failed")
    assert not ws.exists()
    assert list(tmp_path.iterdir()) == []


def test_create_failure_raises_workspace_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(WorkspaceError):
        WorkspaceManager(blocker).create()


def test_destroy_is_best_effort(tmp_path):
    wm = WorkspaceManager(tmp_path)
    assert wm.destroy(tmp_path / "never-created") is False


class _Recorder:
    def __init__(self):
        self.events = []

    def warning(self, event, **kw):
        self.events.append((event, kw))

    def debug(self, event, **kw):
        pass


def test_destroy_keeps_going_past_an_undeletable_entry(tmp_path, monkeypatch):
    wm = WorkspaceManager(tmp_path)
    ws = wm.create()
    (ws / "main.cpp").write_text("int main(){}")
    (ws / "locked").mkdir()
    (ws / "locked" / "core").write_bytes(b"\0")
    (ws / "main").write_bytes(b"\x7fELF")

    # permission bits do not stop root, so refuse the unlink itself
    real_unlink = os.unlink

    def unlink(path, *args, **kwargs):
        if os.path.basename(path) == "core":
            raise PermissionError(1, "Operation not permitted", path)
        return real_unlink(path, *args, **kwargs)

    rec = _Recorder()
    monkeypatch.setattr(os, "unlink", unlink)
    monkeypatch.setattr(workspace_mod, "log", rec)

    assert wm.destroy(ws) is False
    assert not (ws / "main.cpp").exists()
    assert not (ws / "main").exists()
    assert (ws / "locked" / "core").exists()
    assert [e for e, _ in rec.events][0] == "workspace_cleanup_failed"
