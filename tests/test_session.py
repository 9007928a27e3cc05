# tests/test_session.py

import os
import time

from src.classroom.session import Session, SessionManager


def test_session_credentials():
    session = Session()
    assert not session.has_credentials()

    session.set_credentials("teacher1", "pw", {"role": "teacher"})
    assert session.has_credentials()
    assert "pw" not in repr(session)

    session.clear()
    assert not session.has_credentials()
    assert session.user == {}


def test_save_and_load_round_trip(tmp_path):
    manager = SessionManager(state_dir=str(tmp_path / "state"))

    manager.save(Session("teacher1", "pw", {"role": "teacher"}))
    restored = manager.load()

    assert restored.username == "teacher1"
    assert restored.password == "pw"
    assert restored.user == {"role": "teacher"}


def test_load_missing_blob(tmp_path):
    assert SessionManager(state_dir=str(tmp_path)).load() is None


def test_expired_blob_is_ignored(tmp_path):
    manager = SessionManager(state_dir=str(tmp_path), max_session_age_hours=1)
    manager.save(Session("teacher1", "pw"))
    old = time.time() - 2 * 3600
    os.utime(manager.state_file, (old, old))

    assert not manager.is_session_valid()
    assert manager.load() is None


def test_corrupt_blob_is_deleted(tmp_path):
    manager = SessionManager(state_dir=str(tmp_path))
    manager.state_file.write_text("{not json", encoding="utf-8")

    assert manager.load() is None
    assert not manager.state_file.exists()


def test_clear_removes_blob(tmp_path):
    manager = SessionManager(state_dir=str(tmp_path))
    manager.save(Session("teacher1", "pw"))

    manager.clear()
    manager.clear()

    assert not manager.state_file.exists()
