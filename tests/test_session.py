"""
Tests for session stores and session record persistence.
"""
import json
import os
import stat
from unittest.mock import patch

import pytest
from keyring.errors import KeyringError, PasswordSetError

from esrlink.config import AgentSettings
from esrlink.exceptions import Stage, StorageError
from esrlink.models import SessionRecord
from esrlink.session import (
    DEFAULT_SESSION_KEY, FileSessionStore, KeyringSessionStore, MemorySessionStore,
    default_session_store, load_session, save_session
)

RECORD = SessionRecord(
    network="aca376f206b8fc25a6ed44dbdc66547c36c6c33e3a119ffbeaef943642f0e906",
    actor="alice",
    permission="active",
    payload="esr://gmNgZGBY",
)


def test_memory_store_roundtrip():
    store = MemorySessionStore()
    assert load_session(store) is None
    save_session(store, RECORD)
    assert load_session(store) == RECORD
    assert json.loads(store.values[DEFAULT_SESSION_KEY])["actor"] == "alice"


def test_save_overwrites():
    store = MemorySessionStore()
    save_session(store, RECORD)
    save_session(store, RECORD.model_copy(update={"actor": "bob"}))
    assert load_session(store).actor == "bob"
    assert list(store.values) == [DEFAULT_SESSION_KEY]


def test_custom_key():
    store = MemorySessionStore()
    save_session(store, RECORD, key="other")
    assert load_session(store) is None
    assert load_session(store, key="other") == RECORD


@pytest.mark.parametrize("raw", ["not json", "{}", json.dumps({"actor": "alice"})])
def test_invalid_record(raw):
    store = MemorySessionStore({DEFAULT_SESSION_KEY: raw})
    with pytest.raises(StorageError) as exc_info:
        load_session(store)
    assert exc_info.value.stage == Stage.LOAD_SESSION


def test_file_store(tmp_path):
    path = tmp_path / "state" / "sessions.json"
    store = FileSessionStore(str(path))
    assert store.get("missing") is None

    save_session(store, RECORD)
    store.set("other", "value")

    reopened = FileSessionStore(str(path))
    assert load_session(reopened) == RECORD
    assert reopened.get("other") == "value"


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_file_store_permissions(tmp_path):
    path = tmp_path / "state" / "sessions.json"
    FileSessionStore(str(path)).set("k", "v")
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert stat.S_IMODE(os.stat(path.parent).st_mode) == 0o700


def test_file_store_corrupt_file(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{broken")
    store = FileSessionStore(str(path))
    with pytest.raises(StorageError, match="corrupt") as exc_info:
        store.get("k")
    assert exc_info.value.stage == Stage.LOAD_SESSION
    with pytest.raises(StorageError):
        load_session(store)

    store.set("k", "v")
    assert json.loads(path.read_text()) == {"k": "v"}
    assert store.get("k") == "v"


def test_file_store_non_object_file(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("[1, 2]")
    store = FileSessionStore(str(path))
    with pytest.raises(StorageError) as exc_info:
        store.get("k")
    assert exc_info.value.stage == Stage.LOAD_SESSION


def test_file_store_default_path(tmp_path):
    with patch("appdirs.user_data_dir", return_value=str(tmp_path / "data")):
        store = FileSessionStore()
    assert store.path == tmp_path / "data" / "sessions.json"


def test_file_store_write_failure(tmp_path):
    path = tmp_path / "sessions.json"
    store = FileSessionStore(str(path))
    path.mkdir()
    with pytest.raises(StorageError, match="Failed to write") as exc_info:
        store.set("k", "v")
    assert exc_info.value.stage == Stage.SAVE_SESSION


def test_keyring_store():
    saved = {}
    with patch("keyring.set_password", side_effect=lambda s, k, v: saved.__setitem__((s, k), v)), \
            patch("keyring.get_password", side_effect=lambda s, k: saved.get((s, k))):
        store = KeyringSessionStore("esrlink-test")
        save_session(store, RECORD)
        assert load_session(store) == RECORD
    assert ("esrlink-test", DEFAULT_SESSION_KEY) in saved


def test_keyring_read_failure():
    with patch("keyring.get_password", side_effect=KeyringError("locked")):
        with pytest.raises(StorageError, match="locked") as exc_info:
            load_session(KeyringSessionStore())
    assert exc_info.value.stage == Stage.LOAD_SESSION


def test_keyring_write_failure():
    with patch("keyring.set_password", side_effect=PasswordSetError("denied")):
        with pytest.raises(StorageError) as exc_info:
            save_session(KeyringSessionStore(), RECORD)
    assert exc_info.value.stage == Stage.SAVE_SESSION


def test_default_store_selection(tmp_path):
    file_settings = AgentSettings(session_path=str(tmp_path / "s.json"))
    assert isinstance(default_session_store(file_settings), FileSessionStore)

    keyring_store = default_session_store(AgentSettings(keyring_service="wallet"))
    assert isinstance(keyring_store, KeyringSessionStore)
    assert keyring_store.service_name == "wallet"
