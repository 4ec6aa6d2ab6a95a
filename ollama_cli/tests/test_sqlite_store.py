import itertools
import sqlite3
from datetime import datetime

import pytest

from ollama_cli.domain.conversation import ChatTurn, ConversationRecord
from ollama_cli.domain.exceptions import NoRecordsError, PersistenceError
from ollama_cli.domain.models import ServerEndpoint
from ollama_cli.infrastructure.storage.sqlite_store import SqliteConversationStore, summarize


ENDPOINT = ServerEndpoint(host="localhost", port=11434)
TURNS = [ChatTurn("user", "What is the capital of France?"), ChatTurn("assistant", "Paris.")]


def test_save_and_list(tmp_path):
    store = SqliteConversationStore(tmp_path / "db" / "history.db")
    ts = store.save(TURNS, "[1,2,3]", ENDPOINT, "llama3:latest")
    records = store.list_records()
    assert len(records) == 1
    rec = records[0]
    assert rec.timestamp == ts
    assert rec.host == "localhost:11434"
    assert rec.model == "llama3:latest"
    assert rec.conversation == TURNS
    assert rec.context_length == 3
    assert rec.restored_context == "[1,2,3]"


def test_empty_conversation_is_not_saved(tmp_path):
    store = SqliteConversationStore(tmp_path / "history.db")
    assert store.save([], "[1]", ENDPOINT, "m") is None
    with pytest.raises(NoRecordsError):
        store.list_records()


def test_missing_context_stored_as_empty_array(tmp_path):
    store = SqliteConversationStore(tmp_path / "history.db")
    store.save(TURNS, None, ENDPOINT, "m")
    rec = store.list_records()[0]
    assert rec.context == "[]"
    assert rec.context_length == 0
    assert rec.restored_context is None


def test_saves_in_same_millisecond_get_unique_timestamps(tmp_path, monkeypatch):
    monkeypatch.setattr("time.time", lambda: 1_700_000_000.0)
    store = SqliteConversationStore(tmp_path / "history.db")
    first = store.save(TURNS, "[1]", ENDPOINT, "m")
    second = store.save(TURNS, "[2]", ENDPOINT, "m")
    assert second == first + 1
    assert [r.timestamp for r in store.list_records()] == [first, second]


def test_list_without_db_or_table(tmp_path):
    with pytest.raises(NoRecordsError) as exc:
        SqliteConversationStore(tmp_path / "missing.db").list_records()
    assert exc.value.message == "No responses saved"

    path = tmp_path / "other.db"
    sqlite3.connect(path).close()
    with pytest.raises(NoRecordsError):
        SqliteConversationStore(path).list_records()


def test_delete_by_timestamp(tmp_path, monkeypatch):
    clock = itertools.count(1000.0, 1000.0)
    monkeypatch.setattr("time.time", lambda: next(clock))
    store = SqliteConversationStore(tmp_path / "history.db")
    a = store.save(TURNS, "[1]", ENDPOINT, "m")
    b = store.save(TURNS, "[2]", ENDPOINT, "m")
    c = store.save(TURNS, "[3]", ENDPOINT, "m")
    assert store.delete([a, c]) == 2
    assert [r.timestamp for r in store.list_records()] == [b]
    assert store.delete([]) == 0


def test_corrupt_row(tmp_path):
    path = tmp_path / "history.db"
    store = SqliteConversationStore(path)
    store.save(TURNS, "[1]", ENDPOINT, "m")
    conn = sqlite3.connect(path)
    with conn:
        conn.execute("UPDATE Conversations SET conversation = 'not json'")
    conn.close()
    with pytest.raises(PersistenceError) as exc:
        store.list_records()
    assert exc.value.code == "STORE_DECODE_ERROR"


def test_summarize_format():
    ts = int(datetime(2024, 5, 1, 9, 30).timestamp() * 1000)
    record = ConversationRecord(
        timestamp=ts,
        host="localhost:11434",
        model="llama3:latest",
        conversation=[ChatTurn("user", "What is the capital\nof France and why is it Paris?")],
        context="[1,2,3]",
    )
    assert summarize(record) == (
        "2024-05-01 0930: llama3:latest@localhost:11434 -> What is the capital of France an [3 context len]"
    )
    assert "-> What is th [3 context len]" in summarize(record, preview_length=10)


def test_turn_without_role_restores_as_other():
    turn = ChatTurn.from_dict({"content": "system note"})
    assert turn.role == "other"
    assert turn.to_dict() == {"role": "other", "content": "system note"}
