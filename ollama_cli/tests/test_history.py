import pytest

from ollama_cli.domain.conversation import ChatTurn, ConversationRecord
from ollama_cli.domain.exceptions import NoRecordsError
from ollama_cli.infrastructure.storage.sqlite_store import SqliteConversationStore
from ollama_cli.services.history import ConversationHistory


class MemoryStore:
    def __init__(self, records):
        self.records = list(records)
        self.deleted = []

    def save(self, conversation, context, endpoint, model):
        raise AssertionError("not used")

    def list_records(self):
        if not self.records:
            raise NoRecordsError(code="NO_RECORDS", message="No responses saved")
        return list(self.records)

    def delete(self, timestamps):
        self.deleted.extend(timestamps)
        return len(timestamps)


def _record(ts, first, context="[1,2]"):
    return ConversationRecord(
        timestamp=ts,
        host="localhost:11434",
        model="llama3:latest",
        conversation=[ChatTurn("user", first), ChatTurn("assistant", "answer " + first)],
        context=context,
    )


def test_list_prints_summaries(presenter):
    history = ConversationHistory(MemoryStore([_record(1000, "one"), _record(2000, "two")]), presenter)
    lines = history.list()
    assert len(lines) == 2
    assert presenter.kinds("success") == ["Previous conversations:"]
    assert presenter.kinds("info") == lines
    assert "-> one [2 context len]" in lines[0]


def test_list_empty_store(presenter):
    with pytest.raises(NoRecordsError):
        ConversationHistory(MemoryStore([]), presenter).list()


def test_restore_replays_and_returns_context(make_presenter):
    presenter = make_presenter(answers=[1])
    history = ConversationHistory(MemoryStore([_record(1000, "one"), _record(2000, "two", "[5,6,7]")]), presenter)
    context, turns = history.restore()
    assert context == "[5,6,7]"
    assert [t.content for t in turns] == ["two", "answer two"]
    assert presenter.kinds("info")[0].startswith("* Restoring conversation *\n")
    assert presenter.kinds("user") == ["two"]
    assert presenter.kinds("answer") == ["answer two"]


def test_restore_with_empty_context(make_presenter):
    presenter = make_presenter(answers=[0])
    context, _ = ConversationHistory(MemoryStore([_record(1000, "one", "[]")]), presenter).restore()
    assert context is None


def test_delete_requires_confirmation(make_presenter):
    store = MemoryStore([_record(1000, "one"), _record(2000, "two"), _record(3000, "three")])
    presenter = make_presenter(answers=[[0, 2], False])
    assert ConversationHistory(store, presenter).delete() == 0
    assert store.deleted == []

    presenter = make_presenter(answers=[[0, 2], True])
    assert ConversationHistory(store, presenter).delete() == 2
    assert store.deleted == [1000, 3000]
    assert presenter.kinds("error") == ["DELETE (action is irreversible):"]
    assert presenter.kinds("success") == ["Conversations DELETED"]


def test_delete_with_empty_selection(make_presenter):
    store = MemoryStore([_record(1000, "one")])
    presenter = make_presenter(answers=[[]])
    assert ConversationHistory(store, presenter).delete() == 0
    assert presenter.kinds("confirm") == []


def test_every_history_action_fails_on_empty_sqlite_store(tmp_path, make_presenter):
    store = SqliteConversationStore(tmp_path / "h.db")
    history = ConversationHistory(store, make_presenter(answers=[0, [0], True]))
    for action in (history.list, history.restore, history.delete):
        with pytest.raises(NoRecordsError) as exc:
            action()
        assert exc.value.message == "No responses saved"
