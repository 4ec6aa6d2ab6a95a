import json
import logging
import sqlite3
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from ollama_cli.domain.conversation import ChatTurn, ConversationRecord, ConversationStore
from ollama_cli.domain.exceptions import NoRecordsError, PersistenceError
from ollama_cli.domain.models import ServerEndpoint


DB_CREATE_STMT = (
    "CREATE TABLE IF NOT EXISTS Conversations ("
    "timestamp INTEGER PRIMARY KEY, host TEXT, model TEXT, conversation TEXT, context TEXT)"
)
DB_INSERT_STMT = "INSERT INTO Conversations (timestamp, host, model, conversation, context) VALUES (?, ?, ?, ?, ?)"
DB_SELECT_STMT = "SELECT timestamp, host, model, conversation, context FROM Conversations ORDER BY timestamp"
DB_DELETE_STMT = "DELETE FROM Conversations WHERE timestamp = ?"
DB_TABLE_EXISTS_STMT = "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'Conversations'"

NO_RECORDS_MESSAGE = "No responses saved"
EMPTY_CONTEXT = "[]"


class SqliteConversationStore(ConversationStore):
    """会话历史库。每次操作单独打开连接，依赖 SQLite 自身的事务保证。"""

    def __init__(self, db_path: str | Path, logger: Optional[logging.Logger] = None):
        self._db_path = Path(db_path).expanduser()
        self._logger = logger or logging.getLogger("ollama_cli.db")

    def save(
        self,
        conversation: Sequence[ChatTurn],
        context: Optional[str],
        endpoint: ServerEndpoint,
        model: str,
    ) -> Optional[int]:
        """保存一次会话，返回记录的时间戳；空会话不保存，返回 None。"""

        if not conversation:
            return None
        convo = json.dumps([turn.to_dict() for turn in conversation], ensure_ascii=False)
        ctx = context or EMPTY_CONTEXT
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._db_path)
            try:
                with conn:
                    conn.execute(DB_CREATE_STMT)
                    now = int(time.time() * 1000)
                    latest = conn.execute("SELECT MAX(timestamp) FROM Conversations").fetchone()[0]
                    # 主键必须唯一，同一毫秒内的第二次保存顺延
                    if latest is not None and now <= latest:
                        now = latest + 1
                    conn.execute(DB_INSERT_STMT, (now, str(endpoint), model, convo, ctx))
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            self._logger.error("Failed to save conversation", extra={"extra": {"error": str(e)}})
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e)) from e
        self._logger.debug(
            "Conversation saved to DB",
            extra={"extra": {"timestamp": now, "turns": len(conversation), "model": model}},
        )
        return now

    def list_records(self) -> List[ConversationRecord]:
        if not self._db_path.exists():
            raise NoRecordsError(code="NO_RECORDS", message=NO_RECORDS_MESSAGE)
        try:
            conn = sqlite3.connect(self._db_path)
            try:
                if conn.execute(DB_TABLE_EXISTS_STMT).fetchone() is None:
                    raise NoRecordsError(code="NO_RECORDS", message=NO_RECORDS_MESSAGE)
                rows = conn.execute(DB_SELECT_STMT).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            self._logger.error("Failed to read conversations", extra={"extra": {"error": str(e)}})
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e)) from e
        records = [self._to_record(row) for row in rows]
        if not records:
            raise NoRecordsError(code="NO_RECORDS", message=NO_RECORDS_MESSAGE)
        return records

    def delete(self, timestamps: Sequence[int]) -> int:
        if not timestamps:
            return 0
        try:
            conn = sqlite3.connect(self._db_path)
            try:
                with conn:
                    deleted = 0
                    for ts in timestamps:
                        deleted += conn.execute(DB_DELETE_STMT, (ts,)).rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            self._logger.error("Failed to delete conversations", extra={"extra": {"error": str(e)}})
            raise PersistenceError(code="STORE_DELETE_ERROR", message=str(e)) from e
        self._logger.info("Conversations DELETED", extra={"extra": {"timestamps": list(timestamps)}})
        return deleted

    def _to_record(self, row) -> ConversationRecord:
        timestamp, host, model, convo_str, context = row
        try:
            turns = [ChatTurn.from_dict(item) for item in json.loads(convo_str)]
        except (TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(
                code="STORE_DECODE_ERROR",
                message=f"Corrupt conversation record {timestamp}",
            ) from e
        return ConversationRecord(
            timestamp=int(timestamp),
            host=host or "",
            model=model or "",
            conversation=turns,
            context=context or EMPTY_CONTEXT,
        )


def format_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H%M")


def summarize(record: ConversationRecord, preview_length: int = 32) -> str:
    """一行摘要：时间: model@host -> 首条消息预览 [N context len]。"""

    first = record.conversation[0].content if record.conversation else ""
    preview = " ".join(first.split())[:preview_length]
    return (
        f"{format_timestamp(record.timestamp)}: {record.model}@{record.host} "
        f"-> {preview} [{record.context_length} context len]"
    )
