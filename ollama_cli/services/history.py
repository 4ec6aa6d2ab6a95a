"""会话历史的交互式操作：列出、恢复、删除。

读取与摘要渲染由 SqliteConversationStore 完成，这里负责让用户选择、
确认并通过 Presenter 回放内容。空库时三个操作都抛出同一个 NoRecordsError。
"""

import logging
from typing import List, Optional, Tuple

from ollama_cli.domain.conversation import ChatTurn, ConversationRecord, ConversationStore
from ollama_cli.infrastructure.storage.sqlite_store import format_timestamp, summarize
from ollama_cli.ui.presenter import Presenter


class ConversationHistory:
    def __init__(
        self,
        store: ConversationStore,
        presenter: Presenter,
        preview_length: int = 32,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._presenter = presenter
        self._preview_length = preview_length
        self._logger = logger or logging.getLogger("ollama_cli.db")

    def _entries(self) -> Tuple[List[ConversationRecord], List[str]]:
        records = self._store.list_records()
        return records, [summarize(r, self._preview_length) for r in records]

    def list(self) -> List[str]:
        _, summaries = self._entries()
        self._presenter.success("Previous conversations:")
        for line in summaries:
            self._presenter.info(line)
        return summaries

    def restore(self) -> Tuple[Optional[str], List[ChatTurn]]:
        """选择一条历史会话，回放其内容，返回 (context, turns) 作为新会话的起点。"""

        records, summaries = self._entries()
        idx = self._presenter.select("Choose conversation to restore", summaries)
        record = records[idx]
        self._presenter.info(f"* Restoring conversation *\n{format_timestamp(record.timestamp)}")
        for turn in record.conversation:
            if turn.role == "user":
                self._presenter.user_turn(turn.content)
            elif turn.role == "assistant":
                self._presenter.answer(turn.content)
            else:
                self._presenter.info(turn.content)
        self._logger.info(
            "Conversation restored",
            extra={"extra": {"timestamp": record.timestamp, "turns": len(record.conversation)}},
        )
        return record.restored_context, list(record.conversation)

    def delete(self) -> int:
        """多选删除，需要二次确认，操作不可逆。返回删除的条数。"""

        records, summaries = self._entries()
        idxs = self._presenter.multi_select("Choose conversations to delete", summaries)
        if not idxs:
            return 0
        self._presenter.error("DELETE (action is irreversible):")
        for i in idxs:
            self._presenter.info(summaries[i])
        if not self._presenter.confirm("Confirm delete conversations", default=False):
            return 0
        deleted = self._store.delete([records[i].timestamp for i in idxs])
        self._presenter.success("Conversations DELETED")
        return deleted
