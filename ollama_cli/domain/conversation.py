from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence

from .models import ServerEndpoint


Role = Literal["user", "assistant", "other"]


@dataclass
class ChatTurn:
    role: Role
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatTurn":
        return cls(role=str(data.get("role") or "other"), content=str(data.get("content") or ""))


@dataclass
class ConversationRecord:
    """持久化的一次完整会话，timestamp（毫秒）同时作为主键。"""

    timestamp: int
    host: str
    model: str
    conversation: List[ChatTurn]
    context: str

    @property
    def context_length(self) -> int:
        """上下文长度指示：分隔符个数 + 1，空上下文为 0。"""

        body = self.context.strip().strip("[]").strip()
        if not body:
            return 0
        return self.context.count(",") + 1

    @property
    def restored_context(self) -> Optional[str]:
        if self.context_length == 0:
            return None
        return self.context


class ConversationStore(Protocol):
    def save(
        self,
        conversation: Sequence[ChatTurn],
        context: Optional[str],
        endpoint: ServerEndpoint,
        model: str,
    ) -> Optional[int]:
        ...

    def list_records(self) -> List[ConversationRecord]:
        ...

    def delete(self, timestamps: Sequence[int]) -> int:
        ...
