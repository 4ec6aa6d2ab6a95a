"""推理服务器相关的数据模型。

本模块定义客户端内部共享的标准数据结构：

- ServerEndpoint: 推理服务器地址（host + port）。
- ModelInfo / ModelDetails: /api/tags 返回的模型描述。
- GenerateChunk: /api/generate 返回的单条 JSON 记录（批量模式下即完整响应）。
- PullStatus / PullProgress: /api/pull 的状态记录与下载层去重状态。
- GenerationStats / GenerationResult: 一轮问答的统计信息与最终结果。

HTTP 客户端负责在服务器 JSON 与这些结构之间做转换，上层服务只依赖这里的类型。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set


@dataclass(frozen=True)
class ServerEndpoint:
    """推理服务器地址，进程运行期间不可变。"""

    host: str
    port: int

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class ModelDetails:
    format: str = ""
    family: str = ""
    families: Optional[List[str]] = None
    parameter_size: str = ""
    quantization_level: str = ""


@dataclass
class ModelInfo:
    """服务器上已安装的一个模型。"""

    name: str
    modified_at: str = ""
    size: int = 0
    digest: str = ""
    details: ModelDetails = field(default_factory=ModelDetails)


@dataclass
class GenerateChunk:
    """/api/generate 的一条记录。

    流式模式下每条记录是一个增量片段，只有 done=True 的终止记录
    必须携带 context；批量模式下整个响应体就是一条记录。
    - context: 已序列化为紧凑字符串（如 "[1,2,3]"）的不透明上下文。
    - raw: 原始 JSON，用于调试或日志记录。
    """

    error: Optional[str] = None
    model: Optional[str] = None
    created_at: Optional[str] = None
    response: Optional[str] = None
    done: Optional[bool] = None
    context: Optional[str] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None
    raw: Optional[dict] = None


@dataclass
class PullStatus:
    """/api/pull 的一条状态记录。"""

    error: Optional[str] = None
    status: Optional[str] = None
    digest: Optional[str] = None
    total: Optional[int] = None
    completed: Optional[int] = None
    raw: Optional[dict] = None


@dataclass
class PullProgress:
    """一次模型下载的进度状态。

    下载层以 status 文本去重：同一个 status 只在第一次出现时计为新的一层。
    """

    seen: Set[str] = field(default_factory=set)
    layers: int = 0

    def observe(self, record: PullStatus) -> bool:
        """记录一条状态，返回它是否开启了新的下载层。"""

        if not record.digest:
            return False
        label = record.status or record.digest
        if label in self.seen:
            return False
        self.seen.add(label)
        self.layers += 1
        return True


@dataclass
class GenerationStats:
    """verbose 模式下展示的统计信息（来自终止记录）。"""

    model: str
    prompt_tokens: int
    response_tokens: int
    total_duration_ns: int

    @property
    def seconds(self) -> float:
        return self.total_duration_ns / 1_000_000_000

    @classmethod
    def from_chunk(cls, chunk: GenerateChunk) -> "GenerationStats":
        return cls(
            model=chunk.model or "Unknown",
            prompt_tokens=chunk.prompt_eval_count or 0,
            response_tokens=chunk.eval_count or 0,
            total_duration_ns=chunk.total_duration or 0,
        )


@dataclass
class GenerationResult:
    """一轮问答的最终结果：完整回答文本与新的上下文。"""

    response: str
    context: str
    stats: Optional[GenerationStats] = None
    raw: Optional[Dict[str, Any]] = None
