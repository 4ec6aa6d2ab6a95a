"""推理服务器客户端抽象接口。

上层服务（GenerationSession、ModelCatalogService）不直接依赖 httpx，
而是依赖此协议：

- OllamaClient 负责把调用转成 HTTP 请求，并把响应 JSON 解析为领域模型。
- 测试中可以用任意实现了同名方法的假对象替换。
"""

from typing import Iterable, List, Optional, Protocol

from ollama_cli.domain.models import GenerateChunk, ModelInfo, PullStatus, ServerEndpoint


class InferenceClient(Protocol):
    """推理服务器客户端协议。

    - endpoint: 服务器地址，用于日志与错误信息。
    - generate / generate_stream: 批量与流式两种生成模式。
    - pull_stream / delete: 模型下载与删除。
    """

    endpoint: ServerEndpoint

    def probe(self) -> None:
        ...

    def list_models(self) -> List[ModelInfo]:
        ...

    def generate(self, model: str, prompt: str, context: Optional[str] = None) -> GenerateChunk:
        ...

    def generate_stream(self, model: str, prompt: str, context: Optional[str] = None) -> Iterable[GenerateChunk]:
        """流式生成，逐条产出服务器的增量记录。"""

        ...

    def pull_stream(self, name: str) -> Iterable[PullStatus]:
        ...

    def delete(self, name: str) -> None:
        ...
