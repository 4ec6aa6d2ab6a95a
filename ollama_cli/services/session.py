"""一问一答的会话处理核心。

每一轮的状态流转：Sent → Receiving(batch|stream) → Done | Failed。

- 批量模式：一个请求对应一条完整记录，整体渲染。
- 流式模式：逐条处理服务器增量记录，response 片段立即交给 Presenter 输出，
  done=True 的终止记录必须携带 context。

成功后新的 context 留在会话里，下一轮自动带上；会话同时维护完整的对话轮次，
退出时交给 ConversationStore 保存。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ollama_cli.domain.conversation import ChatTurn
from ollama_cli.domain.exceptions import ApiError, BusinessError, ProtocolError
from ollama_cli.domain.models import GenerateChunk, GenerationResult, GenerationStats
from ollama_cli.providers.base import InferenceClient
from ollama_cli.ui.presenter import Presenter


@dataclass
class SessionConfig:
    model: str
    stream: bool = True
    verbose: bool = False

    @classmethod
    def from_settings(cls, settings) -> "SessionConfig":
        return cls(model=settings.model, stream=settings.stream, verbose=settings.verbose)


class GenerationSession:
    def __init__(
        self,
        client: InferenceClient,
        presenter: Presenter,
        config: SessionConfig,
        logger: Optional[logging.Logger] = None,
    ):
        self._client = client
        self._presenter = presenter
        self._config = config
        self._logger = logger or logging.getLogger("ollama_cli.ollama")
        self._context: Optional[str] = None
        self._turns: List[ChatTurn] = []

    @property
    def context(self) -> Optional[str]:
        return self._context

    @property
    def conversation(self) -> List[ChatTurn]:
        return list(self._turns)

    def restore(self, context: Optional[str], turns: Sequence[ChatTurn]) -> None:
        """用恢复的历史会话作为本次会话的起点。"""

        self._context = context
        self._turns = list(turns)

    def ask(self, prompt: str) -> GenerationResult:
        """发送一个问题并返回完整回答与新的 context。

        Raises:
            NetworkError / ApiError: 传输失败或服务器报告错误。
            ProtocolError: 响应缺少 response/context 或 JSON 损坏。
        """

        log_ctx: Dict[str, Any] = {
            "endpoint": str(self._client.endpoint),
            "model": self._config.model,
            "mode": "stream" if self._config.stream else "batch",
            "has_context": self._context is not None,
        }
        self._log(logging.DEBUG, "Attempting to generate response", log_ctx, prompt_chars=len(prompt))
        try:
            if self._config.stream:
                result = self._ask_stream(prompt)
            else:
                result = self._ask_batch(prompt)
        except BusinessError as e:
            self._log(logging.ERROR, "Generation failed", log_ctx, code=e.code, error=e.message, detail=e.extra)
            raise

        self._context = result.context
        self._turns.append(ChatTurn(role="user", content=prompt))
        self._turns.append(ChatTurn(role="assistant", content=result.response))
        if result.stats is not None:
            self._log(
                logging.DEBUG,
                "Response generated",
                log_ctx,
                prompt_tokens=result.stats.prompt_tokens,
                response_tokens=result.stats.response_tokens,
                seconds=result.stats.seconds,
            )
            if self._config.verbose:
                self._presenter.stats(result.stats)
        else:
            self._log(logging.DEBUG, "Response generated", log_ctx)
        return result

    # ---- 批量 ----

    def _ask_batch(self, prompt: str) -> GenerationResult:
        with self._presenter.status("Processing"):
            chunk = self._client.generate(self._config.model, prompt, self._context)
        if chunk.error:
            raise ApiError(code="GENERATION_ERROR", message=chunk.error)
        if chunk.response is None:
            raise ProtocolError(code="MISSING_FIELD", message="Response not found", raw=chunk.raw)
        self._presenter.answer(chunk.response)
        if chunk.context is None:
            raise ProtocolError(code="MISSING_CONTEXT", message="Context not found", raw=chunk.raw)
        return GenerationResult(
            response=chunk.response,
            context=chunk.context,
            stats=GenerationStats.from_chunk(chunk),
            raw=chunk.raw,
        )

    # ---- 流式 ----

    def _ask_stream(self, prompt: str) -> GenerationResult:
        stream = self._client.generate_stream(self._config.model, prompt, self._context)
        parts: List[str] = []
        terminal: Optional[GenerateChunk] = None
        try:
            terminal = self._consume(stream, parts)
        finally:
            if parts:
                self._presenter.answer_end()
            close = getattr(stream, "close", None)
            if close is not None:
                close()
        if terminal is None:
            raise ProtocolError(code="TRUNCATED_STREAM", message="Stream ended before final response")
        if terminal.context is None:
            raise ProtocolError(code="MISSING_CONTEXT", message="Context not found", raw=terminal.raw)
        return GenerationResult(
            response="".join(parts),
            context=terminal.context,
            stats=GenerationStats.from_chunk(terminal),
            raw=terminal.raw,
        )

    def _consume(self, stream: Iterable[GenerateChunk], parts: List[str]) -> Optional[GenerateChunk]:
        """逐条处理增量记录，返回终止记录；遇到 error 立即失败并丢弃后续片段。"""

        for chunk in stream:
            if chunk.error:
                raise ApiError(code="GENERATION_ERROR", message=chunk.error)
            if chunk.response:
                self._presenter.answer_delta(chunk.response)
                parts.append(chunk.response)
            if chunk.done:
                return chunk
        return None

    def _log(self, level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        self._logger.log(level, message, extra={"extra": payload})
