"""Ollama HTTP 客户端。

本模块负责：

1. 用 codec.encode_postdata 构造请求体。
2. 调用 HTTP 接口并把网络错误/非 2xx 映射为 NetworkError / ApiError。
3. 流式接口逐块读取响应，用 JsonStreamDeframer 还原完整记录后再解析为领域模型。

连通性探测与模型目录请求使用 settings.probe_timeout；生成与下载可能持续很久，
不设客户端超时，也不支持中途取消。
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

from ollama_cli.domain.exceptions import ApiError, NetworkError, ProtocolError
from ollama_cli.domain.models import (
    GenerateChunk,
    ModelDetails,
    ModelInfo,
    PullStatus,
    ServerEndpoint,
)
from ollama_cli.providers.codec import JsonStreamDeframer, decode_record, encode_postdata


HEADERS = {"Content-Type": "application/json"}


def probe_server(endpoint: ServerEndpoint, timeout: float) -> None:
    """GET /，任何成功的 HTTP 响应都视为服务器在线。"""

    try:
        with httpx.Client(timeout=timeout, trust_env=False) as client:
            client.get(f"{endpoint.base_url}/")
    except httpx.RequestError as e:
        raise NetworkError(code="SERVER_UNREACHABLE", message=f"Invalid server {endpoint}", endpoint=str(endpoint)) from e


class OllamaClient:
    """Ollama 推理服务器客户端实现。"""

    def __init__(self, settings, logger: Optional[logging.Logger] = None):
        # Settings 里包含 host、port、探测超时等配置
        self.endpoint = ServerEndpoint(host=settings.host, port=settings.port)
        self._probe_timeout = settings.probe_timeout
        self._log = logger or logging.getLogger("ollama_cli.ollama")

    def _url(self, path: str) -> str:
        return f"{self.endpoint.base_url}{path}"

    # ---- 服务器与模型目录 ----

    def probe(self) -> None:
        probe_server(self.endpoint, self._probe_timeout)

    def list_models(self) -> List[ModelInfo]:
        try:
            with httpx.Client(timeout=self._probe_timeout, trust_env=False) as client:
                resp = client.get(self._url("/api/tags"))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=str(self.endpoint)) from e
        self._check_status(resp)
        data = decode_record(resp.text)
        models = data.get("models")
        if not isinstance(models, list):
            raise ProtocolError(code="MISSING_FIELD", message="Model list not found", raw=data)
        return [self._parse_model(m) for m in models if isinstance(m, dict) and m.get("name")]

    # ---- 生成 ----

    def generate(self, model: str, prompt: str, context: Optional[str] = None) -> GenerateChunk:
        body = self._generate_body(model, prompt, context, stream=False)
        try:
            with httpx.Client(timeout=None, trust_env=False) as client:
                resp = client.post(self._url("/api/generate"), content=body, headers=HEADERS)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=str(self.endpoint)) from e
        self._check_status(resp)
        return self._parse_generate(decode_record(resp.text))

    def generate_stream(self, model: str, prompt: str, context: Optional[str] = None) -> Iterator[GenerateChunk]:
        body = self._generate_body(model, prompt, context, stream=True)
        for data in self._stream_records("/api/generate", body):
            yield self._parse_generate(data)

    # ---- 模型下载与删除 ----

    def pull_stream(self, name: str) -> Iterator[PullStatus]:
        body = encode_postdata({"name": name, "stream": "true"})
        for data in self._stream_records("/api/pull", body):
            yield PullStatus(
                error=data.get("error"),
                status=data.get("status"),
                digest=data.get("digest"),
                total=data.get("total"),
                completed=data.get("completed"),
                raw=data,
            )

    def delete(self, name: str) -> None:
        body = encode_postdata({"name": name})
        try:
            with httpx.Client(timeout=self._probe_timeout, trust_env=False) as client:
                resp = client.request("DELETE", self._url("/api/delete"), content=body, headers=HEADERS)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=str(self.endpoint)) from e
        if resp.status_code != 200:
            raise ApiError(
                code="DELETE_FAILED",
                message="Server error deleting model",
                http_status=resp.status_code,
                detail=resp.text,
            )

    # ---- 辅助方法 ----

    def _stream_records(self, path: str, body: str) -> Iterator[Dict[str, Any]]:
        deframer = JsonStreamDeframer()
        try:
            with httpx.Client(timeout=None, trust_env=False) as client:
                with client.stream("POST", self._url(path), content=body, headers=HEADERS) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        self._check_status(resp)
                    for text in resp.iter_text():
                        if not text:
                            continue
                        for data in deframer.feed(text):
                            yield data
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=str(self.endpoint)) from e
        deframer.finish()

    def _generate_body(self, model: str, prompt: str, context: Optional[str], stream: bool) -> str:
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": "true" if stream else "false",
        }
        if context:
            payload["context"] = context
        return encode_postdata(payload)

    def _check_status(self, resp) -> None:
        if resp.status_code < 400:
            return
        message = resp.text
        try:
            data = json.loads(resp.text)
            if isinstance(data, dict) and data.get("error"):
                message = str(data["error"])
        except json.JSONDecodeError:
            pass
        self._log.error(
            "http.error",
            extra={"extra": {"endpoint": str(self.endpoint), "status": resp.status_code, "detail": message}},
        )
        raise ApiError(code="API_ERROR", message=message or f"HTTP {resp.status_code}", http_status=resp.status_code)

    @staticmethod
    def _parse_generate(data: Dict[str, Any]) -> GenerateChunk:
        context = data.get("context")
        if context is not None and not isinstance(context, str):
            context = json.dumps(context, separators=(",", ":"))
        return GenerateChunk(
            error=data.get("error"),
            model=data.get("model"),
            created_at=data.get("created_at"),
            response=data.get("response"),
            done=data.get("done"),
            context=context,
            total_duration=data.get("total_duration"),
            load_duration=data.get("load_duration"),
            prompt_eval_count=data.get("prompt_eval_count"),
            prompt_eval_duration=data.get("prompt_eval_duration"),
            eval_count=data.get("eval_count"),
            eval_duration=data.get("eval_duration"),
            raw=data,
        )

    @staticmethod
    def _parse_model(data: Dict[str, Any]) -> ModelInfo:
        details = data.get("details") or {}
        return ModelInfo(
            name=data["name"],
            modified_at=data.get("modified_at") or "",
            size=int(data.get("size") or 0),
            digest=data.get("digest") or "",
            details=ModelDetails(
                format=details.get("format") or "",
                family=details.get("family") or "",
                families=details.get("families"),
                parameter_size=details.get("parameter_size") or "",
                quantization_level=details.get("quantization_level") or "",
            ),
        )
