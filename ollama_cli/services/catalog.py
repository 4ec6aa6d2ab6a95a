"""模型目录管理：查询、下载、删除。

所有针对具体模型的操作都先与服务器实时返回的模型目录比对：
- 下载：模型已存在时直接成功，不发请求。
- 删除 / 提问：模型不存在时立即失败，不发请求。
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ollama_cli.domain.exceptions import ApiError, BusinessError, ModelNotFoundError
from ollama_cli.domain.models import ModelInfo, PullProgress
from ollama_cli.providers.base import InferenceClient
from ollama_cli.ui.presenter import Presenter


DEFAULT_TAG = ":latest"


@dataclass
class ModelCatalog:
    """服务器上可用模型的快照。"""

    models: List[ModelInfo] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [m.name for m in self.models]

    def resolve(self, name: str) -> Optional[str]:
        """按名称查找模型；未带 tag 的名称同时匹配 ":latest"。"""

        names = set(self.names)
        if name in names:
            return name
        if ":" not in name and f"{name}{DEFAULT_TAG}" in names:
            return f"{name}{DEFAULT_TAG}"
        return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None


class ModelCatalogService:
    def __init__(
        self,
        client: InferenceClient,
        presenter: Presenter,
        logger: Optional[logging.Logger] = None,
    ):
        self._client = client
        self._presenter = presenter
        self._logger = logger or logging.getLogger("ollama_cli.ollama")

    def fetch_catalog(self) -> ModelCatalog:
        endpoint = str(self._client.endpoint)
        self._log(logging.DEBUG, "Attempting to get available models", endpoint=endpoint)
        try:
            models = self._client.list_models()
        except BusinessError as e:
            self._log(logging.ERROR, "Failed to get available models", endpoint=endpoint, error=e.message)
            raise
        catalog = ModelCatalog(models=models)
        self._log(logging.DEBUG, "Available models", endpoint=endpoint, models=catalog.names)
        return catalog

    def ensure_available(self, name: str, catalog: ModelCatalog) -> str:
        resolved = catalog.resolve(name)
        if resolved is None:
            raise ModelNotFoundError(
                code="MODEL_NOT_FOUND",
                message=(
                    f'Model "{name}" not available.\n'
                    f"Available models for {self._client.endpoint.host} include: {catalog.names}"
                ),
            )
        return resolved

    def show_catalog(self, catalog: ModelCatalog, selected: str) -> None:
        rows = [
            (m.name, m.details.parameter_size, m.details.quantization_level, _human_size(m.size))
            for m in catalog.models
        ]
        self._presenter.table("Available models", ("Name", "Parameters", "Quantization", "Size"), rows)
        self._presenter.info(f'Selected model: "{selected}"')

    def pull(self, name: str, catalog: ModelCatalog) -> bool:
        """下载模型。模型已存在时返回 False 且不发请求，下载完成返回 True。"""

        endpoint = str(self._client.endpoint)
        self._log(logging.DEBUG, "Attempting to pull model", model=name, endpoint=endpoint)
        if name in catalog:
            self._presenter.success("Model already exists on server")
            return False
        progress = PullProgress()
        try:
            with self._presenter.pull_progress(name) as view:
                stream = self._client.pull_stream(name)
                try:
                    completed = self._consume_pull(stream, progress, view)
                finally:
                    close = getattr(stream, "close", None)
                    if close is not None:
                        close()
            if not completed:
                raise ApiError(code="PULL_FAILED", message="Error downloading model")
        except BusinessError as e:
            self._log(
                logging.ERROR,
                "Pull failed",
                model=name,
                endpoint=endpoint,
                layers=progress.layers,
                error=e.message,
            )
            raise
        self._presenter.success("Done")
        self._log(logging.INFO, "Model pulled", model=name, endpoint=endpoint, layers=progress.layers)
        return True

    def delete(self, name: str, catalog: ModelCatalog) -> None:
        endpoint = str(self._client.endpoint)
        self._presenter.success(f'Attempting to delete model "{name}"')
        if name not in catalog:
            self._log(logging.ERROR, "Delete refused: model not found", model=name, endpoint=endpoint)
            raise ModelNotFoundError(code="MODEL_NOT_FOUND", message="Model not found")
        resolved = catalog.resolve(name) or name
        self._log(logging.DEBUG, "Attempting to delete model", model=resolved, endpoint=endpoint)
        try:
            self._client.delete(resolved)
        except BusinessError as e:
            self._log(logging.ERROR, "Delete failed", model=resolved, endpoint=endpoint, error=e.message)
            raise
        self._log(logging.INFO, "Model deleted", model=resolved, endpoint=endpoint)

    def _consume_pull(self, stream: Iterator, progress: PullProgress, view) -> bool:
        for record in stream:
            if record.error:
                raise ApiError(code="PULL_ERROR", message=record.error)
            if progress.observe(record):
                view.new_layer(progress.layers, record.status or record.digest or "", record.total)
            if record.digest:
                view.update(record.completed, record.total)
            if record.status == "success":
                return True
        return False

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = dict(fields)
        self._logger.log(level, message, extra={"extra": payload})


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"
