"""配置管理模块。

配置来源按优先级从高到低：

1. 命令行参数（作为初始化参数传入 load_settings）。
2. 环境变量（前缀 OLLAMA_CLI_，例如 OLLAMA_CLI_HOST）。
3. .env 文件。
4. YAML 配置文件（默认位于用户配置目录下的 ollama-cli.yaml）。
5. 字段默认值。

Settings 实例由 CLI 创建后显式传给各组件，不提供全局单例。
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ollama_cli.config import paths
from ollama_cli.config.config_file import read_config_file
from ollama_cli.domain.exceptions import ValidationError
from ollama_cli.domain.models import ServerEndpoint


def resolve_config_file(explicit: Optional[str] = None) -> Path:
    """确定要读取的配置文件路径：显式参数 > OLLAMA_CLI_CONFIG_FILE > 默认位置。"""

    candidate = explicit or os.getenv("OLLAMA_CLI_CONFIG_FILE")
    if candidate:
        return Path(candidate).expanduser()
    return paths.default_config_file()


class YamlConfigSource(PydanticBaseSettingsSource):
    """从 YAML 配置文件读取字段值。"""

    def __init__(self, settings_cls: Type[BaseSettings], path: Path):
        super().__init__(settings_cls)
        self._data = read_config_file(path)

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return {k: v for k, v in self._data.items() if k in self.settings_cls.model_fields and v is not None}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 推理服务器 ----
    host: str = Field(default="localhost", description="Ollama 服务器地址")
    port: int = Field(default=11434, ge=1, le=65535, description="Ollama 服务器端口")
    model: str = Field(default="llama3:latest", description="默认提问使用的模型")
    probe_timeout: float = Field(
        default=5.0,
        ge=0.1,
        description="连通性探测与模型目录请求的超时时间（秒）；生成与下载不设超时",
    )

    # ---- 交互行为 ----
    verbose: bool = Field(default=False, description="回答后输出 token 数与耗时")
    color: bool = Field(default=True, description="彩色与 Markdown 渲染")
    save: bool = Field(default=False, description="退出时自动保存会话")
    stream: bool = Field(default=True, description="流式输出回答；False 为批量模式")
    preview_length: int = Field(default=32, ge=8, le=200, description="会话列表中首条消息的预览长度")

    # ---- 存储与日志 ----
    data_dir: str = Field(default_factory=lambda: str(paths.data_dir()), description="会话库目录")
    log_dir: str = Field(default_factory=lambda: str(paths.data_dir()), description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否截断日志内容")
    config_file: Optional[str] = Field(default=None, description="显式指定的 YAML 配置文件")

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_CLI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        v = v.strip()
        for scheme in ("http://", "https://"):
            if v.startswith(scheme):
                v = v[len(scheme):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("host must not be empty")
        return v

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("model must not be empty")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        explicit = getattr(init_settings, "init_kwargs", {}).get("config_file")
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls, resolve_config_file(explicit)),
            file_secret_settings,
        )

    @property
    def endpoint(self) -> ServerEndpoint:
        return ServerEndpoint(host=self.host, port=self.port)

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir).expanduser() / paths.DB_FILE

    @property
    def log_path(self) -> Path:
        return Path(self.log_dir).expanduser() / paths.LOG_FILE


def load_settings(config_file: Optional[str] = None, **overrides: Any) -> Settings:
    """构造 Settings；值为 None 的覆盖项视为未提供。"""

    values = {k: v for k, v in overrides.items() if v is not None}
    if config_file:
        values["config_file"] = str(config_file)
    try:
        return Settings(**values)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(code="INVALID_CONFIG", message=f"Invalid configuration -> {problems}") from e
