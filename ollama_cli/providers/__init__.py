"""推理服务器集成层。

该包下的模块负责：
- 定义客户端抽象接口 (base)。
- 请求体编码与流式响应分帧 (codec)。
- Ollama HTTP 客户端实现 (ollama_client)。
"""

import logging
from typing import Optional

from ollama_cli.providers.base import InferenceClient
from ollama_cli.providers.ollama_client import OllamaClient


def create_client(settings, logger: Optional[logging.Logger] = None) -> InferenceClient:
    """根据配置创建推理服务器客户端。"""

    return OllamaClient(settings, logger=logger)
