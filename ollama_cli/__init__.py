"""ollama-chat-cli 顶层包。

该包提供 Ollama 推理服务器的命令行客户端，包括配置加载、
请求编码与流式分帧、模型目录管理、问答会话处理、
终端展示以及本地会话历史的持久化。
"""

import logging

__version__ = "0.2.0"

# 未调用 setup_logger 之前的日志记录直接丢弃，不输出到 stderr
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["__version__"]
