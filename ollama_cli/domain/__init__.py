"""领域层模型与协议。

包含：
- models: 服务器地址、模型目录、生成/下载记录等数据结构。
- conversation: 会话轮次、持久化记录及 ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
