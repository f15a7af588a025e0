"""Twin Core 顶层包。

该包提供“数字分身”聊天后端的核心实现，
包括配置加载、人设提示词、会话存储（本地 / S3）、
模型调用网关、对话引擎与 HTTP 服务。
"""

from twin_core.agents.twin_agent import ChatTurn, TwinAgent

__all__ = ["ChatTurn", "TwinAgent"]
