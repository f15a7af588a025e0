"""领域层模型与协议。

包含：
- models: 发给模型服务的 ChatMessage / ChatRequest / ChatResult 模型。
- conversation: 会话消息模型及 ConversationStore 抽象。
- persona: 人设数据模型。
- exceptions: 业务异常类型定义。
"""
