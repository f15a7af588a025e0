"""对外 API 服务模块。

持有进程级单例（人设、存储、对话引擎），并提供简化的函数接口供 HTTP 层调用。
"""

from typing import Optional, Dict, Any

from twin_core.agents.gateway import CompletionGateway
from twin_core.agents.twin_agent import TwinAgent
from twin_core.config.settings import settings
from twin_core.domain.conversation import ConversationStore
from twin_core.domain.persona import PersonaProfile
from twin_core.infrastructure.logging.logger import logger
from twin_core.infrastructure.storage import create_store
from twin_core.prompts.persona import PersonaPromptBuilder, load_persona
from twin_core.providers import create_provider


_persona: Optional[PersonaProfile] = None
_store: Optional[ConversationStore] = None
_agent: Optional[TwinAgent] = None


def initialize(cfg=None) -> PersonaProfile:
    """启动时加载人设并创建存储后端；重复调用不会重新加载。返回已加载的人设。"""
    global _persona, _store
    cfg = cfg or settings
    if _persona is None:
        _persona = load_persona(cfg.persona_data_dir)
    if _store is None:
        _store = create_store(cfg)
        logger.info("Conversation store ready", extra={"extra": {"storage": cfg.storage_label}})
    return _persona


def get_persona() -> PersonaProfile:
    return initialize()


def get_default_agent() -> TwinAgent:
    """获取默认的 TwinAgent 实例（单例）。"""
    global _agent
    if _agent is None:
        initialize()
        gateway = CompletionGateway(
            provider_client=create_provider(settings),
            persona_builder=PersonaPromptBuilder(get_persona()),
            model=settings.openai_model,
        )
        _agent = TwinAgent(store=_store, gateway=gateway)
    return _agent


def set_default_agent(agent: Optional[TwinAgent]) -> None:
    """替换（或清空）默认 agent，便于测试注入。"""
    global _agent
    _agent = agent


def run_twin_chat(message: Any, session_id: Optional[str] = None) -> Dict[str, Any]:
    """运行一次聊天。

    Returns:
        {"response": 助手回复, "session_id": 会话ID}

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    try:
        turn = get_default_agent().chat(message, session_id=session_id)
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "session_id": session_id,
            "error_type": type(e).__name__,
        }})
        raise
    return {"response": turn.reply, "session_id": turn.session_id}


def get_conversation_messages(session_id: str) -> Dict[str, Any]:
    """获取会话的所有消息。"""
    conv = get_default_agent().get_conversation(session_id)
    return conv.to_dict()
