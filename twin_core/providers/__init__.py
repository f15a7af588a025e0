"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 提供具体实现 (openai_client)。
"""

from twin_core.config.settings import settings
from twin_core.providers.base import ProviderClient
from twin_core.providers.openai_client import OpenAIClient


def create_provider(cfg=None) -> ProviderClient:
    """创建 Provider 实例，默认读取全局配置。"""

    return OpenAIClient(cfg or settings)
