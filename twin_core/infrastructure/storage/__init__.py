"""会话存储实现。

- json_store: 本地文件后端。
- s3_store: S3 对象存储后端。

create_store 在启动时按配置选择其一。
"""

from twin_core.domain.conversation import ConversationStore
from twin_core.infrastructure.storage.json_store import LocalConversationStore


def create_store(cfg) -> ConversationStore:
    """根据 use_s3 配置创建存储后端。"""

    if getattr(cfg, "use_s3", False):
        from twin_core.infrastructure.storage.s3_store import S3ConversationStore

        return S3ConversationStore(
            bucket=cfg.s3_bucket,
            region=cfg.default_aws_region,
            endpoint_url=getattr(cfg, "s3_endpoint_url", None),
        )
    return LocalConversationStore(cfg.memory_dir)
