"""S3 会话存储。

每个会话一个对象，key 为 <session_id>.json，内容与本地文件完全一致。
支持 AWS S3 以及 S3 兼容服务（MinIO、LocalStack 等，通过 endpoint_url）。
"""

from typing import Any, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from twin_core.domain.conversation import ConversationMessage
from twin_core.domain.exceptions import AccessDenied, StoreFailure
from twin_core.infrastructure.logging.logger import logger
from twin_core.infrastructure.storage.json_store import dump_messages, memory_key, parse_messages


NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
ACCESS_DENIED_CODES = {"AccessDenied", "403", "Forbidden"}


class S3ConversationStore:
    """S3 后端。boto3 client 创建一次，在并发请求间共享（client 线程安全）。"""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ):
        if not bucket:
            raise StoreFailure(code="STORE_CONFIG_ERROR", message="S3_BUCKET not set")
        self._bucket = bucket
        if client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": region,
                "config": Config(signature_version="s3v4"),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
                logger.info("Using custom S3 endpoint", extra={"extra": {"endpoint_url": endpoint_url}})
            client = boto3.client(**client_kwargs)
        self._client = client

    @property
    def bucket(self) -> str:
        return self._bucket

    def load(self, session_id: str) -> List[ConversationMessage]:
        key = memory_key(session_id)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            code = _error_code(e)
            if code in NOT_FOUND_CODES:
                return []
            raise self._translate(e, "STORE_READ_ERROR", session_id)
        except BotoCoreError as e:
            raise StoreFailure(code="STORE_READ_ERROR", message=str(e), session_id=session_id)

        raw = body.decode("utf-8") if isinstance(body, bytes) else str(body or "")
        try:
            return parse_messages(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StoreFailure(code="STORE_DECODE_ERROR", message=str(e), session_id=session_id)

    def save(self, session_id: str, messages: List[ConversationMessage]) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=memory_key(session_id),
                Body=dump_messages(messages).encode("utf-8"),
                ContentType="application/json",
            )
        except ClientError as e:
            raise self._translate(e, "STORE_WRITE_ERROR", session_id)
        except BotoCoreError as e:
            raise StoreFailure(code="STORE_WRITE_ERROR", message=str(e), session_id=session_id)

    def _translate(self, e: ClientError, code: str, session_id: str) -> StoreFailure:
        error_code = _error_code(e)
        if error_code in ACCESS_DENIED_CODES:
            return AccessDenied(
                code="STORE_ACCESS_DENIED",
                message=f"Access denied to bucket {self._bucket}",
                session_id=session_id,
            )
        return StoreFailure(code=code, message=str(e), session_id=session_id, s3_code=error_code)


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))
