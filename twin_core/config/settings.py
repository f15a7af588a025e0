"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("TWIN_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """服务配置（使用 Pydantic）。"""

    # ---- HTTP / CORS ----
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="允许的跨域来源，逗号分隔",
    )
    port: int = Field(default=8000, ge=1, le=65535, description="本地开发服务端口")

    # ---- OpenAI ----
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    # 可选: gpt-4o, gpt-4o-mini, gpt-4-turbo, gpt-3.5-turbo
    openai_model: str = Field(default="gpt-4o-mini", description="对话使用的模型 ID")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI 兼容接口的基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话存储 ----
    default_aws_region: str = Field(default="us-east-1", description="AWS 区域")
    use_s3: bool = Field(default=False, description="是否使用 S3 保存会话")
    s3_bucket: str = Field(default="", description="会话存储桶名称")
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3 兼容服务地址（MinIO / LocalStack）",
    )
    memory_dir: str = Field(default="../memory", description="本地会话目录")

    # ---- 人设数据 ----
    persona_data_dir: str = Field(
        default=str(PACKAGE_DATA_DIR),
        description="facts.json / summary.txt 等人设文件所在目录",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def join_origins(cls, v: Any) -> Any:
        # config.yaml 里可以直接写列表
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        return v

    @field_validator("openai_api_key", "s3_endpoint_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def storage_label(self) -> str:
        return "S3" if self.use_s3 else "local"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
