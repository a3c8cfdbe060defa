"""ExportConfig -- 导出流水线配置加载

从环境变量加载远端服务凭据、模板地址与轮询策略。
"""

import os

import structlog
from coursepilot.core.models import DocumentServiceCredentials, ServiceCredentials
from pydantic import BaseModel, Field, SecretStr

from .clients import DEFAULT_BASE_URL
from .poller import RetryPolicy

log = structlog.get_logger()

COMPRESSION_LEVELS = ("low", "medium", "high")

# 轮询策略环境变量 -> RetryPolicy 字段
_POLICY_ENV_VARS: dict[str, str] = {
    "COURSEPILOT_POLL_INITIAL_DELAY_S": "initial_delay_s",
    "COURSEPILOT_POLL_MULTIPLIER": "multiplier",
    "COURSEPILOT_POLL_CAP_S": "cap_delay_s",
    "COURSEPILOT_POLL_DEADLINE_S": "deadline_s",
}


class ExportConfig(BaseModel):
    """Export 包配置 -- 从环境变量加载

    环境变量:
        FOXIT_BASE_URL: 文档服务地址（默认 https://na1.fusion.foxit.com）
        FOXIT_DOCGEN_CLIENT_ID / FOXIT_DOCGEN_CLIENT_SECRET: 文档生成服务凭据
        FOXIT_PDF_CLIENT_ID / FOXIT_PDF_CLIENT_SECRET: PDF 服务凭据
        COURSEPILOT_TEMPLATES_URL: 模板静态文件地址
        COURSEPILOT_POLL_INITIAL_DELAY_S / _MULTIPLIER / _CAP_S / _DEADLINE_S: 轮询策略
        COURSEPILOT_COMPRESSION_LEVEL: 压缩级别（low/medium/high，默认 medium）
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="文档服务基础 URL")
    credentials: DocumentServiceCredentials = Field(
        default_factory=DocumentServiceCredentials,
        description="文档生成 + PDF 服务凭据",
    )
    templates_url: str = Field(
        default="http://127.0.0.1:8000/templates",
        description="模板静态文件基础 URL",
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    compression_level: str = Field(default="medium", description="PDF 压缩级别")


def _service_credentials(id_var: str, secret_var: str) -> ServiceCredentials:
    return ServiceCredentials(
        client_id=os.environ.get(id_var, ""),
        client_secret=SecretStr(os.environ.get(secret_var, "")),
    )


def load_export_config() -> ExportConfig:
    """从环境变量加载 Export 配置

    非法数值记录 warning 并回退默认值，不阻塞启动。

    Returns:
        ExportConfig 实例
    """
    kwargs: dict = {
        "credentials": DocumentServiceCredentials(
            doc_gen=_service_credentials("FOXIT_DOCGEN_CLIENT_ID", "FOXIT_DOCGEN_CLIENT_SECRET"),
            pdf_services=_service_credentials("FOXIT_PDF_CLIENT_ID", "FOXIT_PDF_CLIENT_SECRET"),
        ),
    }

    if val := os.environ.get("FOXIT_BASE_URL"):
        kwargs["base_url"] = val

    if val := os.environ.get("COURSEPILOT_TEMPLATES_URL"):
        kwargs["templates_url"] = val

    policy: dict[str, float] = {}
    for env_var, field_name in _POLICY_ENV_VARS.items():
        if val := os.environ.get(env_var):
            try:
                value = float(val)
            except ValueError:
                value = 0.0
            if value <= 0:
                log.warning("invalid_poll_config", env_var=env_var, value=val)
                continue
            policy[field_name] = value
    if policy:
        try:
            kwargs["retry_policy"] = RetryPolicy(**policy)
        except ValueError as e:
            log.warning("invalid_poll_config", error=str(e))

    if val := os.environ.get("COURSEPILOT_COMPRESSION_LEVEL"):
        level = val.strip().lower()
        if level in COMPRESSION_LEVELS:
            kwargs["compression_level"] = level
        else:
            log.warning(
                "invalid_compression_config",
                env_var="COURSEPILOT_COMPRESSION_LEVEL",
                value=val,
                fallback="medium",
            )

    return ExportConfig(**kwargs)
