"""ProviderConfig -- Provider 配置加载

从环境变量加载配置；网关存储的设置（StoredProviderSettings）
会在运行时覆盖这里的值。
"""

import os

import structlog
from coursepilot.core.models import ProviderType
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

# 每种 Provider 的 API key 环境变量
API_KEY_ENV_VARS: dict[ProviderType, str] = {
    ProviderType.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderType.OPENAI: "OPENAI_API_KEY",
    ProviderType.GEMINI: "GEMINI_API_KEY",
    ProviderType.GATEWAY: "COURSEPILOT_GATEWAY_API_KEY",
}


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        COURSEPILOT_PROVIDER: 当前 Provider（anthropic/openai/gemini/gateway，默认 anthropic）
        ANTHROPIC_API_KEY / OPENAI_API_KEY / GEMINI_API_KEY / COURSEPILOT_GATEWAY_API_KEY
        COURSEPILOT_GATEWAY_URL: 网关地址（默认 http://127.0.0.1:18789）
        COURSEPILOT_MODEL: 模型覆盖（为空时使用 Provider 默认模型）
        COURSEPILOT_LLM_TIMEOUT_S: 调用超时（秒，默认 30）
    """

    provider: ProviderType = Field(
        default=ProviderType.ANTHROPIC,
        description="当前使用的 Provider",
    )
    api_keys: dict[ProviderType, SecretStr] = Field(
        default_factory=dict,
        description="每种 Provider 的 API key",
    )
    model: str | None = Field(
        default=None,
        description="模型覆盖，None 使用 Provider 默认模型",
    )
    gateway_url: str | None = Field(
        default=None,
        description="OpenAI 兼容网关地址",
    )
    timeout_s: int = Field(
        default=30,
        ge=1,
        description="LLM 调用超时（秒）",
    )

    def api_key_for(self, provider_type: ProviderType) -> str:
        """取出指定 Provider 的明文 key，未配置返回空串"""
        secret = self.api_keys.get(provider_type)
        return secret.get_secret_value() if secret else ""


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("COURSEPILOT_PROVIDER"):
        try:
            kwargs["provider"] = ProviderType(val.strip().lower())
        except ValueError:
            log.warning(
                "invalid_provider_config",
                env_var="COURSEPILOT_PROVIDER",
                value=val,
                fallback=ProviderType.ANTHROPIC.value,
            )

    api_keys = {
        provider_type: SecretStr(val)
        for provider_type, env_var in API_KEY_ENV_VARS.items()
        if (val := os.environ.get(env_var))
    }
    if api_keys:
        kwargs["api_keys"] = api_keys

    if val := os.environ.get("COURSEPILOT_MODEL"):
        kwargs["model"] = val

    if val := os.environ.get("COURSEPILOT_GATEWAY_URL"):
        kwargs["gateway_url"] = val

    if val := os.environ.get("COURSEPILOT_LLM_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="COURSEPILOT_LLM_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return ProviderConfig(**kwargs)
