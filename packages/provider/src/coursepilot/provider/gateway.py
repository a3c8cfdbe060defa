"""本地 OpenAI 兼容网关适配器

网关通常无需鉴权：仅当配置了 key 时才发送 Authorization 头。
"""

from coursepilot.core.models import ProviderType

from .openai import OpenAIProvider

DEFAULT_GATEWAY_URL = "http://127.0.0.1:18789"


class GatewayProvider(OpenAIProvider):
    """OpenAI 兼容网关"""

    provider_type = ProviderType.GATEWAY
    default_base_url = DEFAULT_GATEWAY_URL

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers
