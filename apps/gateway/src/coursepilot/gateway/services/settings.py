"""SettingsService -- 存储的设置覆盖环境变量配置

key-value store 中保存三类设置：
- settings: 当前 Provider / 模型 / 网关地址
- api_keys: 每种 Provider 的 API key
- document_credentials: 文档生成 + PDF 服务凭据
"""

import structlog
from coursepilot.core.config import API_KEYS_KEY, DOCUMENT_CREDENTIALS_KEY, SETTINGS_KEY
from coursepilot.core.models import (
    DocumentServiceCredentials,
    ProviderType,
    ServiceCredentials,
)
from coursepilot.core.store import KeyValueStore
from coursepilot.provider import ProviderConfig
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class StoredProviderSettings(BaseModel):
    """存储的 Provider 选择；None 字段表示沿用环境配置"""

    provider: ProviderType | None = Field(default=None, description="当前 Provider")
    model: str | None = Field(default=None, description="模型覆盖")
    gateway_url: str | None = Field(default=None, description="网关地址")


class StoredServiceCredentials(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)

    def to_credentials(self) -> ServiceCredentials:
        return ServiceCredentials(
            client_id=self.client_id,
            client_secret=SecretStr(self.client_secret),
        )


class StoredDocumentCredentials(BaseModel):
    """存储的文档服务凭据（两套独立）"""

    doc_gen: StoredServiceCredentials
    pdf_services: StoredServiceCredentials


class SettingsService:
    """读写存储的设置，并与环境配置合并"""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def get_provider_settings(self) -> StoredProviderSettings:
        raw = await self._store.get(SETTINGS_KEY)
        if raw is None:
            return StoredProviderSettings()
        try:
            return StoredProviderSettings.model_validate(raw)
        except ValueError as e:
            log.warning("stored_settings_unreadable", key=SETTINGS_KEY, error=str(e))
            return StoredProviderSettings()

    async def save_provider_settings(self, settings: StoredProviderSettings) -> None:
        await self._store.set(SETTINGS_KEY, settings.model_dump(mode="json"))
        log.info(
            "provider_settings_saved",
            provider=settings.provider.value if settings.provider else None,
            model=settings.model,
        )

    async def _api_keys(self) -> dict[str, str]:
        raw = await self._store.get(API_KEYS_KEY, {})
        return raw if isinstance(raw, dict) else {}

    async def save_api_key(self, provider_type: ProviderType, api_key: str) -> None:
        """保存 API key；空串表示删除"""
        keys = await self._api_keys()
        if api_key:
            keys[provider_type.value] = api_key
        else:
            keys.pop(provider_type.value, None)
        await self._store.set(API_KEYS_KEY, keys)
        log.info("api_key_saved", provider=provider_type.value, cleared=not api_key)

    async def resolve_provider_config(self, base: ProviderConfig) -> ProviderConfig:
        """环境配置 + 存储设置 -> 当前生效的 ProviderConfig"""
        settings = await self.get_provider_settings()
        stored_keys = await self._api_keys()

        api_keys = dict(base.api_keys)
        for provider_type in ProviderType:
            if key := stored_keys.get(provider_type.value):
                api_keys[provider_type] = SecretStr(key)

        update: dict = {"api_keys": api_keys}
        if settings.provider is not None:
            update["provider"] = settings.provider
        if settings.model:
            update["model"] = settings.model
        if settings.gateway_url:
            update["gateway_url"] = settings.gateway_url
        return base.model_copy(update=update)

    async def save_document_credentials(self, credentials: StoredDocumentCredentials) -> None:
        await self._store.set(DOCUMENT_CREDENTIALS_KEY, credentials.model_dump(mode="json"))
        log.info("document_credentials_saved")

    async def resolve_document_credentials(
        self, base: DocumentServiceCredentials
    ) -> DocumentServiceCredentials:
        """存储的凭据优先于环境配置"""
        raw = await self._store.get(DOCUMENT_CREDENTIALS_KEY)
        if raw is None:
            return base
        try:
            stored = StoredDocumentCredentials.model_validate(raw)
        except ValueError as e:
            log.warning("stored_credentials_unreadable", error=str(e))
            return base
        return DocumentServiceCredentials(
            doc_gen=stored.doc_gen.to_credentials(),
            pdf_services=stored.pdf_services.to_credentials(),
        )
