"""设置与 Provider 验证路由

GET  /api/settings: 当前生效的 Provider 设置（不含密钥明文）
PUT  /api/settings/provider: 切换 Provider / 模型 / 网关地址
PUT  /api/settings/api-keys/{provider_type}: 保存 API key（空串清除）
PUT  /api/settings/document-credentials: 保存两套文档服务凭据
POST /api/providers/{provider_type}/validate: 验证 Provider 凭据
"""

import structlog
from coursepilot.core.models import ProviderType
from coursepilot.provider import DEFAULT_MODELS, create_provider
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from ..deps import get_settings_service
from ..services.settings import StoredDocumentCredentials, StoredProviderSettings

log = structlog.get_logger()

router = APIRouter()


class ApiKeyRequest(BaseModel):
    api_key: str = Field(default="", description="API key，空串表示清除")


class ValidateProviderRequest(BaseModel):
    """验证请求 -- 未提供的字段使用当前生效配置"""

    api_key: str | None = None
    model: str | None = None
    base_url: str | None = None


@router.get("/api/settings")
async def get_settings(request: Request, settings=Depends(get_settings_service)):
    config = await settings.resolve_provider_config(request.app.state.provider_config)
    return {
        "provider": config.provider.value,
        "model": config.model or DEFAULT_MODELS[config.provider],
        "gateway_url": config.gateway_url,
        "configured_keys": sorted(
            p.value for p in ProviderType if config.api_key_for(p)
        ),
    }


@router.put("/api/settings/provider")
async def update_provider_settings(
    body: StoredProviderSettings,
    settings=Depends(get_settings_service),
):
    await settings.save_provider_settings(body)
    return body.model_dump(mode="json")


@router.put("/api/settings/api-keys/{provider_type}")
async def update_api_key(
    provider_type: ProviderType,
    body: ApiKeyRequest,
    settings=Depends(get_settings_service),
):
    await settings.save_api_key(provider_type, body.api_key)
    return {"provider": provider_type.value, "configured": bool(body.api_key)}


@router.put("/api/settings/document-credentials")
async def update_document_credentials(
    body: StoredDocumentCredentials,
    settings=Depends(get_settings_service),
):
    await settings.save_document_credentials(body)
    return {"configured": True}


@router.post("/api/providers/{provider_type}/validate")
async def validate_provider(
    provider_type: ProviderType,
    request: Request,
    body: ValidateProviderRequest | None = None,
    settings=Depends(get_settings_service),
):
    """发送极小请求验证凭据 -- 始终返回 200，结果在 valid 字段中"""
    body = body or ValidateProviderRequest()
    config = await settings.resolve_provider_config(request.app.state.provider_config)

    api_key = body.api_key if body.api_key is not None else config.api_key_for(provider_type)
    if not api_key and provider_type != ProviderType.GATEWAY:
        return {
            "provider": provider_type.value,
            "valid": False,
            "error": f"No API key configured for provider {provider_type.value!r}",
        }

    model = body.model or (config.model if provider_type == config.provider else None)
    base_url = body.base_url or (
        config.gateway_url if provider_type == ProviderType.GATEWAY else None
    )
    provider = create_provider(
        provider_type,
        api_key,
        model,
        base_url,
        timeout_s=config.timeout_s,
        http_client=request.app.state.provider_http_client,
    )
    valid = await provider.validate()
    log.info("provider_validated", provider=provider_type.value, valid=valid)
    return {"provider": provider_type.value, "valid": valid}
