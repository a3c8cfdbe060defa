"""apps/gateway 测试配置 -- 组装服务的 FastAPI app + httpx AsyncClient"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from coursepilot.core.models import (
    DocumentServiceCredentials,
    ProviderType,
    ServiceCredentials,
)
from coursepilot.export import ExportConfig, RetryPolicy
from coursepilot.provider import ProviderConfig
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        provider=ProviderType.ANTHROPIC,
        api_keys={ProviderType.ANTHROPIC: SecretStr("sk-ant-test")},
    )


@pytest.fixture
def export_config() -> ExportConfig:
    return ExportConfig(
        base_url="https://docs.test",
        credentials=DocumentServiceCredentials(
            doc_gen=ServiceCredentials(client_id="gen-id", client_secret=SecretStr("gen-secret")),
            pdf_services=ServiceCredentials(
                client_id="pdf-id", client_secret=SecretStr("pdf-secret")
            ),
        ),
        retry_policy=RetryPolicy(initial_delay_s=0.001, cap_delay_s=0.01, deadline_s=2.0),
    )


@pytest.fixture
def fake_anthropic(anthropic_service):
    return anthropic_service()


@pytest.fixture
def fake_documents(document_service):
    return document_service()


@pytest_asyncio.fixture
async def app(kv_store, provider_config, export_config, fake_anthropic, fake_documents, static_templates):
    """创建测试用 FastAPI app 实例

    不经过 lifespan，直接用临时 store 与 MockTransport 客户端组装服务。
    """
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from coursepilot.gateway.main import configure_services, create_app

    application = create_app()
    provider_http = fake_anthropic.client()
    documents_http = fake_documents.client()
    configure_services(
        application,
        kv_store,
        provider_config=provider_config,
        export_config=export_config,
        http_client=documents_http,
        provider_http_client=provider_http,
        template_loader=static_templates,
    )
    yield application

    await application.state.stream_relay.shutdown()
    await provider_http.aclose()
    await documents_http.aclose()
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
