"""集成测试共享 fixture -- 完整组装的 gateway，远端服务全部由 MockTransport 替身提供"""

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from coursepilot.core.models import DocumentServiceCredentials, ProviderType, ServiceCredentials
from coursepilot.export import ExportConfig, RetryPolicy
from coursepilot.provider import ProviderConfig
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr


@pytest_asyncio.fixture
async def remote_services(anthropic_service, document_service):
    """(Anthropic 替身, 文档服务替身)"""
    return anthropic_service(["Hel", "lo"]), document_service()


@pytest_asyncio.fixture
async def integration_app(kv_store, remote_services, static_templates):
    """集成测试用 FastAPI app"""
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from coursepilot.gateway.main import configure_services, create_app

    anthropic, documents = remote_services
    provider_http = anthropic.client()
    documents_http = documents.client()

    app = create_app()
    configure_services(
        app,
        kv_store,
        provider_config=ProviderConfig(
            provider=ProviderType.ANTHROPIC,
            api_keys={ProviderType.ANTHROPIC: SecretStr("sk-ant-integration")},
        ),
        export_config=ExportConfig(
            base_url="https://docs.test",
            credentials=DocumentServiceCredentials(
                doc_gen=ServiceCredentials(client_id="gen", client_secret=SecretStr("g")),
                pdf_services=ServiceCredentials(client_id="pdf", client_secret=SecretStr("p")),
            ),
            retry_policy=RetryPolicy(initial_delay_s=0.001, cap_delay_s=0.01, deadline_s=2.0),
        ),
        http_client=documents_http,
        provider_http_client=provider_http,
        template_loader=static_templates,
    )

    yield app

    await app.state.stream_relay.shutdown()
    await provider_http.aclose()
    await documents_http.aclose()
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
