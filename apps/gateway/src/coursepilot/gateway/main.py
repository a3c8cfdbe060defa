"""FastAPI 应用主文件

app 创建 + lifespan 管理：KV store 初始化/关闭 + relay / 导出服务初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from coursepilot.core.config import get_db_path
from coursepilot.core.store import KeyValueStatusSlot, SqliteKeyValueStore, create_kv_store
from coursepilot.export import (
    ExportConfig,
    KeyValuePortfolioDataSource,
    TemplateLoader,
    load_export_config,
)
from coursepilot.provider import (
    ProviderCapability,
    ProviderConfig,
    create_provider_from_config,
    load_provider_config,
)
from fastapi import FastAPI

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import export, health, settings, stream
from .services.export_service import ExportService
from .services.settings import SettingsService
from .services.status_hub import StatusHub
from .services.stream_relay import StreamRelay

log = structlog.get_logger()

# 导出链路共享 httpx 客户端的超时（秒）
EXPORT_HTTP_TIMEOUT_S = 60


def configure_services(
    app: FastAPI,
    kv_store: SqliteKeyValueStore,
    *,
    provider_config: ProviderConfig | None = None,
    export_config: ExportConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
    provider_http_client: httpx.AsyncClient | None = None,
    template_loader: TemplateLoader | None = None,
) -> None:
    """组装服务并挂到 app.state

    lifespan 与测试共用；测试可注入 MockTransport 客户端与替身模板来源。

    Args:
        app: FastAPI 实例
        kv_store: 已初始化的 KeyValueStore
        provider_config: Provider 环境配置，None 从环境变量加载
        export_config: Export 环境配置，None 从环境变量加载
        http_client: 导出链路共享的 httpx 客户端
        provider_http_client: Provider 使用的 httpx 客户端，None 时每次调用独立创建
        template_loader: 模板来源，None 使用 HttpTemplateLoader
    """
    provider_config = provider_config or load_provider_config()
    export_config = export_config or load_export_config()

    settings_service = SettingsService(kv_store)
    status_hub = StatusHub(KeyValueStatusSlot(kv_store))

    async def resolve_provider() -> ProviderCapability:
        config = await settings_service.resolve_provider_config(provider_config)
        return create_provider_from_config(config, http_client=provider_http_client)

    app.state.kv_store = kv_store
    app.state.provider_config = provider_config
    app.state.provider_http_client = provider_http_client
    app.state.provider_resolver = resolve_provider
    app.state.settings_service = settings_service
    app.state.status_hub = status_hub
    app.state.stream_relay = StreamRelay(resolve_provider)
    app.state.export_service = ExportService(
        config=export_config,
        settings=settings_service,
        status_hub=status_hub,
        data_source=KeyValuePortfolioDataSource(kv_store),
        template_loader=template_loader,
        http_client=http_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 store 与服务，关闭时取消进行中的流并清理连接"""
    kv_store = await create_kv_store(get_db_path())
    http_client = httpx.AsyncClient(timeout=EXPORT_HTTP_TIMEOUT_S)

    configure_services(app, kv_store, http_client=http_client)

    provider_config: ProviderConfig = app.state.provider_config
    log.info(
        "gateway_started",
        provider=provider_config.provider.value,
        model=provider_config.model,
    )

    yield

    await app.state.stream_relay.shutdown()
    await http_client.aclose()
    await kv_store.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="CoursePilot Gateway",
        version="0.1.0",
        description="CoursePilot 流式推理中继 + 学习档案导出 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire()

    # 注册路由
    app.include_router(stream.router, tags=["stream"])
    app.include_router(export.router, tags=["export"])
    app.include_router(settings.router, tags=["settings"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
