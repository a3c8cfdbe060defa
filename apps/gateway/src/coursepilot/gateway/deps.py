"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from coursepilot.core.store import SqliteKeyValueStore
from fastapi import Request

from .services.export_service import ExportService
from .services.settings import SettingsService
from .services.status_hub import StatusHub


def get_kv_store(request: Request) -> SqliteKeyValueStore:
    """从 app.state 获取 KeyValueStore 实例"""
    return request.app.state.kv_store


def get_settings_service(request: Request) -> SettingsService:
    return request.app.state.settings_service


def get_status_hub(request: Request) -> StatusHub:
    """从 app.state 获取 StatusHub 实例"""
    return request.app.state.status_hub


def get_export_service(request: Request) -> ExportService:
    return request.app.state.export_service
