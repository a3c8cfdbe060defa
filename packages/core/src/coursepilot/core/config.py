"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、SSE 心跳间隔等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("COURSEPILOT_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径（settings / 凭据 / 导出状态）"""
    return os.environ.get(
        "COURSEPILOT_DB_PATH",
        str(_get_base_dir() / "sqlite" / "coursepilot.db"),
    )


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("COURSEPILOT_SSE_HEARTBEAT_INTERVAL", "15")
)

# 错误响应体写入异常消息时的截断长度
ERROR_BODY_PREVIEW_LENGTH: int = 500

# key-value store 中的固定 key
SETTINGS_KEY = "settings"
API_KEYS_KEY = "api_keys"
DOCUMENT_CREDENTIALS_KEY = "document_credentials"
EXPORT_STATUS_KEY = "export_status"
