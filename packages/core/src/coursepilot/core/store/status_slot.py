"""ExportStatusSlot 实现 -- 内存版 + KeyValueStore 持久化版

持久化版在进程重启后仍能读到最近一次导出的进度。
"""

import structlog

from ..config import EXPORT_STATUS_KEY
from ..models.export import ExportStatus
from .protocols import KeyValueStore

log = structlog.get_logger()


class InMemoryStatusSlot:
    """进程内状态槽"""

    def __init__(self, initial: ExportStatus | None = None) -> None:
        self._status = initial or ExportStatus()

    async def get(self) -> ExportStatus:
        return self._status

    async def set(self, status: ExportStatus) -> None:
        self._status = status


class KeyValueStatusSlot:
    """基于 KeyValueStore 的持久化状态槽"""

    def __init__(self, store: KeyValueStore, key: str = EXPORT_STATUS_KEY) -> None:
        self._store = store
        self._key = key

    async def get(self) -> ExportStatus:
        """读取状态；存储内容无法解析时回退为 idle"""
        raw = await self._store.get(self._key)
        if raw is None:
            return ExportStatus()
        try:
            return ExportStatus.model_validate(raw)
        except ValueError as e:
            log.warning("export_status_unreadable", key=self._key, error=str(e))
            return ExportStatus()

    async def set(self, status: ExportStatus) -> None:
        await self._store.set(self._key, status.model_dump(mode="json"))
