"""Store Protocol 接口定义

定义 KeyValueStore、ExportStatusSlot 的抽象接口，
使用 Python Protocol 实现结构化子类型。
Core 只调用这些接口，不拥有其生命周期。
"""

from typing import Any, Protocol

from ..models.export import ExportStatus


class KeyValueStore(Protocol):
    """Key-Value 存储接口 -- settings / 凭据 / 状态"""

    async def get(self, key: str, default: Any = None) -> Any:
        """读取 key，不存在返回 default"""
        ...

    async def set(self, key: str, value: Any) -> None:
        """写入 key"""
        ...

    async def delete(self, key: str) -> bool:
        """删除 key"""
        ...


class ExportStatusSlot(Protocol):
    """导出状态槽 -- 单一可变位置，无内部锁

    同一槽上的并发写入按 last-writer-wins 处理，
    由调用方串行化导出触发。
    """

    async def get(self) -> ExportStatus:
        """读取当前状态（从未写入时为 idle）"""
        ...

    async def set(self, status: ExportStatus) -> None:
        """覆盖当前状态"""
        ...
