"""CoursePilot Core Store -- SQLite 持久化实现

提供工厂函数创建 KeyValueStore，以及导出状态槽实现。
"""

from pathlib import Path

import aiosqlite

from .kv_store import SqliteKeyValueStore
from .protocols import ExportStatusSlot, KeyValueStore
from .sqlite_init import init_db
from .status_slot import InMemoryStatusSlot, KeyValueStatusSlot


async def create_kv_store(db_path: str | Path) -> SqliteKeyValueStore:
    """创建 KeyValueStore

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        SqliteKeyValueStore 实例（调用方负责关闭 conn）
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(db_path))
    await init_db(conn)

    return SqliteKeyValueStore(conn)


__all__ = [
    "create_kv_store",
    "SqliteKeyValueStore",
    "KeyValueStore",
    "ExportStatusSlot",
    "InMemoryStatusSlot",
    "KeyValueStatusSlot",
    "init_db",
]
