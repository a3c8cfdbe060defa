"""KeyValueStore SQLite 实现

settings / 凭据 / 导出状态的持久化底座。
value 以 JSON 文本存储，结构由调用方决定。
"""

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite


class SqliteKeyValueStore:
    """KeyValueStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    async def get(self, key: str, default: Any = None) -> Any:
        """读取 key 对应的值，不存在时返回 default"""
        cursor = await self._conn.execute(
            "SELECT value FROM kv WHERE key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    async def set(self, key: str, value: Any) -> None:
        """写入（覆盖）key 对应的值并立即提交"""
        await self._conn.execute(
            """
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (
                key,
                json.dumps(value, ensure_ascii=False),
                datetime.now(UTC).isoformat(),
            ),
        )
        await self._conn.commit()

    async def delete(self, key: str) -> bool:
        """删除 key，返回是否确实删除了记录"""
        cursor = await self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await self._conn.commit()
        return cursor.rowcount > 0

    async def keys(self) -> list[str]:
        """按最近更新时间倒序列出所有 key"""
        cursor = await self._conn.execute("SELECT key FROM kv ORDER BY updated_at DESC")
        rows = await cursor.fetchall()
        return [row[0] for row in rows]
