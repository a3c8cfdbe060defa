"""StatusHub -- 导出状态槽 + 内存广播器

包装一个 ExportStatusSlot：每次 set() 先持久化，再推送给所有订阅者。
每个订阅者持有一个 asyncio.Queue；队列满的订阅者被移除。
"""

import asyncio

from coursepilot.core.models import ExportStatus
from coursepilot.core.store import ExportStatusSlot


class StatusHub:
    """导出状态发布/订阅 -- 同时满足 ExportStatusSlot 协议"""

    def __init__(self, slot: ExportStatusSlot, queue_maxsize: int = 100) -> None:
        self._slot = slot
        self._subscribers: set[asyncio.Queue] = set()
        self._queue_maxsize = queue_maxsize

    async def get(self) -> ExportStatus:
        return await self._slot.get()

    async def set(self, status: ExportStatus) -> None:
        """写入状态并广播"""
        await self._slot.set(status)
        await self.broadcast(status)

    async def subscribe(self) -> asyncio.Queue:
        """订阅状态变化

        Returns:
            asyncio.Queue 实例，新状态会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def broadcast(self, status: ExportStatus) -> None:
        dead_queues = []
        for queue in self._subscribers:
            try:
                queue.put_nowait(status)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers.discard(q)
