"""Task Poller -- 指数退避轮询远端异步任务直至终态

fetch -> 成功返回结果文档 ID / 失败抛出 / 否则 sleep(delay) 后
delay = min(delay * multiplier, cap)，直到超过截止时间。
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog
from coursepilot.core.models import RemoteTask
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import PollTimeoutError, RemoteTaskFailedError

log = structlog.get_logger()


class RetryPolicy(BaseModel):
    """轮询退避策略（秒）

    默认: 1s -> 1.5s -> 2.25s -> ... -> 10s 封顶，60s 截止。
    """

    model_config = ConfigDict(frozen=True)

    initial_delay_s: float = Field(default=1.0, gt=0, description="首次等待")
    multiplier: float = Field(default=1.5, ge=1.0, description="每次等待的放大倍数")
    cap_delay_s: float = Field(default=10.0, gt=0, description="单次等待上限")
    deadline_s: float = Field(default=60.0, gt=0, description="总截止时间")

    def next_delay(self, delay: float) -> float:
        return min(delay * self.multiplier, self.cap_delay_s)


async def poll_until_terminal(
    fetch_status: Callable[[str], Awaitable[RemoteTask]],
    task_id: str,
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """轮询远端任务

    Args:
        fetch_status: 单次状态查询（如 PdfServicesClient.poll_task）
        task_id: 远端任务 ID
        policy: 退避策略，None 使用默认值
        sleep: 可注入的等待函数（测试用）
        clock: 可注入的单调时钟（测试用）

    Returns:
        成功任务的结果文档 ID

    Raises:
        RemoteTaskFailedError: 任务进入失败终态
        PollTimeoutError: 截止时间内未进入终态
        TransportError: 状态查询本身返回非 2xx（不重试）
    """
    policy = policy or RetryPolicy()
    delay = policy.initial_delay_s
    start = clock()
    attempt = 0

    while clock() - start < policy.deadline_s:
        attempt += 1
        task = await fetch_status(task_id)
        log.debug(
            "remote_task_polled",
            task_id=task_id,
            status=task.status,
            attempt=attempt,
        )

        if task.is_succeeded:
            if not task.result_document_id:
                raise RemoteTaskFailedError(task_id, "Task succeeded without a result document")
            return task.result_document_id

        if task.is_failed:
            log.warning("remote_task_failed", task_id=task_id, error=task.error)
            raise RemoteTaskFailedError(task_id, task.error)

        await sleep(delay)
        delay = policy.next_delay(delay)

    log.warning("remote_task_poll_timeout", task_id=task_id, attempts=attempt)
    raise PollTimeoutError(task_id, policy.deadline_s)
