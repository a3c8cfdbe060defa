"""Export 异常体系

- RemoteTaskFailedError: 远端任务进入失败终态
- PollTimeoutError: 轮询超过截止时间（同时是内建 TimeoutError）
- ExportPipelineError: 流水线某阶段失败，携带阶段信息
"""

from coursepilot.core.exceptions import CoursePilotError, TransportError
from coursepilot.core.models import ExportStage

UNKNOWN_TASK_ERROR = "Unknown error"


class ExportError(CoursePilotError):
    """Export 包基础异常"""


class RemoteTaskFailedError(ExportError):
    """远端任务失败，消息中包含服务端错误描述"""

    def __init__(self, task_id: str, error: str | None = None) -> None:
        self.task_id = task_id
        self.error = error or UNKNOWN_TASK_ERROR
        super().__init__(f"Task failed: {self.error}")


class PollTimeoutError(ExportError, TimeoutError):
    """远端任务在截止时间内未进入终态"""

    def __init__(self, task_id: str, deadline_s: float) -> None:
        self.task_id = task_id
        self.deadline_s = deadline_s
        super().__init__(
            f"Task polling timed out after {deadline_s:g}s",
            recoverable=True,
        )


class TemplateLoadError(ExportError):
    """模板加载失败"""

    def __init__(self, name: str, status_code: int) -> None:
        self.name = name
        self.status_code = status_code
        super().__init__(f'Failed to load template "{name}": {status_code}')


class ExportPipelineError(ExportError):
    """导出流水线失败

    Attributes:
        stage: 失败发生时所处的阶段
        reason: 原始异常的可读描述
    """

    def __init__(self, stage: ExportStage, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage.value} failed: {reason}")


__all__ = [
    "ExportError",
    "RemoteTaskFailedError",
    "PollTimeoutError",
    "TemplateLoadError",
    "ExportPipelineError",
    "TransportError",
]
