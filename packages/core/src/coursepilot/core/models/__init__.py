"""CoursePilot Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    RUN_START_STATES,
    STAGE_ORDER,
    TERMINAL_STREAM_EVENTS,
    ExportStage,
    MessageRole,
    ProviderType,
    StreamEventType,
    validate_stage_transition,
)
from .export import (
    BloomPerformanceRow,
    CertificateData,
    ChatTopicRow,
    DocumentServiceCredentials,
    ExportStatus,
    MissedQuestionRow,
    PageRow,
    PortfolioExport,
    RemoteTask,
    ServiceCredentials,
    StudyReportData,
)
from .message import Message, split_system_message
from .stream import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    StreamChunk,
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamOptions,
    StreamRequest,
    StreamRequestMessage,
    StreamStart,
    is_terminal_event,
    parse_stream_event,
)

__all__ = [
    # 枚举
    "ProviderType",
    "MessageRole",
    "StreamEventType",
    "ExportStage",
    # 阶段流转
    "STAGE_ORDER",
    "RUN_START_STATES",
    "TERMINAL_STREAM_EVENTS",
    "validate_stage_transition",
    # Message
    "Message",
    "split_system_message",
    # Stream
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "StreamOptions",
    "StreamRequest",
    "StreamRequestMessage",
    "StreamStart",
    "StreamChunk",
    "StreamEnd",
    "StreamError",
    "StreamEvent",
    "parse_stream_event",
    "is_terminal_event",
    # Export
    "ExportStatus",
    "RemoteTask",
    "ServiceCredentials",
    "DocumentServiceCredentials",
    "CertificateData",
    "StudyReportData",
    "PageRow",
    "BloomPerformanceRow",
    "MissedQuestionRow",
    "ChatTopicRow",
    "PortfolioExport",
]
