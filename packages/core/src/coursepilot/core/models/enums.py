"""枚举定义 -- Provider 类型、消息角色、流事件类型、导出阶段

包含 ExportStage 有序阶段、STAGE_ORDER 顺序表，
以及 validate_stage_transition 阶段流转校验。
"""

from enum import StrEnum


class ProviderType(StrEnum):
    """推理 Provider 类型 -- 封闭集合，新增类型必须同步修改 factory"""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    GATEWAY = "gateway"


class MessageRole(StrEnum):
    """对话消息角色"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class StreamEventType(StrEnum):
    """Relay 通道消息类型"""

    # client -> server
    STREAM_REQUEST = "STREAM_REQUEST"

    # server -> client
    STREAM_START = "STREAM_START"
    STREAM_CHUNK = "STREAM_CHUNK"
    STREAM_END = "STREAM_END"
    STREAM_ERROR = "STREAM_ERROR"


# 终止事件：同一 request_id 之后不再有任何事件
TERMINAL_STREAM_EVENTS: set[StreamEventType] = {
    StreamEventType.STREAM_END,
    StreamEventType.STREAM_ERROR,
}


class ExportStage(StrEnum):
    """导出流水线阶段"""

    IDLE = "idle"
    COLLECTING = "collecting"
    GENERATING_CERTIFICATE = "generating-certificate"
    GENERATING_REPORT = "generating-report"
    COMBINING = "combining"
    COMPRESSING = "compressing"
    DOWNLOADING = "downloading"
    COMPLETE = "complete"

    # 终态：任意阶段均可跳转
    ERROR = "error"


# 阶段固定顺序（只能前进，不能回退）
STAGE_ORDER: list[ExportStage] = [
    ExportStage.COLLECTING,
    ExportStage.GENERATING_CERTIFICATE,
    ExportStage.GENERATING_REPORT,
    ExportStage.COMBINING,
    ExportStage.COMPRESSING,
    ExportStage.DOWNLOADING,
    ExportStage.COMPLETE,
]

# 新一轮导出可以从这些状态开始
RUN_START_STATES: set[ExportStage] = {
    ExportStage.IDLE,
    ExportStage.COMPLETE,
    ExportStage.ERROR,
}


def validate_stage_transition(from_stage: ExportStage, to_stage: ExportStage) -> bool:
    """验证导出阶段流转是否合法

    规则:
        - 任意阶段都可以跳转到 ERROR
        - idle / complete / error 之后只能开始新一轮（COLLECTING）
        - 运行中的阶段只能前进到紧随其后的阶段

    Args:
        from_stage: 当前阶段
        to_stage: 目标阶段

    Returns:
        True 如果流转合法，否则 False
    """
    if to_stage == ExportStage.ERROR:
        return from_stage != ExportStage.ERROR
    if from_stage in RUN_START_STATES:
        return to_stage == ExportStage.COLLECTING
    if to_stage not in STAGE_ORDER:
        return False
    return STAGE_ORDER.index(to_stage) == STAGE_ORDER.index(from_stage) + 1
