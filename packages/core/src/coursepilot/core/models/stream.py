"""Stream 协议模型 -- StreamRequest / StreamEvent / 通道消息

同一 request_id 的事件严格有序：Start -> Chunk* -> (End | Error)。
End / Error 之后不再产生任何事件。
通道上的 wire 字段使用 camelCase（requestId），Python 侧使用 snake_case。
"""

import asyncio
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .enums import TERMINAL_STREAM_EVENTS
from .message import Message

# 未指定时的默认生成参数
DEFAULT_MAX_TOKENS: int = 4096
DEFAULT_TEMPERATURE: float = 0.7


class StreamOptions(BaseModel):
    """单次流式调用的选项"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_tokens: int | None = Field(default=None, ge=1, description="最大生成 token 数")
    temperature: float | None = Field(default=None, ge=0.0, description="采样温度")
    cancel_event: asyncio.Event | None = Field(
        default=None,
        exclude=True,
        description="协作式取消信号，set 后流立即结束",
    )

    @property
    def effective_max_tokens(self) -> int:
        return self.max_tokens if self.max_tokens is not None else DEFAULT_MAX_TOKENS

    @property
    def effective_temperature(self) -> float:
        return self.temperature if self.temperature is not None else DEFAULT_TEMPERATURE

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class StreamRequest(BaseModel):
    """一次逻辑流请求 -- 一个 request_id 对应一个流"""

    request_id: str = Field(min_length=1, description="请求标识，调用方保证唯一")
    messages: list[Message] = Field(description="有序对话消息")
    options: StreamOptions = Field(default_factory=StreamOptions, description="调用选项")


class _WireModel(BaseModel):
    """通道消息基类 -- 同时接受 requestId / request_id"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    request_id: str = Field(alias="requestId", min_length=1, description="请求标识")

    def to_wire(self) -> dict[str, Any]:
        """序列化为通道 JSON（camelCase 字段名）"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StreamRequestMessage(_WireModel):
    """client -> server：发起流式请求"""

    type: Literal["STREAM_REQUEST"] = "STREAM_REQUEST"
    messages: list[Message] = Field(min_length=1, description="有序对话消息")
    max_tokens: int | None = Field(default=None, alias="maxTokens", ge=1)
    temperature: float | None = Field(default=None, ge=0.0)

    def to_stream_request(self, cancel_event: asyncio.Event | None = None) -> StreamRequest:
        """转换为 StreamRequest，附带取消信号"""
        return StreamRequest(
            request_id=self.request_id,
            messages=list(self.messages),
            options=StreamOptions(
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                cancel_event=cancel_event,
            ),
        )


class StreamStart(_WireModel):
    """server -> client：流开始"""

    type: Literal["STREAM_START"] = "STREAM_START"


class StreamChunk(_WireModel):
    """server -> client：一段增量文本"""

    type: Literal["STREAM_CHUNK"] = "STREAM_CHUNK"
    chunk: str = Field(description="增量文本")


class StreamEnd(_WireModel):
    """server -> client：流正常结束"""

    type: Literal["STREAM_END"] = "STREAM_END"


class StreamError(_WireModel):
    """server -> client：流异常终止，不再发送 End"""

    type: Literal["STREAM_ERROR"] = "STREAM_ERROR"
    error: str = Field(description="可读的错误描述")


StreamEvent = Annotated[
    StreamStart | StreamChunk | StreamEnd | StreamError,
    Field(discriminator="type"),
]

_stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(data: dict[str, Any]) -> StreamStart | StreamChunk | StreamEnd | StreamError:
    """从通道 JSON 解析 StreamEvent

    Raises:
        pydantic.ValidationError: type 未知或字段缺失
    """
    return _stream_event_adapter.validate_python(data)


def is_terminal_event(event: StreamStart | StreamChunk | StreamEnd | StreamError) -> bool:
    """判断事件是否为该 request_id 的终止事件"""
    return event.type in TERMINAL_STREAM_EVENTS
