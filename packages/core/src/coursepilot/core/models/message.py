"""Message Domain Model -- 对话消息

有序的 Message 序列组成一次对话，发送后不可变。
"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageRole


class Message(BaseModel):
    """对话消息 -- 发送后不可变"""

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(description="消息角色：system / user / assistant")
    content: str = Field(description="文本内容")


def split_system_message(messages: list[Message]) -> tuple[Message | None, list[Message]]:
    """拆分首个 system 消息与对话轮次

    Anthropic / Gemini 的 wire 格式要求 system 提示单独传递，
    其余消息按原顺序保留（过滤掉全部 system 消息）。

    Args:
        messages: 有序消息列表

    Returns:
        (system_message, conversation_messages)
    """
    system_message = next((m for m in messages if m.role == MessageRole.SYSTEM), None)
    conversation = [m for m in messages if m.role != MessageRole.SYSTEM]
    return system_message, conversation
