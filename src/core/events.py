"""引擎对外输出：系统消息与会话结束事件的观察者接口。

引擎只依赖 EventSink 协议；EventRecorder 把每次调用产生的事件攒成列表，
调用方处理完一条消息后 drain 即可拿到本次调用的全部输出。
"""

from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel

from src.models.protocol import ConversationEnded, Message


class EventSink(Protocol):
    """引擎事件的接收方。"""

    def on_system_message(self, message: Message) -> None: ...

    def on_conversation_ended(self, event: ConversationEnded) -> None: ...


class ConversationEvent(BaseModel):
    """一条引擎输出：system_message 携带 Message，conversation_ended 携带结束事件。"""

    type: Literal["system_message", "conversation_ended"]
    payload: Message | ConversationEnded

    def to_wire(self) -> dict:
        """转为可直接 JSON 广播的字典。"""
        return {"type": self.type, "data": self.payload.model_dump(mode="json")}


class EventRecorder:
    """按发出顺序记录事件的 EventSink。"""

    def __init__(self):
        self.events: list[ConversationEvent] = []

    def on_system_message(self, message: Message) -> None:
        self.events.append(ConversationEvent(type="system_message", payload=message))

    def on_conversation_ended(self, event: ConversationEnded) -> None:
        self.events.append(ConversationEvent(type="conversation_ended", payload=event))

    def drain(self) -> list[ConversationEvent]:
        """取出自上次 drain 以来的所有事件并清空缓冲。"""
        events, self.events = self.events, []
        return events

