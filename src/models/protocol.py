"""会话内流转的消息协议：Message、系统消息工厂与会话结束事件。

编排引擎只读取 Message 的 author_id 与 content；其余字段供传输层展示与广播。
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# 广播标记：audience 中出现该值表示发给房间内所有人
BROADCAST = "*"


Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    """对话中的单条消息：角色、作者、内容、时间戳与受众。"""

    id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex}")
    role: Role = "user"
    author_id: str = ""
    author_name: str = ""
    content: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    audience: list[str] = Field(default_factory=lambda: [BROADCAST])


class ConversationEnded(BaseModel):
    """会话结束事件：目标、结束时刻的成员快照与结束时间。"""

    goal: str
    final_members: list[str] = Field(default_factory=list)
    end_time: datetime = Field(default_factory=datetime.now)


def make_system_message(content: str, system_id: str = "system") -> Message:
    """构造一条由引擎发出的系统消息：作者固定为系统 id，受众为广播。"""
    return Message(
        id=f"sys_{uuid.uuid4().hex}",
        role="system",
        author_id=system_id,
        content=content,
        audience=[BROADCAST],
    )
