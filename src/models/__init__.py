"""统一导出协议、会话与 Agent 相关数据模型，供其他模块引用。"""
from src.models.protocol import (
    BROADCAST,
    ConversationEnded,
    Message,
    make_system_message,
)
from src.models.session import (
    ConversationConfig,
    ConversationStatus,
    CooldownStatus,
    Phase,
)
from src.models.agent import AgentProfile

__all__ = [
    "BROADCAST",
    "ConversationEnded",
    "Message",
    "make_system_message",
    "ConversationConfig",
    "ConversationStatus",
    "CooldownStatus",
    "Phase",
    "AgentProfile",
]
