"""会话路由：提交消息、查询状态与冷却、管理成员、结束与重置会话。

所有写操作都经过 ConversationSession，保证对编排器的调用是串行的。
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from src.core.session import SubmitResult
from src.models.protocol import Role

router = APIRouter(prefix="/api/conversation", tags=["conversation"])
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    """提交消息的请求体：作者、内容与可选角色。"""
    content: str
    author_id: str = "user"
    author_name: str = ""
    role: Role | None = None


class AgentRequest(BaseModel):
    """invite / remove 的请求体。"""
    agent_id: str


class ResetRequest(BaseModel):
    """重置请求体：goal 为空时保留当前目标。"""
    goal: str | None = None


def _serialize(result: SubmitResult) -> dict:
    return {
        "admitted": result.admitted,
        "message": result.message.model_dump(mode="json"),
        "events": [e.to_wire() for e in result.events],
    }


@router.post("/messages")
async def send_message(req: SendMessageRequest):
    """提交一条消息给编排器，返回是否放行及本次产生的事件。"""
    from src.main import app_state
    logger.info(
        "[CALL] API send_message: author_id=%s content_len=%d",
        req.author_id, len(req.content),
    )
    result = await app_state.session.submit(
        author_id=req.author_id,
        content=req.content,
        role=req.role,
        author_name=req.author_name,
    )
    return _serialize(result)


@router.get("/status")
async def get_status():
    """当前会话快照：阶段、目标、成员与连续自动发言计数。"""
    from src.main import app_state
    return app_state.session.orchestrator.status().model_dump(mode="json")


@router.get("/history")
async def get_history():
    """本次会话（自上次重置起）已放行的消息与系统消息。"""
    from src.main import app_state
    return {"messages": [m.model_dump(mode="json") for m in app_state.session.history()]}


@router.get("/cooldown/{agent_id}")
async def get_cooldown(agent_id: str):
    """查询某 Agent 的冷却状态，供调用方轮询何时可再次发言。"""
    from src.main import app_state
    return app_state.session.orchestrator.cooldown_status(agent_id).model_dump(mode="json")


@router.post("/invite")
async def invite_agent(req: AgentRequest):
    """以协调者身份邀请 Agent 加入会话。"""
    from src.main import app_state
    return _serialize(await app_state.session.invite_agent(req.agent_id))


@router.post("/remove")
async def remove_agent(req: AgentRequest):
    """以协调者身份将 Agent 移出会话。"""
    from src.main import app_state
    return _serialize(await app_state.session.remove_agent(req.agent_id))


@router.post("/end")
async def end_conversation():
    """以协调者身份结束会话。"""
    from src.main import app_state
    return _serialize(await app_state.session.end_conversation())


@router.post("/reset")
async def reset_conversation(req: ResetRequest):
    """重置会话以便复用，可同时替换目标。"""
    from src.main import app_state
    events = await app_state.session.reset(req.goal)
    return {"events": [e.to_wire() for e in events]}
