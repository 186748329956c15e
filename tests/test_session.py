"""ConversationSession 单元测试：串行提交、内嵌指令、管理操作与广播。"""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.core.events import EventRecorder
from src.core.orchestrator import ChatOrchestrator
from src.core.session import ConversationSession
from src.models.session import ConversationConfig
from src.registry.agent_registry import AgentRegistry

AGENTS_DIR = Path(__file__).resolve().parent.parent / "agents"


@pytest.fixture
def ws_manager():
    return AsyncMock()


@pytest.fixture
def session(ws_manager):
    registry = AgentRegistry(config_dir=AGENTS_DIR)
    recorder = EventRecorder()
    orchestrator = ChatOrchestrator(
        lookup_agent=registry.lookup,
        sink=recorder,
        config=ConversationConfig(),
    )
    return ConversationSession(orchestrator, recorder, ws_manager)


def system_contents(events) -> list[str]:
    return [e.payload.content for e in events if e.type == "system_message"]


async def test_history_starts_with_creation_message(session):
    history = session.history()
    assert [m.content for m in history] == ["Chat created with Cortex (Product Owner)"]


async def test_submit_human_message(session, ws_manager):
    result = await session.submit("user", "你好")
    assert result.admitted
    assert result.message.role == "user"
    assert session.history()[-1].content == "你好"

    ws_manager.broadcast.assert_awaited_once()
    payload = ws_manager.broadcast.await_args.args[0]
    assert payload["type"] == "message"
    assert payload["data"]["content"] == "你好"
    json.dumps(payload)


async def test_rejected_message_not_in_history(session):
    result = await session.submit("patchy", "我来了")
    assert not result.admitted
    assert result.message.role == "assistant"
    assert all(m.content != "我来了" for m in session.history())


async def test_admin_helpers(session):
    result = await session.invite_agent("patchy")
    assert result.admitted
    assert system_contents(result.events) == ["Patchy (Backend Developer) joined the conversation"]
    assert session.orchestrator.is_member("patchy")

    result = await session.request_status()
    assert system_contents(result.events)[0].startswith("Conversation Status:")

    result = await session.remove_agent("patchy")
    assert result.admitted
    assert not session.orchestrator.is_member("patchy")

    result = await session.remove_agent("cortex")
    assert not result.admitted


async def test_embedded_directives_from_human(session):
    result = await session.submit("user", "需要后端帮忙 @orchestrator invite patchy 谢谢")
    assert result.admitted
    assert session.orchestrator.is_member("patchy")
    assert "Patchy (Backend Developer) joined the conversation" in system_contents(result.events)


async def test_leading_directive_is_not_replayed(session):
    result = await session.submit("user", "@orchestrator invite patchy")
    assert result.admitted
    assert system_contents(result.events) == ["Patchy (Backend Developer) joined the conversation"]


async def test_embedded_directives_ignored_for_agents(session):
    await session.invite_agent("patchy")
    result = await session.submit("patchy", "maybe @orchestrator invite shiny")
    assert result.admitted
    assert not session.orchestrator.is_member("shiny")


async def test_end_and_reset(session):
    await session.invite_agent("patchy")
    result = await session.end_conversation()
    assert [e.type for e in result.events] == ["system_message", "conversation_ended"]
    assert not session.orchestrator.is_active

    rejected = await session.submit("user", "还在吗")
    assert not rejected.admitted
    assert rejected.events == []

    events = await session.reset("新目标")
    assert system_contents(events) == ["Chat orchestrator reset"]
    assert session.orchestrator.current_goal == "新目标"
    assert [m.content for m in session.history()] == ["Chat orchestrator reset"]


async def test_concurrent_submissions_are_serialized(session):
    for agent_id in ("patchy", "shiny", "sniffy"):
        await session.invite_agent(agent_id)
    await session.submit("user", "开始")

    results = await asyncio.gather(
        *[session.submit(agent_id, "收到") for agent_id in ("patchy", "shiny", "sniffy")]
    )
    assert all(r.admitted for r in results)
    assert session.orchestrator.consecutive_turns == 3


async def test_session_without_ws_manager():
    registry = AgentRegistry(config_dir=AGENTS_DIR)
    recorder = EventRecorder()
    orchestrator = ChatOrchestrator(lookup_agent=registry.lookup, sink=recorder)
    session = ConversationSession(orchestrator, recorder)
    result = await session.submit("user", "goal: done")
    assert result.admitted
    assert not orchestrator.is_active


async def test_embedded_directives_from_coordinator(session):
    result = await session.submit("cortex", "Bringing in backend help @orchestrator invite patchy")
    assert result.admitted
    assert session.orchestrator.is_member("patchy")
    assert "Patchy (Backend Developer) joined the conversation" in system_contents(result.events)


async def test_broadcast_order_matches_history():
    sent: list[str] = []

    class SlowWebSocketManager:
        async def broadcast(self, data):
            # 人类消息的广播故意拖慢，其他提交若不排队就会插到它前面
            if data["data"].get("content") == "first":
                await asyncio.sleep(0.05)
            sent.append(data["data"]["content"])

    registry = AgentRegistry(config_dir=AGENTS_DIR)
    recorder = EventRecorder()
    orchestrator = ChatOrchestrator(lookup_agent=registry.lookup, sink=recorder)
    session = ConversationSession(orchestrator, recorder, SlowWebSocketManager())

    await asyncio.gather(session.submit("user", "first"), session.invite_agent("patchy"))

    history = [m.content for m in session.history()][1:]
    assert history == [
        "first",
        "@orchestrator invite patchy",
        "Patchy (Backend Developer) joined the conversation",
    ]
    assert sent == history
