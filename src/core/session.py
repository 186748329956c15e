"""会话宿主：把对同一编排器的所有 handle() 调用串行化，并负责广播与历史记录。

引擎本身不做任何同步；这里用一把 asyncio.Lock 保证单写者，
每条消息处理完后取出本次产生的事件，写入内存历史并通过 WebSocket 推送。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.core.directives import extract_embedded_directives
from src.core.events import ConversationEvent, EventRecorder
from src.core.orchestrator import ChatOrchestrator
from src.models.protocol import Message, Role

if TYPE_CHECKING:
    from src.api.websocket import WebSocketManager

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    """一次提交的结果：是否放行、被处理的消息以及期间产生的全部事件。"""

    admitted: bool
    message: Message
    events: list[ConversationEvent] = field(default_factory=list)


class ConversationSession:
    """持有一个编排器实例，对外提供串行化的提交入口与管理操作。"""

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        recorder: EventRecorder,
        ws_manager: WebSocketManager | None = None,
    ):
        self.orchestrator = orchestrator
        self.recorder = recorder
        self.ws_manager = ws_manager
        self._lock = asyncio.Lock()
        self._history: list[Message] = []
        # 构造时发出的 "Chat created" 等事件先收进历史
        self._record(self.recorder.drain())

    async def submit(
        self,
        author_id: str,
        content: str,
        role: Role | None = None,
        author_name: str = "",
    ) -> SubmitResult:
        """提交一条消息；人类或协调者消息正文中夹带的指令会以协调者身份逐条补发。

        判定、写历史、广播与补发指令都在同一次持锁内完成，
        WebSocket 客户端看到的顺序与 history() 一致。
        """
        message = Message(
            role=role or self._default_role(author_id),
            author_id=author_id,
            author_name=author_name,
            content=content,
        )
        logger.info(
            "[SESSION] submit: author_id=%s content_len=%d", author_id, len(content)
        )
        async with self._lock:
            return await self._process(message)

    async def _process(self, message: Message) -> SubmitResult:
        """持锁状态下处理一条消息；调用方负责持有 self._lock。"""
        config = self.orchestrator.config
        admitted = self.orchestrator.handle(message)
        events = self.recorder.drain()
        if admitted:
            self._history.append(message)
        self._record(events)
        await self._broadcast(message, admitted, events)

        if (
            admitted
            and message.author_id in (config.human_id, config.coordinator_id)
            and not message.content.startswith(config.directive_prefix)
        ):
            for directive in extract_embedded_directives(message.content, config.directive_prefix):
                logger.info("[SESSION] Embedded directive from %s: %s", message.author_id, directive)
                follow_up = await self._process(
                    Message(role="assistant", author_id=config.coordinator_id, content=directive)
                )
                events.extend(follow_up.events)

        return SubmitResult(admitted=admitted, message=message, events=events)

    async def invite_agent(self, agent_id: str) -> SubmitResult:
        return await self._coordinator_directive(f"invite {agent_id}")

    async def remove_agent(self, agent_id: str) -> SubmitResult:
        return await self._coordinator_directive(f"remove {agent_id}")

    async def end_conversation(self) -> SubmitResult:
        return await self._coordinator_directive("end")

    async def request_status(self) -> SubmitResult:
        return await self._coordinator_directive("status")

    async def reset(self, goal: str | None = None) -> list[ConversationEvent]:
        """重置编排器并清空历史，返回重置产生的事件。"""
        async with self._lock:
            self.orchestrator.reset(goal)
            events = self.recorder.drain()
            self._history.clear()
            self._record(events)
            if self.ws_manager:
                for event in events:
                    await self.ws_manager.broadcast(event.to_wire())
        return events

    def history(self) -> list[Message]:
        return list(self._history)

    async def _coordinator_directive(self, command: str) -> SubmitResult:
        config = self.orchestrator.config
        return await self.submit(config.coordinator_id, f"{config.directive_prefix} {command}")

    def _default_role(self, author_id: str) -> Role:
        return "user" if author_id == self.orchestrator.config.human_id else "assistant"

    def _record(self, events: list[ConversationEvent]) -> None:
        for event in events:
            if event.type == "system_message":
                self._history.append(event.payload)

    async def _broadcast(
        self, message: Message, admitted: bool, events: list[ConversationEvent]
    ) -> None:
        if not self.ws_manager:
            return
        if admitted:
            await self.ws_manager.broadcast({
                "type": "message",
                "data": message.model_dump(mode="json"),
            })
        for event in events:
            await self.ws_manager.broadcast(event.to_wire())
