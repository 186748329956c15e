"""指令解释器：处理以保留前缀开头的会话内命令（invite / remove / end / status）。

任何角色都可以发指令；指令只改动成员表或生命周期，不参与冷却与循环计数。
失败一律以 False 加一条系统消息说明原因，不抛异常。
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

SUPPORTED_COMMANDS = ("invite", "remove", "end", "status")


def parse_directive(content: str) -> tuple[str, str | None]:
    """按空白切分指令：第 2 个词为命令名，第 3 个词为可选参数。"""
    parts = content.split()
    command = parts[1] if len(parts) > 1 else ""
    arg = parts[2] if len(parts) > 2 else None
    return command, arg


def extract_embedded_directives(content: str, prefix: str) -> list[str]:
    """找出正文中任意位置出现的 "<前缀> 命令 [参数]"，逐条还原为独立的指令文本。"""
    pattern = re.compile(rf"{re.escape(prefix)}\s+(\w+)(?:[ \t]+([\w-]+))?")
    directives = []
    for match in pattern.finditer(content):
        command, arg = match.group(1), match.group(2)
        directives.append(f"{prefix} {command} {arg}" if arg else f"{prefix} {command}")
    return directives


class DirectiveInterpreter:
    """把指令文本分派到对应处理函数，直接读写所属编排器的成员表与生命周期。"""

    def __init__(self, orchestrator: ChatOrchestrator):
        self.orchestrator = orchestrator

    def interpret(self, content: str) -> bool:
        command, arg = parse_directive(content)
        logger.info("[DIRECTIVE] command=%s arg=%s", command, arg)

        if command == "invite":
            return self._invite(arg)
        if command == "remove":
            return self._remove(arg)
        if command == "end":
            self.orchestrator.end_conversation()
            return True
        if command == "status":
            self._status()
            return True

        self._fail(
            f"Unknown orchestrator command: {command}. "
            f"Available: {', '.join(SUPPORTED_COMMANDS)}"
        )
        return False

    def _invite(self, agent_id: str | None) -> bool:
        orch = self.orchestrator
        if not agent_id:
            self._fail("Error: Agent ID required for invite")
            return False

        agent = orch.lookup_agent(agent_id)
        if agent is None:
            self._fail(f"Error: Agent '{agent_id}' not found")
            return False

        # 协调者始终在场，邀请它与邀请已在房间的成员同样处理
        if agent_id == orch.config.coordinator_id or orch.is_member(agent_id):
            self._fail(f"{agent.name or agent_id} is already in the conversation")
            return False

        orch.members.append(agent_id)
        logger.info("[DIRECTIVE] Agent %s invited, members=%s", agent_id, orch.members)
        orch.emit_system_message(f"{agent.display_label} joined the conversation")
        return True

    def _remove(self, agent_id: str | None) -> bool:
        orch = self.orchestrator
        if not agent_id:
            self._fail("Error: Agent ID required for remove")
            return False

        if agent_id == orch.config.coordinator_id:
            coordinator = orch.lookup_agent(agent_id)
            label = coordinator.display_label if coordinator else agent_id
            self._fail(f"Error: Cannot remove {label}")
            return False

        agent = orch.lookup_agent(agent_id)
        if agent is None:
            self._fail(f"Error: Agent '{agent_id}' not found")
            return False

        if not orch.is_member(agent_id):
            self._fail(f"{agent.name or agent_id} is not in the conversation")
            return False

        orch.members.remove(agent_id)
        logger.info("[DIRECTIVE] Agent %s removed, members=%s", agent_id, orch.members)
        orch.emit_system_message(f"{agent.display_label} left the conversation")
        return True

    def _status(self) -> None:
        orch = self.orchestrator
        present = [orch.config.coordinator_id, *orch.members]
        member_list = ", ".join(orch.describe_participant(pid) for pid in present)
        orch.emit_system_message(
            "Conversation Status:\n"
            f"Phase: {orch.phase}\n"
            f"Goal: {orch.current_goal}\n"
            f"Members: {member_list}\n"
            f"Consecutive agent turns: {orch.consecutive_turns}/{orch.config.max_consecutive_turns}"
        )

    def _fail(self, reason: str) -> None:
        logger.info("[DIRECTIVE] Rejected: %s", reason)
        self.orchestrator.emit_system_message(reason)
