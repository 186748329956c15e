"""编排引擎：决定共享聊天室里的一条消息能否放行，以及随之产生的副作用。

一条消息按固定顺序流经：生命周期闸门 → 角色判定与记账 → 指令 → 目标检测 →
循环保护 → 默认放行。每个环节都可能发出系统消息或会话结束事件。

引擎是同步、单线程、有状态的：同一实例上的 handle() 调用必须由调用方串行化
（见 src.core.session.ConversationSession），否则冷却与回合链记账会互相踩踏。
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from src.core.directives import DirectiveInterpreter
from src.core.events import EventSink
from src.core.policy import CooldownTracker, LoopGuard, is_goal_reached
from src.models.agent import AgentProfile
from src.models.protocol import ConversationEnded, Message, make_system_message
from src.models.session import ConversationConfig, ConversationStatus, CooldownStatus, Phase

logger = logging.getLogger(__name__)

AgentLookup = Callable[[str], "AgentProfile | None"]


class ChatOrchestrator:
    """单个会话的准入控制与回合协调引擎。

    成员表只记录自动参与者；协调者不在表中但始终视为在场，且不可移除。
    目录查询函数与事件接收方都由构造函数注入，实例之间不共享任何可变状态。
    """

    def __init__(
        self,
        lookup_agent: AgentLookup,
        sink: EventSink,
        config: ConversationConfig | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.config = config or ConversationConfig()
        self.lookup_agent = lookup_agent
        self.sink = sink

        self.phase: Phase = "active"
        self.goal = self.config.initial_goal
        self.members: list[str] = []
        self.last_admitted_author: str | None = None

        self.cooldowns = CooldownTracker(self.config.cooldown_ms, clock)
        self.loop_guard = LoopGuard(self.config.max_consecutive_turns)
        self.directives = DirectiveInterpreter(self)

        self.emit_system_message(
            f"Chat created with {self.describe_participant(self.config.coordinator_id)}"
        )

    # ------------------------------------------------------------------
    # 主入口
    # ------------------------------------------------------------------

    def handle(self, message: Message) -> bool:
        """处理一条入站消息，返回是否放行。"""
        author = message.author_id
        content = message.content
        logger.info(
            "[ORCHESTRATOR] handle: author=%s phase=%s members=%s",
            author, self.phase, self.members,
        )

        if self.phase == "completed":
            logger.info("[ORCHESTRATOR] Conversation is completed, ignoring message from %s", author)
            return False

        if self.is_automated(author):
            if not self._can_agent_respond(author):
                logger.info("[ORCHESTRATOR] Agent %s rejected (not in room or cooling down)", author)
                return False
            self.cooldowns.mark(author)
            turns = self.loop_guard.record_automated_turn(
                chain_restarted=self.last_admitted_author in self._privileged_ids
            )
            logger.info("[ORCHESTRATOR] Agent %s admitted for bookkeeping, consecutive_turns=%d", author, turns)
        else:
            logger.info("[ORCHESTRATOR] %s broke the agent chain", author)
            self.loop_guard.break_chain()

        # 指令与目标完成属于元对话行为：不计入回合链，也不更新 last_admitted_author
        if content.startswith(self.config.directive_prefix):
            logger.info("[ORCHESTRATOR] Directive from %s: %s", author, content)
            return self.directives.interpret(content)

        if is_goal_reached(content):
            logger.info("[ORCHESTRATOR] Goal marker detected in message from %s", author)
            self.end_conversation()
            return True

        if self.loop_guard.tripped:
            logger.warning(
                "[ORCHESTRATOR] Loop guard tripped: consecutive_turns=%d max=%d",
                self.loop_guard.consecutive_turns, self.loop_guard.max_turns,
            )
            self.emit_system_message(
                f"⚠️ Agents stuck in loop - @{self.config.coordinator_id} "
                "please summarize progress or end conversation"
            )
            self.loop_guard.break_chain()
            return False

        self.last_admitted_author = author
        return True

    def reset(self, new_goal: str | None = None) -> None:
        """清空成员、冷却与回合链，回到 active；传入非空目标时替换当前目标。"""
        self.members.clear()
        self.phase = "active"
        self.cooldowns.clear()
        self.loop_guard.break_chain()
        self.last_admitted_author = None
        if new_goal:
            self.goal = new_goal
        logger.info("[ORCHESTRATOR] Reset: goal=%s", self.goal)
        self.emit_system_message("Chat orchestrator reset")

    # ------------------------------------------------------------------
    # 供指令解释器调用的内部操作
    # ------------------------------------------------------------------

    def end_conversation(self) -> None:
        """终止会话：进入 completed，发出完成消息与携带成员快照的结束事件。"""
        self.phase = "completed"
        logger.info("[ORCHESTRATOR] Conversation completed: goal=%s members=%s", self.goal, self.members)
        self.emit_system_message("Conversation completed")
        self.sink.on_conversation_ended(
            ConversationEnded(
                goal=self.goal,
                final_members=list(self.members),
                end_time=datetime.now(),
            )
        )

    def emit_system_message(self, content: str) -> Message:
        message = make_system_message(content, self.config.system_id)
        self.sink.on_system_message(message)
        return message

    def describe_participant(self, participant_id: str) -> str:
        """把参与者 id 解析为 "Name (Title)"；目录中查不到时原样返回 id。"""
        agent = self.lookup_agent(participant_id)
        return agent.display_label if agent else participant_id

    # ------------------------------------------------------------------
    # 只读查询
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.phase == "active"

    @property
    def current_members(self) -> list[str]:
        return list(self.members)

    @property
    def current_goal(self) -> str:
        return self.goal

    @property
    def consecutive_turns(self) -> int:
        return self.loop_guard.consecutive_turns

    def is_member(self, agent_id: str) -> bool:
        return agent_id in self.members

    def is_automated(self, author_id: str) -> bool:
        return author_id not in self._privileged_ids

    def cooldown_status(self, agent_id: str) -> CooldownStatus:
        return self.cooldowns.status(agent_id)

    def status(self) -> ConversationStatus:
        return ConversationStatus(
            phase=self.phase,
            goal=self.goal,
            members=self.current_members,
            consecutive_turns=self.consecutive_turns,
            max_consecutive_turns=self.config.max_consecutive_turns,
        )

    @property
    def _privileged_ids(self) -> tuple[str, str]:
        return (self.config.human_id, self.config.coordinator_id)

    def _can_agent_respond(self, agent_id: str) -> bool:
        return self.is_member(agent_id) and self.cooldowns.is_eligible(agent_id)
