"""准入策略：目标完成检测、每位参与者的冷却计时与连续自动发言的循环保护。

三者都是纯内存状态，不做 I/O；时间由可注入的时钟（毫秒）提供，便于测试。
"""

from __future__ import annotations

import math
import re
import time
from typing import Callable

from src.models.session import CooldownStatus

# 目标完成标记：大小写不敏感、不锚定，出现在正文任意位置即命中
GOAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"goal:\s*done", re.IGNORECASE),
    re.compile(r"task:\s*completed?", re.IGNORECASE),
    re.compile(r"objective:\s*achieved", re.IGNORECASE),
    re.compile(r"mission:\s*accomplished", re.IGNORECASE),
)


def is_goal_reached(content: str) -> bool:
    """正文中出现任一目标完成标记即返回 True。"""
    return any(pattern.search(content) for pattern in GOAL_PATTERNS)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class CooldownTracker:
    """记录每位自动参与者最近一次被准入的时间，判断是否已过冷却窗口。"""

    def __init__(self, cooldown_ms: int, clock: Callable[[], float] | None = None):
        self.cooldown_ms = cooldown_ms
        self.clock = clock or monotonic_ms
        self.last_activity: dict[str, float] = {}

    def elapsed_ms(self, participant_id: str) -> float:
        """距上次被准入的毫秒数；从未出现过的参与者视为无穷大。"""
        last = self.last_activity.get(participant_id)
        if last is None:
            return math.inf
        return self.clock() - last

    def is_eligible(self, participant_id: str) -> bool:
        # 边界含等号：恰好等于窗口即可发言
        return self.elapsed_ms(participant_id) >= self.cooldown_ms

    def mark(self, participant_id: str) -> None:
        self.last_activity[participant_id] = self.clock()

    def status(self, participant_id: str) -> CooldownStatus:
        """返回是否可发言及剩余冷却毫秒数（不小于 0）。"""
        elapsed = self.elapsed_ms(participant_id)
        remaining = 0 if math.isinf(elapsed) else max(0, math.ceil(self.cooldown_ms - elapsed))
        return CooldownStatus(eligible=elapsed >= self.cooldown_ms, remaining_ms=remaining)

    def clear(self) -> None:
        self.last_activity.clear()


class LoopGuard:
    """连续自动发言计数器：超过上限即视为 Agent 间陷入循环，需协调者介入。

    这是软熔断：只负责计数与判定，不移除成员也不结束会话。
    """

    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        self.consecutive_turns = 0

    def record_automated_turn(self, chain_restarted: bool) -> int:
        """记录一次被准入的自动发言：上一位准入者是人类/协调者则从 1 重新计数，否则加一。"""
        if chain_restarted:
            self.consecutive_turns = 1
        else:
            self.consecutive_turns += 1
        return self.consecutive_turns

    def break_chain(self) -> None:
        self.consecutive_turns = 0

    @property
    def tripped(self) -> bool:
        return self.consecutive_turns > self.max_turns
