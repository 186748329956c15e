"""会话相关数据模型：编排配置、生命周期阶段、冷却状态与状态快照。

配置在构造会话时传入，会话生命周期内不可变；可从 YAML 文件加载覆盖默认值。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Phase = Literal["active", "completed"]


class ConversationConfig(BaseModel):
    """会话级编排配置：冷却窗口、连续自动发言上限、初始目标与各保留标识。"""

    model_config = ConfigDict(frozen=True)

    cooldown_ms: int = Field(default=30_000, ge=0)
    max_consecutive_turns: int = Field(default=5, ge=0)
    initial_goal: str = "Complete the assigned task"
    coordinator_id: str = "cortex"   # 协调者：始终在场，不可移除
    human_id: str = "user"
    system_id: str = "system"
    directive_prefix: str = "@orchestrator"

    @classmethod
    def from_yaml(cls, path: str | Path) -> ConversationConfig:
        """读取 YAML 映射覆盖默认配置；文件不存在时返回默认配置。"""
        config_path = Path(path)
        if not config_path.exists():
            logger.warning(f"Conversation config not found: {config_path}, using defaults")
            return cls()
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded conversation config from {config_path}")
        return cls(**data)


class CooldownStatus(BaseModel):
    """某参与者的冷却状态：是否已过冷却窗口，以及剩余毫秒数（不小于 0）。"""

    eligible: bool = True
    remaining_ms: int = 0


class ConversationStatus(BaseModel):
    """会话只读快照：阶段、目标、成员与连续自动发言计数。"""

    phase: Phase = "active"
    goal: str = ""
    members: list[str] = Field(default_factory=list)
    consecutive_turns: int = 0
    max_consecutive_turns: int = 5
