"""Agent 目录：从 agents 目录的 YAML 加载档案，支持按 id 查询与重载。

编排引擎只拿到 lookup 这一只读函数，用于校验 invite/remove 目标和格式化成员列表。
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from src.models.agent import AgentProfile

logger = logging.getLogger(__name__)


class AgentRegistry:
    """内存中的 Agent 目录：agent_id -> AgentProfile，支持从目录加载与重载。"""

    def __init__(self, config_dir: str | Path = "agents/"):
        """指定配置目录并立即从该目录加载所有 *.yaml。"""
        self.agents: dict[str, AgentProfile] = {}
        self.config_dir = config_dir
        self._load_from_dir(config_dir)

    def _load_from_dir(self, config_dir: str | Path) -> None:
        """遍历目录下所有 .yaml 文件，解析为 AgentProfile 并写入 self.agents。"""
        config_path = Path(config_dir)
        if not config_path.exists():
            logger.warning(f"Agent config directory not found: {config_dir}")
            return

        for file in sorted(config_path.glob("*.yaml")):
            try:
                profile = self._load_profile(file)
                self.agents[profile.agent_id] = profile
                logger.info(f"Loaded agent: {profile.agent_id} ({profile.name}, {profile.title})")
            except Exception as e:
                logger.error(f"Failed to load agent from {file}: {e}")

    def _load_profile(self, file: Path) -> AgentProfile:
        """读取单个 YAML 文件并构造 AgentProfile。"""
        with open(file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return AgentProfile(
            agent_id=data["agent_id"],
            name=data.get("name", ""),
            title=data.get("title", ""),
            icon=data.get("icon", ""),
            color_accent=data.get("color_accent", ""),
        )

    def get_agent(self, agent_id: str) -> AgentProfile:
        """按 agent_id 获取档案；不存在则抛 KeyError。"""
        if agent_id not in self.agents:
            raise KeyError(f"Agent not found: {agent_id}")
        return self.agents[agent_id]

    def lookup(self, agent_id: str) -> AgentProfile | None:
        """按 agent_id 查询档案；不存在返回 None。注入给编排引擎的目录查询函数。"""
        return self.agents.get(agent_id)

    def list_agents(self) -> list[AgentProfile]:
        """返回当前所有已注册 Agent 的列表。"""
        return list(self.agents.values())

    def reload(self) -> None:
        """清空当前表并从 config_dir 重新加载所有 YAML。"""
        self.agents.clear()
        self._load_from_dir(self.config_dir)
