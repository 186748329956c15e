"""Agent 档案模型：外部 Agent 目录中的一条记录。

编排引擎只通过 lookup 函数只读地查询它，用于校验 invite/remove 目标与格式化成员列表。
"""

from __future__ import annotations

from pydantic import BaseModel


class AgentProfile(BaseModel):
    """Agent 档案：ID、显示名、职位头衔及前端展示用的图标与主题色。"""

    agent_id: str
    name: str = ""
    title: str = ""
    icon: str = ""
    color_accent: str = ""

    @property
    def display_label(self) -> str:
        """用于系统消息的展示名，如 "Patchy (Backend Developer)"。"""
        name = self.name or self.agent_id
        return f"{name} ({self.title})" if self.title else name
