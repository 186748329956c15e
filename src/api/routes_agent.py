"""Agent 目录路由：列出与查询已注册的 Agent 档案。

接口通过 app_state 获取 registry，避免在 main 里循环依赖。
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

router = APIRouter(prefix="/api/agents", tags=["agents"])


@router.get("")
async def list_agents():
    """获取所有已注册 Agent 的列表（从 registry 读取并序列化）。"""
    from src.main import app_state
    agents = app_state.registry.list_agents()
    return {"agents": [a.model_dump(mode="json") for a in agents]}


@router.get("/{agent_id}")
async def get_agent(agent_id: str):
    """按 id 获取单个 Agent 档案；不存在返回 404。"""
    from src.main import app_state
    try:
        agent = app_state.registry.get_agent(agent_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")
    return {"agent": agent.model_dump(mode="json")}


@router.post("/reload")
async def reload_agents():
    """从配置目录重新加载所有 Agent YAML；正在进行的会话立即看到新目录。"""
    from src.main import app_state
    app_state.registry.reload()
    return {"agents_loaded": len(app_state.registry.agents)}
