"""Agent Conductor：FastAPI 入口。

本模块负责：
- 应用启动与生命周期（lifespan）
- Agent 目录、编排器与会话宿主的初始化与注入
- 注册路由、中间件与 WebSocket 端点
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from src.api.routes_agent import router as agent_router
from src.api.routes_conversation import SendMessageRequest
from src.api.routes_conversation import router as conversation_router
from src.api.websocket import WebSocketManager
from src.core.events import EventRecorder
from src.core.orchestrator import ChatOrchestrator
from src.core.session import ConversationSession
from src.models.session import ConversationConfig
from src.registry.agent_registry import AgentRegistry

# 配置根日志格式，便于排查问题
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
AGENTS_DIR = os.environ.get("CONDUCTOR_AGENTS_DIR", str(PROJECT_ROOT / "agents"))
CONFIG_PATH = os.environ.get("CONDUCTOR_CONFIG", str(PROJECT_ROOT / "config" / "conversation.yaml"))


@dataclass
class AppState:
    """全局应用状态，持有所有核心组件的引用。

    供各路由模块通过 main.app_state 访问，避免循环依赖。
    """

    registry: AgentRegistry
    ws_manager: WebSocketManager
    session: ConversationSession


# 全局状态（供路由模块导入使用）
app_state: AppState = None  # type: ignore


def build_session(
    registry: AgentRegistry,
    ws_manager: WebSocketManager | None,
    config: ConversationConfig,
) -> ConversationSession:
    """组装一个会话：目录查询与事件接收方显式注入编排器。"""
    recorder = EventRecorder()
    orchestrator = ChatOrchestrator(
        lookup_agent=registry.lookup,
        sink=recorder,
        config=config,
    )
    return ConversationSession(orchestrator, recorder, ws_manager)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：启动时初始化所有组件。"""
    global app_state

    logger.info("Starting Agent Conductor...")

    registry = AgentRegistry(config_dir=AGENTS_DIR)
    config = ConversationConfig.from_yaml(CONFIG_PATH)
    ws_manager = WebSocketManager()
    session = build_session(registry, ws_manager, config)

    app_state = AppState(registry=registry, ws_manager=ws_manager, session=session)

    logger.info(
        f"Agent Conductor started. {len(registry.agents)} agents loaded, "
        f"coordinator={config.coordinator_id} cooldown_ms={config.cooldown_ms}"
    )

    yield

    logger.info("Shutting down Agent Conductor...")


# 创建 FastAPI 应用并绑定生命周期
app = FastAPI(
    title="Agent Conductor",
    description="Admission control and turn coordination for multi-agent chat rooms",
    version="0.1.0",
    lifespan=lifespan,
)

# 允许跨域，便于前端或第三方调用
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(conversation_router)
app.include_router(agent_router)


@app.get("/")
async def root():
    """根路径：返回应用名称、版本与运行状态。"""
    return {"name": "Agent Conductor", "version": "0.1.0", "status": "running"}


@app.get("/api/health")
async def health():
    """健康检查：返回已加载的 Agent 数量与会话是否仍在进行。"""
    return {
        "status": "ok",
        "agents_loaded": len(app_state.registry.agents) if app_state else 0,
        "conversation_active": app_state.session.orchestrator.is_active if app_state else False,
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket 入口：推送所有消息与引擎事件；客户端可发送 send_message 提交消息。"""
    await app_state.ws_manager.connect(websocket)
    try:
        while True:
            try:
                data = json.loads(await websocket.receive_text())
                if not isinstance(data, dict) or data.get("type") != "send_message":
                    continue
                req = SendMessageRequest.model_validate(data)
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Rejected malformed WebSocket frame: {e}")
                await websocket.send_json({"type": "error", "detail": "malformed send_message frame"})
                continue
            await app_state.session.submit(
                author_id=req.author_id,
                content=req.content,
                role=req.role,
                author_name=req.author_name,
            )
    except WebSocketDisconnect:
        pass
    finally:
        await app_state.ws_manager.disconnect(websocket)
