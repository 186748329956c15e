"""WebSocket 管理：维护会话的所有连接，向全部连接广播消息与引擎事件。

发送失败的连接会被自动移除。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """维护当前会话的 WebSocket 连接列表，支持向所有连接广播 JSON。"""

    def __init__(self):
        self.connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        """接受新连接并加入连接列表。"""
        await websocket.accept()
        self.connections.append(websocket)
        logger.info(f"WebSocket connected, total={len(self.connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """将指定连接从列表中移除。"""
        self.connections = [ws for ws in self.connections if ws != websocket]
        logger.info(f"WebSocket disconnected, total={len(self.connections)}")

    async def broadcast(self, data: dict[str, Any]) -> None:
        """向所有连接广播一条 JSON 消息；发送失败的连接会被自动 disconnect。"""
        message = json.dumps(data, ensure_ascii=False, default=str)
        disconnected = []
        for ws in self.connections:
            try:
                await ws.send_text(message)
            except Exception:
                disconnected.append(ws)
        for ws in disconnected:
            await self.disconnect(ws)
