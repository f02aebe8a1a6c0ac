"""
WebSocket 服务模块
运行场景渲染循环，并与前端渲染端实时通信
"""

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve

from treeconfig.settings import Config, default_config
from treecore.gesture import GestureClassifier
from treecore.interaction import PointerEvent, SceneEvent
from treecore.scene import TreeScene
from treecore.tracking import HandTracker

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@dataclass
class WebSocketMessage:
    """WebSocket 消息结构"""
    type: str
    timestamp: float
    data: Dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "WebSocketMessage":
        data = json.loads(json_str)
        return cls(**data)


def _now_ms() -> float:
    return time.monotonic() * 1000


class SceneServer:
    """
    GestureTree WebSocket 服务器
    整合手部追踪、交互状态机和粒子场景
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        scene: Optional[TreeScene] = None,
        tracker: Optional[HandTracker] = None
    ):
        self.config = config or default_config

        self.scene = scene
        self.tracker = tracker

        # WebSocket 连接
        self._clients: Set[ServerConnection] = set()

        # 运行状态
        self._running = False
        self._render_task: Optional[asyncio.Task] = None

        # 统计信息
        self._start_time = 0.0

    async def start(self):
        """初始化组件"""
        logger.info("正在初始化组件...")

        if self.scene is None:
            self.scene = TreeScene(self.config)

        if self.tracker is None:
            self.tracker = HandTracker(
                config=self.config.camera,
                classifier=GestureClassifier(
                    pinch_threshold=self.config.gesture.pinch_threshold,
                    open_min_extended=self.config.gesture.open_min_extended,
                    fist_max_extended=self.config.gesture.fist_max_extended
                ),
                on_state=self.scene.controller.submit_gesture
            )

        if self.config.tracking_enabled:
            await self._set_tracking(True)
        else:
            logger.info("手部追踪已关闭，仅使用鼠标/触摸输入")

        self._running = True
        self._start_time = time.monotonic()

        logger.info("组件初始化完成")

    async def stop(self):
        """停止服务（可重复调用）"""
        if not self._running and self._render_task is None:
            return
        logger.info("正在停止服务...")

        self._running = False

        # 停止渲染任务
        if self._render_task:
            self._render_task.cancel()
            try:
                await self._render_task
            except asyncio.CancelledError:
                pass
            self._render_task = None

        # 关闭连接
        for client in self._clients.copy():
            await client.close()

        # 释放资源
        if self.tracker:
            self.tracker.disable()

        if self.scene:
            self.scene.teardown()

        logger.info("服务已停止")

    async def _set_tracking(self, enabled: bool) -> bool:
        """开关手部追踪，打开摄像头可能阻塞，放到线程中执行"""
        if enabled:
            ok = await asyncio.to_thread(self.tracker.enable)
        else:
            await asyncio.to_thread(self.tracker.disable)
            ok = False
        self.scene.tracking_available = ok
        return ok

    # ------------------------------------------------------------------
    # 渲染循环
    # ------------------------------------------------------------------

    async def _render_loop(self):
        """场景渲染主循环"""
        logger.info("开始渲染循环...")
        interval = 1.0 / self.config.scene.frame_rate
        every = max(1, self.config.scene.particle_broadcast_every)

        while self._running:
            started = time.monotonic()

            try:
                events = self.scene.frame(started)
                await self._broadcast_frame(events, particles=self.scene.frame_count % every == 0)
            except Exception:
                # 单帧失败不能中断循环
                logger.exception("渲染帧异常")

            # 控制帧率
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    async def _broadcast_frame(self, events, particles: bool):
        if not self._clients:
            return

        timestamp = _now_ms()
        for event in events:
            await self._broadcast_event(event)

        message = WebSocketMessage(type="scene_state", timestamp=timestamp, data=self.scene.snapshot())
        await self._broadcast(message.to_json())

        if particles:
            message = WebSocketMessage(type="particles", timestamp=timestamp, data=self.scene.particles_payload())
            await self._broadcast(message.to_json())

    async def _broadcast_event(self, event: SceneEvent):
        """广播场景事件到所有客户端"""
        message = WebSocketMessage(
            type="scene_event",
            timestamp=event.timestamp,
            data=event.to_dict()
        )
        await self._broadcast(message.to_json())

    async def _broadcast(self, message: str):
        """广播消息到所有客户端"""
        if not self._clients:
            return

        # 并发发送
        await asyncio.gather(
            *[client.send(message) for client in self._clients.copy()],
            return_exceptions=True
        )

    # ------------------------------------------------------------------
    # 客户端
    # ------------------------------------------------------------------

    async def handle_client(self, websocket: ServerConnection):
        """处理客户端连接"""
        client_id = id(websocket)
        logger.info("客户端已连接: %s", client_id)

        self._clients.add(websocket)

        # 发送欢迎消息
        welcome = WebSocketMessage(
            type="connected",
            timestamp=_now_ms(),
            data={
                "message": "Welcome to GestureTree",
                "version": VERSION,
                "tracking_available": self.scene.tracking_available,
                "scene": self.scene.setup_payload()
            }
        )
        await websocket.send(welcome.to_json())

        try:
            async for message in websocket:
                await self._handle_message(websocket, message)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self._clients.discard(websocket)
            logger.info("客户端已断开: %s", client_id)

    async def _handle_message(self, websocket: ServerConnection, message: str):
        """处理客户端消息"""
        try:
            data = json.loads(message)
            msg_type = data.get("type")
            payload = data.get("data") or {}

            if msg_type == "ping":
                # 心跳响应
                pong = WebSocketMessage(type="pong", timestamp=_now_ms(), data={})
                await websocket.send(pong.to_json())

            elif msg_type in ("pointer", "touch"):
                self.scene.controller.submit_pointer(PointerEvent(
                    kind=payload["kind"],
                    x=float(payload.get("x", 0.0)),
                    y=float(payload.get("y", 0.0)),
                    timestamp=_now_ms(),
                    source="touch" if msg_type == "touch" else "mouse",
                    touches=int(payload.get("touches", 1))
                ))

            elif msg_type == "select":
                # 点选（归一化屏幕坐标），按捏合同样的规则聚焦或释放
                self.scene.controller.submit_select(
                    float(payload["x"]), float(payload["y"]), _now_ms()
                )

            elif msg_type == "focus_candidates":
                # 只有照片卡片可以聚焦
                photo_ids = self.scene.photo_ids
                self.scene.controller.candidates.update(
                    (c["id"], c["x"], c["y"])
                    for c in payload.get("candidates", [])
                    if c.get("id") in photo_ids
                )

            elif msg_type == "set_tracking":
                enabled = bool(payload.get("enabled", False))
                ok = await self._set_tracking(enabled)
                logger.info("手部追踪: %s", "开启" if ok else "关闭")
                reply = WebSocketMessage(
                    type="tracking_status",
                    timestamp=_now_ms(),
                    data={"enabled": ok, "available": self.tracker.available}
                )
                await websocket.send(reply.to_json())

            elif msg_type == "release_focus":
                self.scene.controller.request_release_focus()

            else:
                logger.debug("未知消息类型: %s", msg_type)

        except json.JSONDecodeError:
            logger.warning("无效的 JSON 消息: %s", message)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("消息字段错误: %s (%s)", message, e)
        except Exception:
            logger.exception("处理消息异常")

    async def run(self, host: str = "127.0.0.1", port: int = 8765):
        """运行服务器"""
        await self.start()

        # 启动渲染任务
        self._render_task = asyncio.create_task(self._render_loop())

        logger.info("WebSocket 服务器启动: ws://%s:%s", host, port)

        ping_interval = self.config.server.heartbeat_interval / 1000
        async with serve(self.handle_client, host, port, ping_interval=ping_interval):
            # 保持运行
            while self._running:
                await asyncio.sleep(1)

                # 统计信息
                frames = self.scene.frame_count
                if frames > 0:
                    elapsed = time.monotonic() - self._start_time
                    fps = frames / elapsed if elapsed > 0 else 0
                    logger.debug("帧数: %d, FPS: %.1f, 追踪帧: %d, 客户端: %d",
                                 frames, fps, self.tracker.frames_processed, len(self._clients))


async def main():
    """主函数"""
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    server = SceneServer()

    try:
        await server.run()
    finally:
        await server.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("收到中断信号")
