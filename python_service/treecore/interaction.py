"""
交互状态机模块
把手势和鼠标/触摸事件转换为场景模式切换、聚焦选择和环绕旋转
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from treeconfig.settings import InteractionConfig

from .gesture import GestureState, GestureType

logger = logging.getLogger(__name__)


class SceneMode(Enum):
    """场景模式枚举"""
    TREE = "tree"       # 圣诞树队形
    GALAXY = "galaxy"   # 星系队形
    FOCUS = "focus"     # 单个元素聚焦（叠加在前两者之上）


class InputChannel(Enum):
    """当前生效的输入通道"""
    HAND = "hand"
    POINTER = "pointer"


@dataclass
class OrbitRotation:
    """拖拽累积的环绕角度（弧度），跨模式保留"""
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class FocusSelection:
    """聚焦选择"""
    element_id: int
    since_ms: float


@dataclass
class SceneContext:
    """
    共享场景状态
    只有 InteractionController 在 tick 中写入
    """
    mode: SceneMode = SceneMode.TREE
    orbit: OrbitRotation = field(default_factory=OrbitRotation)
    focus: Optional[FocusSelection] = None
    gesture: GestureType = GestureType.NONE
    hand_position: Optional[Tuple[float, float]] = None
    pinch_distance: float = 1.0
    is_tracking: bool = False
    channel: InputChannel = InputChannel.POINTER

    @property
    def focused_id(self) -> Optional[int]:
        return self.focus.element_id if self.focus else None

    @property
    def effective_mode(self) -> SceneMode:
        """有聚焦时报告 focus，否则为全局模式"""
        return SceneMode.FOCUS if self.focus else self.mode

    def to_dict(self) -> Dict:
        return {
            "mode": self.mode.value,
            "effective_mode": self.effective_mode.value,
            "orbit": {"x": self.orbit.x, "y": self.orbit.y},
            "focus": self.focused_id,
            "gesture": self.gesture.value,
            "hand_position": list(self.hand_position) if self.hand_position else None,
            "pinch_distance": self.pinch_distance,
            "is_tracking": self.is_tracking,
            "channel": self.channel.value
        }


@dataclass
class SceneEvent:
    """场景事件"""
    event_type: str          # "mode_change" | "focus_change"
    timestamp: float         # 时间戳（毫秒）
    data: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "data": self.data
        }


@dataclass(frozen=True)
class PointerEvent:
    """
    鼠标/触摸事件（像素坐标）
    kind: "down" | "move" | "up"
    """
    kind: str
    x: float
    y: float
    timestamp: float
    source: str = "mouse"    # "mouse" | "touch"
    touches: int = 1


@dataclass(frozen=True)
class SelectRequest:
    """指针点选（归一化屏幕坐标），与捏合走同一套聚焦规则"""
    x: float
    y: float
    timestamp: float


class FocusCandidates:
    """
    可聚焦候选集合
    由渲染端投影后提供（归一化屏幕坐标），这里只做最近点查找
    """

    def __init__(self):
        self._candidates: Dict[int, Tuple[float, float]] = {}

    def update(self, candidates: Iterable[Tuple[int, float, float]]):
        """整体替换候选列表"""
        self._candidates = {int(cid): (float(x), float(y)) for cid, x, y in candidates}

    def nearest(self, point: Tuple[float, float], max_distance: float) -> Optional[int]:
        """返回距离 point 最近且在 max_distance 内的候选 ID"""
        best_id = None
        best_dist = max_distance
        for cid, (cx, cy) in self._candidates.items():
            dist = math.hypot(cx - point[0], cy - point[1])
            if dist <= best_dist:
                best_id, best_dist = cid, dist
        return best_id

    def __len__(self) -> int:
        return len(self._candidates)


class InteractionController:
    """
    交互状态机
    所有输入先入队，在每帧唯一的 tick() 中按到达顺序消费
    """

    def __init__(
        self,
        config: Optional[InteractionConfig] = None,
        candidates: Optional[FocusCandidates] = None
    ):
        self.config = config or InteractionConfig()
        self.candidates = candidates or FocusCandidates()
        self.context = SceneContext()

        # 输入队列（追踪线程和服务端协程都只做 append）
        self._pending: Deque = deque()

        # 上一次的手势，用于上升沿检测
        self._prev_gesture = GestureType.NONE

        # 鼠标/触摸状态
        self._last_press_ms: Optional[float] = None
        self._dragging = False
        self._drag_last: Tuple[float, float] = (0.0, 0.0)

        # 事件回调
        self._callbacks: List[Callable[[SceneEvent], None]] = []

    def register_callback(self, callback: Callable[[SceneEvent], None]):
        """注册事件回调"""
        self._callbacks.append(callback)

    def _emit_event(self, event: SceneEvent):
        """发送事件"""
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning("事件回调异常: %s", e)

    # ------------------------------------------------------------------
    # 输入入口（可在任意回调上下文调用）
    # ------------------------------------------------------------------

    def submit_gesture(self, state: GestureState):
        """提交一次追踪结果"""
        self._pending.append(state)

    def submit_pointer(self, event: PointerEvent):
        """提交一次鼠标/触摸事件"""
        self._pending.append(event)

    def submit_select(self, x: float, y: float, timestamp: Optional[float] = None):
        """提交一次指针点选"""
        if timestamp is None:
            timestamp = time.monotonic() * 1000
        self._pending.append(SelectRequest(x, y, timestamp))

    def request_release_focus(self):
        """请求释放聚焦（在下一次 tick 生效）"""
        self._pending.append(None)

    # ------------------------------------------------------------------
    # 每帧消费点
    # ------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> List[SceneEvent]:
        """
        消费所有待处理输入并更新场景状态

        Args:
            now_ms: 当前时间（毫秒），默认使用单调时钟

        Returns:
            本次 tick 产生的事件
        """
        if now_ms is None:
            now_ms = time.monotonic() * 1000

        events: List[SceneEvent] = []

        while self._pending:
            item = self._pending.popleft()
            if isinstance(item, GestureState):
                self._apply_gesture(item, now_ms, events)
            elif isinstance(item, PointerEvent):
                self._apply_pointer(item, events)
            elif isinstance(item, SelectRequest):
                self.context.channel = InputChannel.POINTER
                self._select_at((item.x, item.y), now_ms, events)
            elif item is None:
                self._set_focus(None, now_ms, events)

        # 聚焦超时
        focus = self.context.focus
        if focus and now_ms - focus.since_ms >= self.config.focus_timeout_ms:
            logger.info("聚焦超时释放: %d", focus.element_id)
            self._set_focus(None, now_ms, events)

        for event in events:
            self._emit_event(event)

        return events

    def _apply_gesture(self, state: GestureState, now_ms: float, events: List[SceneEvent]):
        """处理追踪结果：更新手部通道并检测手势上升沿"""
        ctx = self.context
        ctx.gesture = state.gesture
        ctx.hand_position = state.hand_position
        ctx.pinch_distance = state.pinch_distance
        ctx.is_tracking = state.is_tracking
        if state.is_tracking:
            ctx.channel = InputChannel.HAND

        gesture = state.gesture
        if gesture == self._prev_gesture:
            return
        self._prev_gesture = gesture

        if gesture == GestureType.PINCH:
            self._select_at(state.hand_position, now_ms, events)
        elif gesture == GestureType.FIST and ctx.focus is None:
            self._set_mode(SceneMode.TREE, "gesture", now_ms, events)
        elif gesture == GestureType.OPEN and ctx.focus is None:
            self._set_mode(SceneMode.GALAXY, "gesture", now_ms, events)

    def _select_at(
        self,
        point: Optional[Tuple[float, float]],
        now_ms: float,
        events: List[SceneEvent]
    ):
        """
        捏合上升沿或指针点选：选取最近的候选元素

        选到当前聚焦的元素或空白处时释放聚焦
        """
        target = None
        if point is not None:
            target = self.candidates.nearest(point, self.config.focus_pick_radius)

        current = self.context.focused_id
        if target is None or target == current:
            self._set_focus(None, now_ms, events)
        else:
            self._set_focus(target, now_ms, events)

    def _apply_pointer(self, event: PointerEvent, events: List[SceneEvent]):
        """处理鼠标/触摸：双击切换模式，拖拽旋转"""
        ctx = self.context

        if event.source == "touch" and event.touches != 1 and event.kind != "up":
            return

        ctx.channel = InputChannel.POINTER

        if event.kind == "down":
            last = self._last_press_ms
            if last is not None and event.timestamp - last < self.config.double_press_ms:
                new_mode = SceneMode.GALAXY if ctx.mode == SceneMode.TREE else SceneMode.TREE
                self._set_mode(new_mode, "double_press", event.timestamp, events)
                self._last_press_ms = None
                return

            self._last_press_ms = event.timestamp
            self._dragging = True
            self._drag_last = (event.x, event.y)

        elif event.kind == "move":
            if not self._dragging:
                return

            dx = event.x - self._drag_last[0]
            dy = event.y - self._drag_last[1]
            self._drag_last = (event.x, event.y)

            if ctx.mode == SceneMode.GALAXY:
                ctx.orbit = OrbitRotation(
                    x=ctx.orbit.x + dy * self.config.drag_sensitivity,
                    y=ctx.orbit.y + dx * self.config.drag_sensitivity
                )

        elif event.kind == "up":
            self._dragging = False

    # ------------------------------------------------------------------
    # 状态写入
    # ------------------------------------------------------------------

    def _set_mode(self, mode: SceneMode, source: str, now_ms: float, events: List[SceneEvent]):
        if self.context.mode == mode:
            return
        self.context.mode = mode
        logger.info("模式切换: %s (来源: %s)", mode.value, source)
        events.append(SceneEvent("mode_change", now_ms, {"mode": mode.value, "source": source}))

    def _set_focus(self, element_id: Optional[int], now_ms: float, events: List[SceneEvent]):
        previous = self.context.focused_id
        if element_id == previous:
            return
        self.context.focus = FocusSelection(element_id, now_ms) if element_id is not None else None
        logger.info("聚焦变化: %s -> %s", previous, element_id)
        events.append(SceneEvent("focus_change", now_ms, {"focus": element_id, "previous": previous}))

    @property
    def mode(self) -> SceneMode:
        return self.context.mode

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    def reset(self):
        """重置全部交互状态"""
        self._pending.clear()
        self.context = SceneContext()
        self._prev_gesture = GestureType.NONE
        self._last_press_ms = None
        self._dragging = False
