"""
手势识别模块
基于手部关键点进行手势分类：none / fist / open / pinch / pointing
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .landmarks import FINGER_TIPS_AND_KNUCKLES, LandmarkFrame, LandmarkIndex

logger = logging.getLogger(__name__)


class GestureType(Enum):
    """手势类型枚举"""
    NONE = "none"           # 无手势/未识别
    FIST = "fist"           # 握拳 -> 树形
    OPEN = "open"           # 张开手掌 -> 星系
    PINCH = "pinch"         # 捏合（拇指+食指）-> 聚焦
    POINTING = "pointing"   # 指向（仅食指伸出）


@dataclass(frozen=True)
class GestureState:
    """
    一次追踪结果
    每个追踪周期整体替换，不做原地修改
    """
    gesture: GestureType = GestureType.NONE
    hand_position: Optional[Tuple[float, float]] = None  # 镜像后的掌心位置 [0..1]
    pinch_distance: float = 1.0
    is_tracking: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gesture": self.gesture.value,
            "hand_position": list(self.hand_position) if self.hand_position else None,
            "pinch_distance": self.pinch_distance,
            "is_tracking": self.is_tracking
        }


NO_HAND = GestureState()


class GestureClassifier:
    """
    手势分类器
    使用基于规则的方法识别手势，纯函数，不抛异常
    """

    def __init__(
        self,
        pinch_threshold: float = 0.06,
        open_min_extended: int = 3,
        fist_max_extended: int = 1,
    ):
        self.pinch_threshold = pinch_threshold
        self.open_min_extended = open_min_extended
        self.fist_max_extended = fist_max_extended

    def classify(self, frame: Optional[LandmarkFrame]) -> GestureType:
        """
        对手部关键点进行手势分类

        Args:
            frame: 已校验的关键点帧，None 表示没有检测到手

        Returns:
            GestureType
        """
        if frame is None or not frame.is_complete:
            return GestureType.NONE

        lm = frame.points

        # 1. 捏合优先于一切手指状态
        if self.pinch_distance(frame) < self.pinch_threshold:
            return GestureType.PINCH

        # 2. 四指伸展状态
        finger_states = self._get_finger_states(lm)
        extended_count = sum(finger_states.values())

        if extended_count >= self.open_min_extended:
            return GestureType.OPEN

        if finger_states["index"] and extended_count == 1:
            return GestureType.POINTING

        if extended_count <= self.fist_max_extended:
            return GestureType.FIST

        return GestureType.NONE

    def analyze(self, frame: Optional[LandmarkFrame]) -> GestureState:
        """
        分类并生成完整的追踪状态

        Returns:
            GestureState（手势、镜像掌心位置、捏合距离、是否追踪到手）
        """
        if frame is None:
            return NO_HAND

        gesture = self.classify(frame)

        if not frame.is_complete:
            return GestureState(gesture=gesture, is_tracking=True)

        palm = frame.point(LandmarkIndex.MIDDLE_MCP)
        hand_position = (1.0 - float(palm[0]), float(palm[1]))  # 镜像 x 轴

        return GestureState(
            gesture=gesture,
            hand_position=hand_position,
            pinch_distance=self.pinch_distance(frame),
            is_tracking=True
        )

    @staticmethod
    def pinch_distance(frame: LandmarkFrame) -> float:
        """拇指尖与食指尖的三维欧氏距离"""
        thumb_tip = frame.point(LandmarkIndex.THUMB_TIP)
        index_tip = frame.point(LandmarkIndex.INDEX_TIP)
        return float(np.linalg.norm(thumb_tip - index_tip))

    @staticmethod
    def _get_finger_states(lm: np.ndarray) -> Dict[str, bool]:
        """
        判断四指的伸展状态

        指尖 y 小于指根 y（图像坐标中更靠上）即为伸展。
        该判断依赖手掌朝上，手横放或倒置时不可靠。
        """
        return {
            finger: bool(lm[tip][1] < lm[mcp][1])
            for finger, (tip, mcp) in FINGER_TIPS_AND_KNUCKLES.items()
        }
