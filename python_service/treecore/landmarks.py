"""
手部关键点数据类型
在数据进入系统的边界处校验，分类器只接触校验过的 LandmarkFrame
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, NamedTuple, Optional, Tuple

import numpy as np

from .errors import MalformedLandmarkFrame

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 21


class LandmarkIndex(IntEnum):
    """MediaPipe 手部 21 个关键点索引"""
    WRIST = 0

    # 大拇指
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4

    # 食指
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8

    # 中指
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12

    # 无名指
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16

    # 小指
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


# 四指定义：(指尖, MCP 指根)，拇指不参与伸展计数
FINGER_TIPS_AND_KNUCKLES = {
    "index": (LandmarkIndex.INDEX_TIP, LandmarkIndex.INDEX_MCP),
    "middle": (LandmarkIndex.MIDDLE_TIP, LandmarkIndex.MIDDLE_MCP),
    "ring": (LandmarkIndex.RING_TIP, LandmarkIndex.RING_MCP),
    "pinky": (LandmarkIndex.PINKY_TIP, LandmarkIndex.PINKY_MCP),
}

# 骨骼连接定义（用于调试绘制）
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),      # 大拇指
    (0, 5), (5, 6), (6, 7), (7, 8),      # 食指
    (0, 9), (9, 10), (10, 11), (11, 12), # 中指
    (0, 13), (13, 14), (14, 15), (15, 16), # 无名指
    (0, 17), (17, 18), (18, 19), (19, 20), # 小指
    # 手掌横向连接
    (5, 9), (9, 13), (13, 17)
]


class Landmark(NamedTuple):
    """单个关键点（归一化图像坐标）"""
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class LandmarkFrame:
    """
    一帧手部关键点
    points 为 Nx3 的 float 数组；只能通过 from_points 构造以保证已校验
    """
    points: np.ndarray
    timestamp: float = 0.0

    @classmethod
    def from_points(cls, raw: Iterable[Any], timestamp: float = 0.0) -> "LandmarkFrame":
        """
        从外部数据构造关键点帧

        接受 (x, y[, z]) 序列、带 x/y/z 属性的对象（如 MediaPipe landmark）
        或 Nx2 / Nx3 数组。点数不足 21 的帧允许构造，由分类器返回 none。

        Raises:
            MalformedLandmarkFrame: 数据无法解析或包含非有限值
        """
        if raw is None:
            raise MalformedLandmarkFrame("关键点数据为空")

        try:
            rows = [_coerce_point(p) for p in raw]
        except (TypeError, ValueError, AttributeError) as e:
            raise MalformedLandmarkFrame(f"无法解析关键点: {e}") from e

        points = np.array(rows, dtype=np.float64).reshape(-1, 3)
        if not np.all(np.isfinite(points)):
            raise MalformedLandmarkFrame("关键点包含非有限值")

        points.setflags(write=False)
        return cls(points=points, timestamp=timestamp)

    @property
    def num_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def is_complete(self) -> bool:
        return self.num_points >= NUM_LANDMARKS

    def point(self, index: int) -> np.ndarray:
        return self.points[index]

    def landmark(self, index: int) -> Landmark:
        x, y, z = self.points[index]
        return Landmark(float(x), float(y), float(z))

    def to_list(self) -> list:
        """转换为列表（用于 JSON 序列化）"""
        return self.points.tolist()


def parse_landmarks(raw: Any, timestamp: float = 0.0) -> Optional[LandmarkFrame]:
    """构造关键点帧，失败时返回 None（视为本帧无手）"""
    if raw is None:
        return None
    try:
        return LandmarkFrame.from_points(raw, timestamp)
    except MalformedLandmarkFrame as e:
        logger.debug("丢弃异常关键点帧: %s", e)
        return None


def _coerce_point(p: Any) -> Tuple[float, float, float]:
    """把单个外部关键点转换为 (x, y, z)"""
    if hasattr(p, "x") and hasattr(p, "y"):
        return float(p.x), float(p.y), float(getattr(p, "z", 0.0))

    values = [float(v) for v in p]
    if len(values) == 2:
        return values[0], values[1], 0.0
    if len(values) == 3:
        return values[0], values[1], values[2]
    raise ValueError(f"关键点维度错误: {len(values)}")
