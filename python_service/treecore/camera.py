"""
场景相机模块
根据模式、手部位置和环绕角度平滑移动相机，始终看向原点
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from treeconfig.settings import CameraDirectorConfig

from .interaction import OrbitRotation, SceneMode


@dataclass
class CameraPose:
    """相机姿态"""
    position: Tuple[float, float, float]
    look_at: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> Dict:
        return {"position": list(self.position), "look_at": list(self.look_at)}


class CameraDirector:
    """
    相机导演
    指数衰减平滑，与帧率无关
    """

    def __init__(self, config: Optional[CameraDirectorConfig] = None):
        self.config = config or CameraDirectorConfig()
        self._position = np.array(self.config.start_position, dtype=np.float64)

    def target_for(
        self,
        mode: SceneMode,
        orbit: OrbitRotation,
        hand_position: Optional[Tuple[float, float]] = None,
        is_tracking: bool = False
    ) -> np.ndarray:
        """
        计算相机目标位置

        星系模式下追踪到手时由手部位置直接驱动，否则按环绕角度绕原点。
        """
        distance = (
            self.config.tree_distance if mode == SceneMode.TREE
            else self.config.galaxy_distance
        )

        if is_tracking and hand_position is not None and mode == SceneMode.GALAXY:
            hx, hy = hand_position
            x = (hx - 0.5) * 20
            y = (0.5 - hy) * 10 + 2
        else:
            x = math.sin(orbit.y) * distance
            y = math.sin(orbit.x) * 5 + 2

        z = math.cos(orbit.y) * distance
        return np.array([x, y, z])

    def update(
        self,
        dt: float,
        mode: SceneMode,
        orbit: OrbitRotation,
        hand_position: Optional[Tuple[float, float]] = None,
        is_tracking: bool = False
    ) -> CameraPose:
        """推进一帧并返回相机姿态"""
        target = self.target_for(mode, orbit, hand_position, is_tracking)
        factor = 1 - math.exp(-self.config.smoothing_rate * max(dt, 0.0))
        self._position += (target - self._position) * factor
        return self.pose

    @property
    def pose(self) -> CameraPose:
        return CameraPose(position=tuple(float(v) for v in self._position))

    def reset(self):
        self._position = np.array(self.config.start_position, dtype=np.float64)
