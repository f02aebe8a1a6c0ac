"""
粒子编排模块
持有所有装饰元素的物理状态，每帧用弹簧模型把位置和尺寸拉向当前目标
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from treeconfig.settings import SpringConfig

from .formation import ElementClass
from .interaction import SceneMode

logger = logging.getLogger(__name__)


# 每个元素一条记录，按元素 ID 连续存放
PARTICLE_DTYPE = np.dtype([
    ("tree_target", np.float64, 3),
    ("galaxy_target", np.float64, 3),
    ("position", np.float64, 3),
    ("velocity", np.float64, 3),
    ("scale", np.float64),
    ("scale_velocity", np.float64),
    ("base_scale", np.float64),
    ("phase", np.float64),
    ("speed", np.float64),
    ("sway", np.float64),          # 呼吸摆动幅度，0 表示不摆动
    ("sway_weight", np.float64),   # 摆动权重 0..1，随到位与否渐变
    ("element_class", np.int8),
])

_CLASSES = list(ElementClass)


@dataclass
class ParticleRecord:
    """单个元素的状态快照（供渲染端和测试读取）"""
    element_id: int
    element_class: ElementClass
    tree_target: Tuple[float, float, float]
    galaxy_target: Tuple[float, float, float]
    position: Tuple[float, float, float]
    velocity: Tuple[float, float, float]
    scale: float
    scale_velocity: float
    base_scale: float
    phase: float
    speed: float
    visual_ref: Any = None


class ParticleChoreographer:
    """
    粒子编排器

    用连续的弹簧模型而不是固定时长的补间，过渡途中改变目标时速度保持连续。
    所有元素共用一个结构化数组，每帧向量化积分，不做逐元素分配。
    """

    def __init__(self, config: Optional[SpringConfig] = None, seed: int = 0):
        self.config = config or SpringConfig()
        self._rng = np.random.default_rng(seed)

        self._arena = np.zeros(0, dtype=PARTICLE_DTYPE)
        self._visual_refs: List[Any] = []

        # 每帧复用的缓冲区
        self._targets = np.zeros((0, 3))
        self._target_scales = np.zeros(0)

        self._focus_target = np.array(self.config.focus_target, dtype=np.float64)
        self._focused_id: Optional[int] = None
        self._bad_focus_id: Optional[int] = None
        self._time = 0.0

    # ------------------------------------------------------------------
    # 初始化
    # ------------------------------------------------------------------

    def add_elements(
        self,
        element_class: ElementClass,
        tree_targets: np.ndarray,
        galaxy_targets: np.ndarray,
        base_scales: Sequence[float],
        visual_refs: Optional[Sequence[Any]] = None
    ) -> range:
        """
        添加一类元素

        目标位置在此之后不可变。初始位置为树形目标。

        Returns:
            新元素的 ID 范围
        """
        tree_targets = np.asarray(tree_targets, dtype=np.float64).reshape(-1, 3)
        galaxy_targets = np.asarray(galaxy_targets, dtype=np.float64).reshape(-1, 3)
        count = len(tree_targets)
        if len(galaxy_targets) != count or len(base_scales) != count:
            raise ValueError("目标位置与尺寸数量不一致")

        records = np.zeros(count, dtype=PARTICLE_DTYPE)
        records["tree_target"] = tree_targets
        records["galaxy_target"] = galaxy_targets
        records["position"] = tree_targets
        records["base_scale"] = base_scales
        records["scale"] = base_scales
        records["phase"] = self._rng.uniform(0.0, 2 * math.pi, count)
        records["speed"] = self._rng.uniform(0.5, 1.0, count)
        # 初始位置就在树形目标上，摆动直接生效
        records["sway_weight"] = 1.0
        records["element_class"] = element_class.code
        if element_class == ElementClass.AMBIENT:
            records["sway"] = self.config.sway_amplitude

        start = len(self._arena)
        self._arena = np.concatenate([self._arena, records])
        self._visual_refs.extend(visual_refs if visual_refs is not None else [None] * count)

        self._targets = self._arena["tree_target"].copy()
        self._target_scales = self._arena["base_scale"].copy()

        logger.debug("添加 %d 个 %s 元素", count, element_class.value)
        return range(start, start + count)

    def clear(self):
        """销毁全部元素（场景卸载时调用）"""
        self._arena = np.zeros(0, dtype=PARTICLE_DTYPE)
        self._visual_refs = []
        self._targets = np.zeros((0, 3))
        self._target_scales = np.zeros(0)
        self._focused_id = None
        self._bad_focus_id = None
        self._time = 0.0

    # ------------------------------------------------------------------
    # 每帧积分
    # ------------------------------------------------------------------

    def step(self, dt: float, mode: SceneMode, focus_id: Optional[int] = None):
        """
        推进一帧

        Args:
            dt: 距上一帧的时间（秒），超过 max_dt 时截断
            mode: 全局模式（tree 或 galaxy）
            focus_id: 当前聚焦元素 ID，最多一个
        """
        dt = min(max(dt, 0.0), self.config.max_dt)
        if dt == 0.0 or len(self._arena) == 0:
            return

        cfg = self.config
        arena = self._arena
        self._time += dt

        self._refresh_targets(mode, focus_id)

        # 按字段取出的是视图，原地运算直接写回数组
        position = arena["position"]
        velocity = arena["velocity"]
        accel = -cfg.position_stiffness * (position - self._targets) - cfg.position_damping * velocity
        velocity += accel * dt
        position += velocity * dt

        scale = arena["scale"]
        scale_velocity = arena["scale_velocity"]
        scale_accel = (
            -cfg.scale_stiffness * (scale - self._target_scales)
            - cfg.scale_damping * scale_velocity
        )
        scale_velocity += scale_accel * dt
        scale += scale_velocity * dt

        # 到位的元素摆动权重渐入，离开目标的渐出，每帧变化有上限
        weight = arena["sway_weight"]
        error = np.linalg.norm(position - self._targets, axis=1)
        desired = (error < cfg.settle_epsilon).astype(np.float64)
        limit = cfg.sway_fade_rate * dt
        weight += np.clip(desired - weight, -limit, limit)

    def _refresh_targets(self, mode: SceneMode, focus_id: Optional[int]):
        """按模式和聚焦重新填充目标缓冲区"""
        arena = self._arena
        source = arena["tree_target"] if mode == SceneMode.TREE else arena["galaxy_target"]
        np.copyto(self._targets, source)
        np.copyto(self._target_scales, arena["base_scale"])

        if focus_id is not None and not 0 <= focus_id < len(arena):
            # 同一个非法 ID 只警告一次
            if focus_id != self._bad_focus_id:
                logger.warning("聚焦 ID 超出范围: %s", focus_id)
                self._bad_focus_id = focus_id
            focus_id = None
        else:
            self._bad_focus_id = None

        if focus_id is not None:
            self._targets[focus_id] = self._focus_target
            self._target_scales[focus_id] = self.config.focus_scale

        self._focused_id = focus_id

    # ------------------------------------------------------------------
    # 渲染读取
    # ------------------------------------------------------------------

    def render_positions(self) -> np.ndarray:
        """
        渲染位置 = 物理位置 + 环境粒子的呼吸摆动

        摆动不写回物理状态；按摆动权重渐入渐出，聚焦元素不摆动。
        """
        arena = self._arena
        out = arena["position"].copy()
        weight = self._sway_weights()
        mask = weight > 0
        if mask.any():
            wave = np.sin(self._time * arena["speed"][mask] + arena["phase"][mask])
            out[mask, 1] += wave * arena["sway"][mask] * weight[mask]
        return out

    def render_scales(self) -> np.ndarray:
        """渲染尺寸 = 物理尺寸 × 环境粒子的闪烁系数"""
        arena = self._arena
        out = arena["scale"].copy()
        weight = self._sway_weights()
        mask = weight > 0
        if mask.any():
            pulse = np.sin(self._time * 3 + arena["phase"][mask]) * self.config.twinkle_amplitude
            out[mask] *= 1 + pulse * weight[mask]
        return out

    def _sway_weights(self) -> np.ndarray:
        arena = self._arena
        weight = np.where(arena["sway"] > 0, arena["sway_weight"], 0.0)
        if self._focused_id is not None:
            weight[self._focused_id] = 0.0
        return weight

    def is_settled(self, epsilon: Optional[float] = None, include_focused: bool = False) -> bool:
        """所有（未聚焦）元素的位置误差和速度是否都小于 epsilon"""
        if len(self._arena) == 0:
            return True
        eps = self.config.settle_epsilon if epsilon is None else epsilon
        arena = self._arena

        error = np.linalg.norm(arena["position"] - self._targets, axis=1)
        speed = np.linalg.norm(arena["velocity"], axis=1)
        mask = np.ones(len(arena), dtype=bool)
        if self._focused_id is not None and not include_focused:
            mask[self._focused_id] = False

        return bool(np.all(error[mask] < eps) and np.all(speed[mask] < eps))

    def record(self, element_id: int) -> ParticleRecord:
        """读取单个元素的快照"""
        if not 0 <= element_id < len(self._arena):
            raise IndexError(f"元素 ID 超出范围: {element_id}")
        r = self._arena[element_id]
        return ParticleRecord(
            element_id=element_id,
            element_class=_CLASSES[int(r["element_class"])],
            tree_target=tuple(r["tree_target"].tolist()),
            galaxy_target=tuple(r["galaxy_target"].tolist()),
            position=tuple(r["position"].tolist()),
            velocity=tuple(r["velocity"].tolist()),
            scale=float(r["scale"]),
            scale_velocity=float(r["scale_velocity"]),
            base_scale=float(r["base_scale"]),
            phase=float(r["phase"]),
            speed=float(r["speed"]),
            visual_ref=self._visual_refs[element_id]
        )

    def current_target(self, element_id: int) -> np.ndarray:
        """元素当前帧的目标位置"""
        return self._targets[element_id].copy()

    def current_target_scale(self, element_id: int) -> float:
        """元素当前帧的目标尺寸"""
        return float(self._target_scales[element_id])

    def ids_of(self, element_class: ElementClass) -> np.ndarray:
        return np.flatnonzero(self._arena["element_class"] == element_class.code)

    @property
    def positions(self) -> np.ndarray:
        return self._arena["position"]

    @property
    def scales(self) -> np.ndarray:
        return self._arena["scale"]

    @property
    def tree_targets(self) -> np.ndarray:
        return self._arena["tree_target"]

    @property
    def galaxy_targets(self) -> np.ndarray:
        return self._arena["galaxy_target"]

    @property
    def focused_id(self) -> Optional[int]:
        return self._focused_id

    @property
    def elapsed(self) -> float:
        return self._time

    def __len__(self) -> int:
        return len(self._arena)
