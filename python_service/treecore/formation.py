"""
队形生成模块
为每类装饰元素生成「树形」和「星系」两种目标位置
"""

import math
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from treeconfig.settings import FormationConfig

# 黄金角（弧度），让挂饰沿树均匀分布
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


class ElementClass(Enum):
    """装饰元素类别"""
    AMBIENT = "ambient"     # 环境粒子（树体的绿色/白色闪光）
    GIFT_BOX = "gift_box"   # 礼物盒
    GEM = "gem"             # 宝石挂饰
    RIBBON = "ribbon"       # 螺旋丝带
    PHOTO = "photo"         # 照片卡片

    @property
    def code(self) -> int:
        return list(ElementClass).index(self)


class FormationGenerator:
    """
    队形生成器

    树形位置由 (类别, 索引, 总数) 唯一确定，可重复计算；
    星系位置来自带状态的随机数生成器，每次调用得到独立样本。
    两者都只在初始化时调用一次，结果由粒子编排器缓存。
    """

    def __init__(self, config: Optional[FormationConfig] = None, seed: Optional[int] = None):
        self.config = config or FormationConfig()
        self.seed = self.config.seed if seed is None else seed
        self._rng = np.random.default_rng(self.seed)

    # ------------------------------------------------------------------
    # 树形
    # ------------------------------------------------------------------

    def tree_position(self, element_class: ElementClass, index: int, total: int) -> np.ndarray:
        """
        计算单个元素的树形目标位置

        Args:
            element_class: 元素类别
            index: 元素在本类中的索引
            total: 本类元素总数

        Returns:
            (3,) 位置数组
        """
        if total <= 0:
            raise ValueError("total 必须为正数")

        rng = self._element_rng(element_class, index, total)

        if element_class == ElementClass.AMBIENT:
            return self._ambient_tree(index, total, rng)
        if element_class == ElementClass.GEM:
            return self._ornament_tree(index, total, rng, height_fraction=1.0)
        if element_class == ElementClass.GIFT_BOX:
            return self._ornament_tree(index, total, rng, height_fraction=0.5)
        if element_class == ElementClass.RIBBON:
            return self._ribbon_tree(index, total)
        return self._photo_tree(index, total)

    def tree_positions(self, element_class: ElementClass, total: int) -> np.ndarray:
        """整类元素的树形位置 (total, 3)"""
        return np.array(
            [self.tree_position(element_class, i, total) for i in range(total)],
            dtype=np.float64
        ).reshape(-1, 3)

    def _element_rng(self, element_class: ElementClass, index: int, total: int) -> np.random.Generator:
        """每个元素独立的确定性随机源"""
        return np.random.default_rng([self.seed, element_class.code, index, total])

    def _ambient_tree(self, index: int, total: int, rng: np.random.Generator) -> np.ndarray:
        """环境粒子：随机角度的锥体，底部更密"""
        height, max_radius = self.config.ambient_cone

        t = (index / total) ** self.config.ambient_density_power
        y = t * height - height / 2

        layer_radius = max_radius * (1 - t * 0.95)
        angle = rng.uniform(0.0, 2 * math.pi)
        radius = layer_radius * rng.uniform(0.7, 1.0)

        return np.array([math.cos(angle) * radius, y, math.sin(angle) * radius])

    def _ornament_tree(
        self,
        index: int,
        total: int,
        rng: np.random.Generator,
        height_fraction: float
    ) -> np.ndarray:
        """挂饰：黄金角步进，均匀分布在锥面上"""
        height, max_radius = self.config.ornament_cone

        t = (index + 0.5) / total * height_fraction
        y = t * height - height / 2

        layer_radius = max_radius * (1 - t * 0.9)
        angle = index * GOLDEN_ANGLE + rng.uniform(0.0, 0.5)

        return np.array([
            math.cos(angle) * layer_radius * 0.85,
            y,
            math.sin(angle) * layer_radius * 0.85,
        ])

    def _ribbon_tree(self, index: int, total: int) -> np.ndarray:
        """丝带：阿基米德螺旋缠绕"""
        height, max_radius = self.config.ribbon_cone

        t = index / total
        y = t * height - height / 2

        layer_radius = max_radius * (1 - t * 0.92)
        angle = t * math.pi * 2 * self.config.ribbon_turns

        return np.array([math.cos(angle) * layer_radius, y, math.sin(angle) * layer_radius])

    def _photo_tree(self, index: int, total: int) -> np.ndarray:
        """照片卡片：螺旋加索引偏移，避免相邻卡片重叠"""
        height, max_radius = self.config.photo_cone

        t = (index + 0.5) / total
        y = t * height - height / 2 + 0.5

        radius = max_radius * (1 - t * 0.85)
        angle = t * math.pi * 10 + index * math.pi * 0.5

        return np.array([math.cos(angle) * radius, y, math.sin(angle) * radius])

    # ------------------------------------------------------------------
    # 星系
    # ------------------------------------------------------------------

    def galaxy_radii(self, element_class: ElementClass) -> Tuple[float, float]:
        """该类别的星系外壳 (内半径, 外半径)"""
        if element_class == ElementClass.PHOTO:
            return self.config.photo_inner_radius, self.config.photo_outer_radius
        return self.config.galaxy_inner_radius, self.config.galaxy_outer_radius

    def galaxy_position(self, element_class: ElementClass = ElementClass.AMBIENT) -> np.ndarray:
        """单个星系位置（独立样本）"""
        return self.galaxy_positions(element_class, 1)[0]

    def galaxy_positions(self, element_class: ElementClass, count: int) -> np.ndarray:
        """
        在球壳内采样星系位置

        极角用 acos(2u-1) 反变换采样，避免两极聚集；y 轴压缩成扁平星盘。

        Returns:
            (count, 3) 位置数组
        """
        inner, outer = self.galaxy_radii(element_class)

        radius = self._rng.uniform(inner, outer, count)
        theta = self._rng.uniform(0.0, 2 * math.pi, count)
        phi = np.arccos(2 * self._rng.uniform(0.0, 1.0, count) - 1)

        return np.column_stack([
            radius * np.sin(phi) * np.cos(theta),
            radius * np.sin(phi) * np.sin(theta) * self.config.galaxy_vertical_scale,
            radius * np.cos(phi),
        ])
