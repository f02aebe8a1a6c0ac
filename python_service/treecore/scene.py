"""
场景运行时
把交互状态机、粒子编排器和相机串成每帧一次的更新，并生成发给渲染端的数据
"""

import logging
import time
from typing import Callable, Dict, List, Optional

import numpy as np

from treeconfig.settings import Config, default_config

from .assets import AssetLibrary, PhotoAsset, element_style
from .camera import CameraDirector, CameraPose
from .choreographer import ParticleChoreographer
from .formation import ElementClass, FormationGenerator
from .interaction import InteractionController, SceneEvent

logger = logging.getLogger(__name__)

# 元素 ID 按此顺序连续分配
BUILD_ORDER = [
    ElementClass.AMBIENT,
    ElementClass.GIFT_BOX,
    ElementClass.GEM,
    ElementClass.RIBBON,
    ElementClass.PHOTO,
]


class TreeScene:
    """
    圣诞树场景
    只在渲染循环中调用 frame()，其他线程通过 controller 的提交接口输入
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        photos: Optional[List[PhotoAsset]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: 全局配置
            photos: 照片资源，默认从 config.scene.photo_dir 加载
            clock: 单调时钟（秒），测试时可替换
        """
        self.config = config or default_config
        self._clock = clock

        self.formation = FormationGenerator(self.config.formation)
        self.choreographer = ParticleChoreographer(self.config.spring, seed=self.config.formation.seed)
        self.controller = InteractionController(self.config.interaction)
        self.camera = CameraDirector(self.config.camera_director)

        if photos is None:
            library = AssetLibrary(
                size=self.config.scene.placeholder_size,
                max_photos=self.config.scene.max_photos
            )
            photos = library.load_directory(self.config.scene.photo_dir)
        self.photos = photos

        self.ranges: Dict[ElementClass, range] = {}
        self.styles: List[Dict[str, str]] = []
        self._build()

        self.tracking_available = False
        self.frame_count = 0
        self._last_time: Optional[float] = None
        self._pose: CameraPose = self.camera.pose

    def _count_of(self, element_class: ElementClass) -> int:
        if element_class == ElementClass.PHOTO:
            return len(self.photos)
        return self.config.scene.counts.get(element_class.value, 0)

    def _build(self):
        """生成所有元素的队形和外观"""
        rng = np.random.default_rng(self.config.formation.seed + 1)

        for element_class in BUILD_ORDER:
            count = self._count_of(element_class)
            if count <= 0:
                self.ranges[element_class] = range(len(self.choreographer), len(self.choreographer))
                continue

            tree = self.formation.tree_positions(element_class, count)
            galaxy = self.formation.galaxy_positions(element_class, count)

            low, high = self.config.scene.base_scales[element_class.value]
            scales = rng.uniform(low, high, count)
            styles = [element_style(element_class, i, rng) for i in range(count)]

            if element_class == ElementClass.PHOTO:
                visual_refs = list(self.photos)
            else:
                visual_refs = styles

            self.ranges[element_class] = self.choreographer.add_elements(
                element_class, tree, galaxy, scales, visual_refs
            )
            self.styles.extend(styles)

        logger.info(
            "场景已生成: %d 个元素 (%s)",
            len(self.choreographer),
            ", ".join(f"{c.value}={len(r)}" for c, r in self.ranges.items())
        )

    # ------------------------------------------------------------------
    # 每帧更新
    # ------------------------------------------------------------------

    def frame(self, now: Optional[float] = None) -> List[SceneEvent]:
        """
        推进一帧

        Args:
            now: 当前时间（秒），默认读取时钟

        Returns:
            本帧产生的场景事件
        """
        if now is None:
            now = self._clock()
        dt = 0.0 if self._last_time is None else now - self._last_time
        self._last_time = now

        events = self.controller.tick(now * 1000)
        ctx = self.controller.context

        self.choreographer.step(dt, ctx.mode, ctx.focused_id)
        self._pose = self.camera.update(
            dt, ctx.mode, ctx.orbit, ctx.hand_position, ctx.is_tracking
        )

        self.frame_count += 1
        return events

    # ------------------------------------------------------------------
    # 发给渲染端的数据
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        """每帧的场景状态"""
        data = self.controller.context.to_dict()
        data["camera"] = self._pose.to_dict()
        data["settled"] = self.choreographer.is_settled()
        data["tracking_available"] = self.tracking_available
        data["frame"] = self.frame_count
        return data

    def particles_payload(self, decimals: int = 3) -> Dict:
        """所有元素的渲染位置和尺寸"""
        return {
            "positions": np.round(self.choreographer.render_positions(), decimals).tolist(),
            "scales": np.round(self.choreographer.render_scales(), decimals).tolist(),
        }

    def setup_payload(self) -> Dict:
        """静态场景描述（连接时发送一次）"""
        classes = []
        for element_class, id_range in self.ranges.items():
            classes.append({
                "class": element_class.value,
                "start": id_range.start,
                "count": len(id_range),
            })

        photos = []
        for element_id, photo in zip(self.ranges[ElementClass.PHOTO], self.photos):
            photos.append({
                "id": element_id,
                "source": photo.source,
                "placeholder": photo.is_placeholder,
                "image": photo.to_data_url(),
            })

        return {
            "classes": classes,
            "styles": self.styles,
            "tree_targets": np.round(self.choreographer.tree_targets, 3).tolist(),
            "galaxy_targets": np.round(self.choreographer.galaxy_targets, 3).tolist(),
            "photos": photos,
        }

    @property
    def photo_ids(self) -> range:
        return self.ranges[ElementClass.PHOTO]

    def teardown(self):
        """卸载场景（可重复调用）"""
        self.choreographer.clear()
        self.controller.reset()
        self.camera.reset()
        self.ranges = {c: range(0) for c in BUILD_ORDER}
        self.styles = []
        self._last_time = None
