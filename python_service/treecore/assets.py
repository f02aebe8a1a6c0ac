"""
视觉资源模块
加载照片卡片图片，任何加载失败都用本地生成的占位图代替；
以及其他装饰元素的形状和颜色
"""

import base64
import colorsys
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import cv2
import numpy as np

from .errors import VisualAssetLoadFailure
from .formation import ElementClass

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp"}

# 占位图渐变色 (BGR)
PLACEHOLDER_GRADIENTS = [
    ((58, 30, 196), (0, 0, 139)),      # 红
    ((34, 139, 34), (0, 100, 0)),      # 绿
    ((0, 215, 255), (32, 165, 218)),   # 金
    ((255, 144, 30), (204, 102, 0)),   # 蓝
    ((180, 105, 255), (147, 20, 255)), # 粉
    ((204, 50, 153), (153, 51, 102)),  # 紫
    ((71, 99, 255), (0, 69, 255)),     # 橙
    ((170, 178, 32), (139, 139, 0)),   # 青
]


@dataclass
class PhotoAsset:
    """照片卡片资源"""
    source: str                 # 文件路径，占位图为 "placeholder:<n>"
    image: np.ndarray           # BGR 图像
    is_placeholder: bool = False

    def to_data_url(self, quality: int = 80) -> str:
        """编码为 JPEG data URL（发送给渲染端）"""
        ok, buf = cv2.imencode(".jpg", self.image, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            return ""
        return "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def make_placeholder(index: int, size: int = 400) -> np.ndarray:
    """
    生成渐变占位图

    Args:
        index: 占位图序号，决定配色
        size: 边长（像素）
    """
    color1, color2 = PLACEHOLDER_GRADIENTS[index % len(PLACEHOLDER_GRADIENTS)]
    c1 = np.array(color1, dtype=np.float32)
    c2 = np.array(color2, dtype=np.float32)

    # 对角线渐变
    ramp = np.linspace(0.0, 1.0, size, dtype=np.float32)
    mix = (ramp[:, None] + ramp[None, :]) / 2
    image = c1 * (1.0 - mix[..., None]) + c2 * mix[..., None]
    image = image.astype(np.uint8)

    # 中间画一颗星
    center = size // 2
    radius = size // 5
    points = []
    for i in range(10):
        r = radius if i % 2 == 0 else radius * 0.4
        angle = i * np.pi / 5 - np.pi / 2
        points.append((int(center + r * np.cos(angle)), int(center + r * np.sin(angle))))
    cv2.fillPoly(image, [np.array(points, dtype=np.int32)], (255, 255, 255), cv2.LINE_AA)

    cv2.putText(image, f"#{index + 1}", (size // 20, size - size // 20),
                cv2.FONT_HERSHEY_DUPLEX, size / 400, (245, 245, 250), 2, cv2.LINE_AA)
    return image


def load_photo(path: Union[str, Path], size: int = 400) -> np.ndarray:
    """
    读取并裁剪为正方形

    Raises:
        VisualAssetLoadFailure: 文件不存在或无法解码
    """
    path = Path(path)
    if not path.is_file():
        raise VisualAssetLoadFailure(str(path), "文件不存在")

    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None or image.size == 0:
        raise VisualAssetLoadFailure(str(path), "无法解码")

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    # 居中裁剪
    h, w = image.shape[:2]
    side = min(h, w)
    top, left = (h - side) // 2, (w - side) // 2
    image = image[top:top + side, left:left + side]

    return cv2.resize(image, (size, size), interpolation=cv2.INTER_AREA)


class AssetLibrary:
    """
    照片资源库
    对外保证每张卡片都有可显示的图像
    """

    def __init__(self, size: int = 400, max_photos: int = 12):
        self.size = size
        self.max_photos = max_photos
        self.failures: List[str] = []

    def discover(self, photo_dir: Optional[Union[str, Path]]) -> List[Path]:
        """列出目录中的图片文件"""
        if not photo_dir:
            return []
        directory = Path(photo_dir)
        if not directory.is_dir():
            logger.warning("照片目录不存在: %s", directory)
            return []
        files = sorted(p for p in directory.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
        return files[:self.max_photos]

    def load(self, sources: Sequence[Union[str, Path]]) -> List[PhotoAsset]:
        """
        加载一组照片

        没有任何来源时生成 max_photos 张占位图；单张失败时替换为占位图。
        """
        if not sources:
            return [self.placeholder(i) for i in range(self.max_photos)]

        assets = []
        for i, source in enumerate(list(sources)[:self.max_photos]):
            try:
                image = load_photo(source, self.size)
                assets.append(PhotoAsset(source=str(source), image=image))
            except VisualAssetLoadFailure as e:
                logger.warning("%s，使用占位图", e)
                self.failures.append(str(source))
                assets.append(self.placeholder(i))
        return assets

    def load_directory(self, photo_dir: Optional[Union[str, Path]]) -> List[PhotoAsset]:
        return self.load(self.discover(photo_dir))

    def placeholder(self, index: int) -> PhotoAsset:
        return PhotoAsset(
            source=f"placeholder:{index}",
            image=make_placeholder(index, self.size),
            is_placeholder=True
        )


# ----------------------------------------------------------------------
# 非照片元素的外观
# ----------------------------------------------------------------------

GEM_CUBE_COUNT = 25


def hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    r, g, b = colorsys.hls_to_rgb(hue % 1.0, lightness, saturation)
    return "#{:02x}{:02x}{:02x}".format(int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def element_style(element_class: ElementClass, index: int, rng: np.random.Generator) -> Dict[str, str]:
    """
    生成元素的外观描述（形状 + 颜色），由渲染端使用

    环境粒子 85% 为深浅不一的绿色，其余为白色闪光；
    宝石前 25 个为立方体，其余为二十面体。
    """
    if element_class == ElementClass.AMBIENT:
        if rng.random() < 0.85:
            color = hsl_to_hex(0.33 + rng.random() * 0.05, 0.7 + rng.random() * 0.3, 0.25 + rng.random() * 0.2)
        else:
            color = hsl_to_hex(0.0, 0.0, 0.9 + rng.random() * 0.1)
        return {"shape": "sphere", "color": color}

    if element_class == ElementClass.GEM:
        if index < GEM_CUBE_COUNT:
            hue = 0.75 + rng.random() * 0.1 if rng.random() > 0.5 else 0.0
            color = hsl_to_hex(hue, 0.4 if hue > 0 else 0.0, 0.85 + rng.random() * 0.15)
            return {"shape": "cube", "color": color}
        hue = 0.78 + rng.random() * 0.05 if rng.random() > 0.5 else 0.0
        color = hsl_to_hex(hue, 0.5 if hue > 0 else 0.0, 0.8 + rng.random() * 0.2)
        return {"shape": "icosahedron", "color": color}

    if element_class == ElementClass.GIFT_BOX:
        # 红/金/绿交替
        palette = ["#b22222", "#daa520", "#0d5c3a"]
        return {"shape": "box", "color": palette[index % len(palette)]}

    if element_class == ElementClass.RIBBON:
        # 白色小四面体
        return {"shape": "tetrahedron", "color": "#ffffff"}

    return {"shape": "card", "color": "#e5e0d5"}
