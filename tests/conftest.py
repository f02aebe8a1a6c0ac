"""
测试公共工具：合成手部关键点、小规模配置
"""

import pytest

from treeconfig.settings import Config
from treecore.landmarks import LandmarkFrame

# 四指 (MCP, PIP, DIP, TIP) 索引和 x 坐标
FINGERS = {
    "index": ((5, 6, 7, 8), 0.45),
    "middle": ((9, 10, 11, 12), 0.50),
    "ring": ((13, 14, 15, 16), 0.55),
    "pinky": ((17, 18, 19, 20), 0.60),
}

MCP_Y = 0.6


def synthetic_hand(extended=(), pinch=False, offset=(0.0, 0.0)):
    """
    生成 21 个关键点的手

    伸展的手指指尖在指根上方 (y=0.4)，弯曲的在下方 (y=0.75)。
    pinch=True 时拇指尖紧贴食指尖。
    """
    points = [[0.0, 0.0, 0.0] for _ in range(21)]
    points[0] = [0.5, 0.9, 0.0]

    for name, (indices, x) in FINGERS.items():
        mcp, pip, dip, tip = indices
        tip_y = 0.4 if name in extended else 0.75
        points[mcp] = [x, MCP_Y, 0.0]
        points[pip] = [x, (MCP_Y + tip_y) / 2, 0.0]
        points[dip] = [x, (MCP_Y + 3 * tip_y) / 4, 0.0]
        points[tip] = [x, tip_y, 0.0]

    # 拇指
    points[1] = [0.42, 0.82, 0.0]
    points[2] = [0.36, 0.75, 0.0]
    points[3] = [0.30, 0.70, 0.0]
    if pinch:
        index_tip = points[8]
        points[4] = [index_tip[0] + 0.01, index_tip[1], 0.0]
    else:
        points[4] = [0.25, 0.65, 0.0]

    dx, dy = offset
    for p in points:
        p[0] += dx
        p[1] += dy
    return points


@pytest.fixture
def make_hand():
    def _make(extended=(), pinch=False, offset=(0.0, 0.0), timestamp=0.0):
        return LandmarkFrame.from_points(synthetic_hand(extended, pinch, offset), timestamp)
    return _make


@pytest.fixture
def small_config():
    """元素数量很少的配置，测试运行快"""
    config = Config()
    config.scene.counts = {"ambient": 40, "gift_box": 4, "gem": 6, "ribbon": 10}
    config.scene.max_photos = 3
    config.scene.placeholder_size = 32
    config.tracking_enabled = False
    return config
