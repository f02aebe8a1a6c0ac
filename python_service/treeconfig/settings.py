"""
GestureTree 配置文件
包含手势识别阈值、交互参数、队形几何、弹簧动力学、服务器配置等
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class GestureThresholds:
    """手势识别阈值配置"""

    # 捏合阈值（拇指尖-食指尖的归一化距离）
    pinch_threshold: float = 0.06

    # 判定为张开手掌所需的最少伸展手指数（不含拇指）
    open_min_extended: int = 3
    # 小于等于此数量判定为握拳
    fist_max_extended: int = 1


@dataclass
class InteractionConfig:
    """交互状态机配置"""

    double_press_ms: int = 300       # 双击判定间隔（毫秒）
    drag_sensitivity: float = 0.005  # 拖拽像素到旋转角的系数（弧度/像素）

    focus_timeout_ms: int = 8000     # 聚焦自动释放时间（毫秒）
    focus_pick_radius: float = 0.25  # 捏合选取的最大屏幕距离（归一化）


@dataclass
class FormationConfig:
    """队形生成配置"""

    seed: int = 2024

    # 星系外壳半径
    galaxy_inner_radius: float = 5.0
    galaxy_outer_radius: float = 15.0
    photo_inner_radius: float = 4.0
    photo_outer_radius: float = 10.0
    galaxy_vertical_scale: float = 0.5  # 垂直压缩，形成扁平星盘

    # 树形锥体: (高度, 底部半径)
    ambient_cone: Tuple[float, float] = (8.0, 3.5)
    ornament_cone: Tuple[float, float] = (7.0, 3.2)
    ribbon_cone: Tuple[float, float] = (7.5, 3.3)
    photo_cone: Tuple[float, float] = (7.0, 2.8)

    ambient_density_power: float = 0.8  # 索引到高度的映射指数 t = (i/n)^p
    ribbon_turns: float = 4.0


@dataclass
class SpringConfig:
    """弹簧动力学参数（接近临界阻尼）"""

    position_stiffness: float = 25.0
    position_damping: float = 10.0
    scale_stiffness: float = 30.0
    scale_damping: float = 11.0

    max_dt: float = 0.033             # 单帧最大步长（秒），防止卡顿时发散
    settle_epsilon: float = 0.05      # 认为已到位的距离

    focus_target: Tuple[float, float, float] = (0.0, 0.0, 0.8)
    focus_scale: float = 5.0

    # 环境粒子的呼吸摆动
    sway_amplitude: float = 0.03
    twinkle_amplitude: float = 0.15
    sway_fade_rate: float = 2.0       # 摆动权重每秒最大变化量，开关时渐入渐出


@dataclass
class CameraDirectorConfig:
    """场景相机配置"""

    smoothing_rate: float = 4.0       # 指数衰减速率 λ
    tree_distance: float = 12.0
    galaxy_distance: float = 18.0
    start_position: Tuple[float, float, float] = (0.0, 2.0, 12.0)


@dataclass
class SceneConfig:
    """场景元素配置"""

    # 各类元素数量
    counts: Dict[str, int] = field(default_factory=lambda: {
        "ambient": 4000,   # 环境粒子
        "gift_box": 24,    # 礼物盒
        "gem": 45,         # 宝石挂饰（立方体 + 二十面体）
        "ribbon": 120,     # 螺旋丝带
    })

    # 各类元素基础尺寸范围 (最小, 最大)
    base_scales: Dict[str, Tuple[float, float]] = field(default_factory=lambda: {
        "ambient": (0.015, 0.04),
        "gift_box": (0.12, 0.2),
        "gem": (0.08, 0.18),
        "ribbon": (0.04, 0.04),
        "photo": (0.4, 0.4),
    })

    photo_dir: Optional[str] = None   # 照片目录，为空则使用占位图
    max_photos: int = 12
    placeholder_size: int = 400

    frame_rate: int = 60              # 渲染循环目标帧率
    particle_broadcast_every: int = 4 # 每 N 帧广播一次粒子位置


@dataclass
class ServerConfig:
    """WebSocket 服务器配置"""

    host: str = "127.0.0.1"
    port: int = 8765

    # 心跳配置
    heartbeat_interval: int = 5000   # 心跳间隔（毫秒）


@dataclass
class CameraConfig:
    """摄像头配置"""

    device_id: int = 0               # 摄像头设备ID
    width: int = 640                 # 分辨率宽度
    height: int = 480                # 分辨率高度
    fps: int = 30                    # 帧率
    mirror: bool = False             # 手部坐标在分类后统一镜像，采集时不翻转

    # MediaPipe 参数
    min_detection_confidence: float = 0.7
    min_tracking_confidence: float = 0.5
    model_complexity: int = 1


@dataclass
class Config:
    """主配置类，整合所有配置"""

    gesture: GestureThresholds = field(default_factory=GestureThresholds)
    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    formation: FormationConfig = field(default_factory=FormationConfig)
    spring: SpringConfig = field(default_factory=SpringConfig)
    camera_director: CameraDirectorConfig = field(default_factory=CameraDirectorConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)

    # 调试选项
    debug: bool = False
    tracking_enabled: bool = True    # 关闭时仅使用鼠标/触摸输入
    log_level: str = "INFO"


# 创建默认配置实例
default_config = Config()
