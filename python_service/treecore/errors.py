"""
异常定义
所有异常都在组件边界被吸收并降级为安全默认值，不会中断渲染循环
"""


class GestureTreeError(Exception):
    """GestureTree 异常基类"""


class TrackingUnavailable(GestureTreeError):
    """手部追踪不可用（摄像头权限、模型加载等失败），切换到鼠标/触摸输入"""


class MalformedLandmarkFrame(GestureTreeError):
    """关键点数据格式错误（缺失、维度不对、非有限值）"""


class VisualAssetLoadFailure(GestureTreeError):
    """单个视觉资源（照片）加载失败"""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"无法加载资源: {source}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
