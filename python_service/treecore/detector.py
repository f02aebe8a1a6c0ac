"""
手部检测模块
使用 MediaPipe Hands 进行手部关键点检测，只输出第一只手的 LandmarkFrame
"""

import logging
import time
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import TrackingUnavailable
from .landmarks import HAND_CONNECTIONS, LandmarkFrame, parse_landmarks

logger = logging.getLogger(__name__)


class HandDetector:
    """
    手部检测器
    封装 MediaPipe Hands，提供统一的检测接口
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1
    ):
        """
        初始化检测器

        Args:
            min_detection_confidence: 检测置信度阈值
            min_tracking_confidence: 追踪置信度阈值
            model_complexity: 模型复杂度 (0=lite, 1=full)

        Raises:
            TrackingUnavailable: MediaPipe 导入或模型加载失败
        """
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.model_complexity = model_complexity

        # 模型加载失败不能影响渲染循环，所以延迟到这里导入
        try:
            import mediapipe as mp

            self._hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=1,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
                model_complexity=model_complexity
            )
        except Exception as e:
            raise TrackingUnavailable(f"MediaPipe 初始化失败: {e}") from e

        self.last_inference_ms = 0.0

    def detect(self, image: np.ndarray, timestamp: float = 0.0) -> Optional[LandmarkFrame]:
        """
        检测手部关键点

        Args:
            image: BGR 格式图像
            timestamp: 时间戳（毫秒）

        Returns:
            第一只手的 LandmarkFrame，无手或数据异常时返回 None
        """
        start_time = time.time()

        # 转换颜色空间 BGR -> RGB
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        results = self._hands.process(image_rgb)

        self.last_inference_ms = (time.time() - start_time) * 1000

        if not results.multi_hand_landmarks:
            return None

        return parse_landmarks(results.multi_hand_landmarks[0].landmark, timestamp)

    def draw_landmarks(
        self,
        image: np.ndarray,
        frame: Optional[LandmarkFrame],
        color: Tuple[int, int, int] = (0, 255, 255),  # 青色
        thickness: int = 2,
        circle_radius: int = 4
    ) -> np.ndarray:
        """
        在图像上绘制手部关键点

        Args:
            image: 原始图像
            frame: 关键点帧
            color: 颜色 (BGR)
            thickness: 线条粗细
            circle_radius: 关键点圆圈半径

        Returns:
            绘制后的图像
        """
        output = image.copy()
        if frame is None:
            return output

        height, width = image.shape[:2]
        pixels = [
            (int(x * width), int(y * height))
            for x, y, _ in frame.points
        ]

        for start_idx, end_idx in HAND_CONNECTIONS:
            if end_idx < len(pixels):
                cv2.line(output, pixels[start_idx], pixels[end_idx], color, thickness)

        for i, point in enumerate(pixels):
            # 指尖用不同颜色
            if i in (4, 8, 12, 16, 20):
                cv2.circle(output, point, circle_radius + 2, (0, 255, 0), -1)
            else:
                cv2.circle(output, point, circle_radius, color, -1)

        return output

    def close(self):
        """释放资源"""
        if self._hands is not None:
            self._hands.close()
            self._hands = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
