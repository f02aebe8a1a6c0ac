"""
摄像头采集模块
后台线程持续读取摄像头，只保留最近几帧给追踪线程
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """一帧采集结果"""
    image: np.ndarray       # BGR
    frame_id: int
    timestamp: float        # 距启动的毫秒数

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]


class CameraCapture:
    """
    摄像头采集

    start() 打开设备并启动采集线程；stop() 可重复调用。
    缓冲区满时丢弃最旧的帧，read() 总是拿到最近的画面。
    """

    def __init__(
        self,
        device_id: int = 0,
        width: int = 640,
        height: int = 480,
        fps: int = 30,
        mirror: bool = False,
        buffer_size: int = 2
    ):
        self.device_id = device_id
        self.width = width
        self.height = height
        self.fps = fps
        self.mirror = mirror

        self._device: Optional[cv2.VideoCapture] = None
        self._frames: Deque[Frame] = deque(maxlen=max(1, buffer_size))
        self._ready = threading.Condition()
        self._lifecycle = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._running = False
        self._started_at = 0.0

    def start(self) -> bool:
        """打开设备，失败时释放设备并返回 False"""
        with self._lifecycle:
            if self._running:
                return True

            device = cv2.VideoCapture(self.device_id)
            if not device.isOpened():
                logger.error("无法打开摄像头 %s", self.device_id)
                device.release()
                return False

            device.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            device.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            device.set(cv2.CAP_PROP_FPS, self.fps)
            logger.info(
                "摄像头 %s 已打开: %dx%d",
                self.device_id,
                int(device.get(cv2.CAP_PROP_FRAME_WIDTH)),
                int(device.get(cv2.CAP_PROP_FRAME_HEIGHT))
            )

            self._device = device
            self._running = True
            self._started_at = time.monotonic()
            self._worker = threading.Thread(target=self._run, name="camera-capture", daemon=True)
            self._worker.start()
        return True

    def stop(self):
        """停止采集并释放设备"""
        with self._lifecycle:
            if self._device is None and not self._running:
                return
            self._running = False
            with self._ready:
                self._ready.notify_all()

            worker = self._worker
            if worker is not None and worker is not threading.current_thread():
                worker.join(timeout=1.0)
            self._worker = None

            if self._device is not None:
                self._device.release()
                self._device = None

            with self._ready:
                self._frames.clear()

        logger.info("摄像头已停止")

    def _run(self):
        frame_id = 0
        while self._running:
            device = self._device
            if device is None:
                break

            ok, image = device.read()
            if not ok:
                logger.debug("摄像头读帧失败，重试")
                time.sleep(0.01)
                continue

            if self.mirror:
                image = cv2.flip(image, 1)

            frame_id += 1
            elapsed_ms = (time.monotonic() - self._started_at) * 1000
            with self._ready:
                self._frames.append(Frame(image, frame_id, elapsed_ms))
                self._ready.notify()

    def read(self, timeout: float = 0.1) -> Optional[Frame]:
        """取出最旧的一帧缓冲，超时返回 None"""
        with self._ready:
            if not self._frames:
                self._ready.wait_for(lambda: self._frames or not self._running, timeout=timeout)
            if not self._frames:
                return None
            return self._frames.popleft()

    @property
    def is_running(self) -> bool:
        return self._running
