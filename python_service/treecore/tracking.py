"""
手部追踪模块
后台线程：摄像头采集 -> 关键点检测 -> 手势分类 -> 发布 GestureState
"""

import logging
import threading
from typing import Callable, Optional

from treeconfig.settings import CameraConfig

from .capture import CameraCapture
from .detector import HandDetector
from .errors import TrackingUnavailable
from .gesture import NO_HAND, GestureClassifier, GestureState

logger = logging.getLogger(__name__)


class HandTracker:
    """
    手部追踪器

    启动失败（摄像头无法打开、模型加载失败）时保持关闭状态，
    由调用方切换到鼠标/触摸输入。
    """

    def __init__(
        self,
        config: Optional[CameraConfig] = None,
        classifier: Optional[GestureClassifier] = None,
        on_state: Optional[Callable[[GestureState], None]] = None,
        capture_factory: Optional[Callable[[], CameraCapture]] = None,
        detector_factory: Optional[Callable[[], HandDetector]] = None
    ):
        """
        Args:
            config: 摄像头与检测参数
            classifier: 手势分类器
            on_state: 每次得到新的 GestureState 时的回调（在追踪线程中调用）
            capture_factory: 创建采集对象，默认使用 CameraCapture
            detector_factory: 创建检测器，默认使用 HandDetector
        """
        self.config = config or CameraConfig()
        self.classifier = classifier or GestureClassifier()
        self.on_state = on_state

        self._capture_factory = capture_factory or self._default_capture
        self._detector_factory = detector_factory or self._default_detector

        self._capture: Optional[CameraCapture] = None
        self._detector: Optional[HandDetector] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._publish_lock = threading.Lock()

        self._latest: GestureState = NO_HAND
        self._available = True
        self._frames_processed = 0

    def _default_capture(self) -> CameraCapture:
        return CameraCapture(
            device_id=self.config.device_id,
            width=self.config.width,
            height=self.config.height,
            fps=self.config.fps,
            mirror=self.config.mirror
        )

    def _default_detector(self) -> HandDetector:
        return HandDetector(
            min_detection_confidence=self.config.min_detection_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
            model_complexity=self.config.model_complexity
        )

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def enable(self) -> bool:
        """
        启动追踪

        Returns:
            是否成功启动；失败时 available 为 False
        """
        with self._lock:
            if self._thread is not None:
                return True

            try:
                self._open_devices()
            except TrackingUnavailable as e:
                logger.warning("手部追踪不可用，切换到鼠标/触摸输入: %s", e)
                self._release_devices()
                self._available = False
                return False

            self._available = True
            self._frames_processed = 0
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="hand-tracker", daemon=True)
            self._thread.start()

        logger.info("手部追踪已启动")
        return True

    def _open_devices(self):
        """
        Raises:
            TrackingUnavailable: 摄像头或检测器初始化失败
        """
        self._capture = self._capture_factory()
        if not self._capture.start():
            raise TrackingUnavailable(f"无法打开摄像头 {self.config.device_id}")
        self._detector = self._detector_factory()

    def _release_devices(self):
        if self._capture is not None:
            self._capture.stop()
            self._capture = None
        if self._detector is not None:
            self._detector.close()
            self._detector = None

    def disable(self):
        """停止追踪并释放摄像头和检测器（可重复调用）"""
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()

            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=1.0)

            self._release_devices()

        if thread is not None:
            logger.info("手部追踪已停止")
            # 通知下游手已离开
            self._publish(NO_HAND)

    # ------------------------------------------------------------------
    # 追踪线程
    # ------------------------------------------------------------------

    def _run(self):
        capture = self._capture
        detector = self._detector

        while not self._stop_event.is_set():
            frame = capture.read(timeout=0.1)
            if frame is None:
                continue

            try:
                landmarks = detector.detect(frame.image, frame.timestamp)
            except Exception as e:
                # 单帧检测失败视为无手
                logger.warning("关键点检测失败: %s", e)
                landmarks = None

            self._frames_processed += 1
            self._publish(self.classifier.analyze(landmarks))

    def _publish(self, state: GestureState):
        """替换最新结果并通知回调，回调中再次发布会被丢弃"""
        self._latest = state

        if self.on_state is None:
            return
        if not self._publish_lock.acquire(blocking=False):
            logger.debug("忽略重入发布")
            return
        try:
            self.on_state(state)
        except Exception as e:
            logger.warning("追踪回调异常: %s", e)
        finally:
            self._publish_lock.release()

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def latest(self) -> GestureState:
        """最近一次的手势状态"""
        return self._latest

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def available(self) -> bool:
        """最近一次启动是否成功（从未启动时为 True）"""
        return self._available

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def last_inference_ms(self) -> float:
        detector = self._detector
        return detector.last_inference_ms if detector is not None else 0.0

    def __enter__(self):
        self.enable()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disable()
        return False
