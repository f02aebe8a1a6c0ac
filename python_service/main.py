#!/usr/bin/env python3
"""
GestureTree - 手势控制的粒子圣诞树
主入口文件

用法:
    python main.py                    # 启动 WebSocket 服务器
    python main.py --debug            # 启动调试预览窗口
    python main.py --test             # 运行自检模式
    python main.py --no-tracking      # 仅使用鼠标/触摸输入
"""

import argparse
import asyncio
import logging

import cv2

from treeconfig.settings import Config

logger = logging.getLogger("gesturetree")


def setup_logging(config: Config):
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def run_debug_mode(config: Config):
    """
    调试模式：显示预览窗口，不启动 WebSocket 服务器
    用于测试手势识别和模式切换效果
    """
    from treecore.capture import CameraCapture
    from treecore.detector import HandDetector
    from treecore.errors import TrackingUnavailable
    from treecore.gesture import GestureClassifier
    from treecore.interaction import InteractionController, SceneEvent

    print("=" * 50)
    print("GestureTree 调试模式")
    print("=" * 50)
    print("按 'q' 退出")
    print("按 'r' 释放聚焦")
    print("=" * 50)

    camera = CameraCapture(
        device_id=config.camera.device_id,
        width=config.camera.width,
        height=config.camera.height,
        fps=config.camera.fps,
        mirror=config.camera.mirror
    )

    try:
        detector = HandDetector(
            min_detection_confidence=config.camera.min_detection_confidence,
            min_tracking_confidence=config.camera.min_tracking_confidence,
            model_complexity=config.camera.model_complexity
        )
    except TrackingUnavailable as e:
        logger.error("%s", e)
        return

    classifier = GestureClassifier(
        pinch_threshold=config.gesture.pinch_threshold,
        open_min_extended=config.gesture.open_min_extended,
        fist_max_extended=config.gesture.fist_max_extended
    )
    controller = InteractionController(config.interaction)

    # 事件回调
    def on_scene_event(event: SceneEvent):
        logger.info("[EVENT] %s: %s", event.event_type, event.data)

    controller.register_callback(on_scene_event)

    # 启动摄像头
    if not camera.start():
        logger.error("无法启动摄像头")
        detector.close()
        return

    try:
        while camera.is_running:
            frame = camera.read()
            if frame is None:
                continue

            landmarks = detector.detect(frame.image, frame.timestamp)
            state = classifier.analyze(landmarks)

            controller.submit_gesture(state)
            controller.tick()
            ctx = controller.context

            # 绘制骨骼
            output = detector.draw_landmarks(frame.image, landmarks)

            # 显示状态信息
            info_lines = [
                f"Inference: {detector.last_inference_ms:.1f}ms",
                f"Gesture: {state.gesture.value}",
                f"Pinch: {state.pinch_distance:.3f}",
                f"Mode: {ctx.effective_mode.value}",
            ]

            y_offset = 30
            for line in info_lines:
                color = (0, 255, 0) if state.is_tracking else (255, 255, 255)
                cv2.putText(output, line, (10, y_offset),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)
                y_offset += 25

            cv2.putText(output, "Press 'r' to release focus | 'q' to quit",
                        (10, output.shape[0] - 10),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (200, 200, 200), 1)

            cv2.imshow("GestureTree Debug", output)

            # 键盘控制
            key = cv2.waitKey(1) & 0xFF
            if key == ord('q'):
                break
            elif key == ord('r'):
                controller.request_release_focus()

    finally:
        camera.stop()
        detector.close()
        cv2.destroyAllWindows()
        logger.info("调试模式结束")


def run_server_mode(config: Config):
    """
    服务器模式：启动 WebSocket 服务器
    """
    from scene_server import SceneServer

    print("=" * 50)
    print("GestureTree 服务器模式")
    print("=" * 50)

    server = SceneServer(config)

    async def serve():
        try:
            await server.run(host=config.server.host, port=config.server.port)
        finally:
            await server.stop()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("收到中断信号")


def run_test_mode(config: Config):
    """
    自检模式：逐个检查各模块能否工作
    """
    import numpy as np

    print("=" * 50)
    print("GestureTree 自检模式")
    print("=" * 50)

    # 摄像头
    print("\n[TEST] 测试摄像头模块...")
    from treecore.capture import CameraCapture

    camera = CameraCapture(device_id=config.camera.device_id)
    if camera.start():
        frame = camera.read(timeout=2.0)
        if frame:
            print(f"  ✓ 摄像头正常: {frame.width}x{frame.height}")
        else:
            print("  ✗ 无法读取帧")
        camera.stop()
    else:
        print("  ✗ 无法启动摄像头（将使用鼠标/触摸输入）")

    # 检测器
    print("\n[TEST] 测试检测器模块...")
    from treecore.detector import HandDetector
    from treecore.errors import TrackingUnavailable

    try:
        with HandDetector() as detector:
            detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))
            print(f"  ✓ 检测器正常: inference_time={detector.last_inference_ms:.1f}ms")
    except TrackingUnavailable as e:
        print(f"  ✗ {e}")

    # 场景
    print("\n[TEST] 测试场景模块...")
    from treecore.scene import TreeScene

    scene = TreeScene(config)
    for i in range(120):
        scene.frame(i / 60)
    print(f"  ✓ 场景正常: {len(scene.choreographer)} 个元素, settled={scene.choreographer.is_settled()}")
    scene.teardown()

    print("\n" + "=" * 50)
    print("自检完成!")
    print("=" * 50)


def main():
    """主函数"""
    parser = argparse.ArgumentParser(
        description="GestureTree - 手势控制的粒子圣诞树",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
    python main.py                      启动 WebSocket 服务器
    python main.py --debug              启动调试预览窗口
    python main.py --test               运行自检
    python main.py --photos ./photos    使用指定目录中的照片
    python main.py --port 9000          指定端口号
        """
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="启动调试模式（预览窗口）"
    )

    parser.add_argument(
        "--test", "-t",
        action="store_true",
        help="运行自检模式"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="服务器主机地址 (默认: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8765,
        help="服务器端口 (默认: 8765)"
    )

    parser.add_argument(
        "--camera", "-c",
        type=int,
        default=0,
        help="摄像头设备 ID (默认: 0)"
    )

    parser.add_argument(
        "--photos",
        type=str,
        default=None,
        help="照片目录 (默认: 使用占位图)"
    )

    parser.add_argument(
        "--no-tracking",
        action="store_true",
        help="不启动手部追踪，仅使用鼠标/触摸输入"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别 (默认: INFO)"
    )

    args = parser.parse_args()

    # 创建配置
    config = Config()
    config.server.host = args.host
    config.server.port = args.port
    config.camera.device_id = args.camera
    config.scene.photo_dir = args.photos
    config.tracking_enabled = not args.no_tracking
    config.debug = args.debug
    config.log_level = args.log_level

    setup_logging(config)

    # 根据参数选择模式
    if args.test:
        run_test_mode(config)
    elif args.debug:
        run_debug_mode(config)
    else:
        run_server_mode(config)


if __name__ == "__main__":
    main()
