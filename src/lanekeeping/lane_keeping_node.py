"""ROS2 node wiring camera intake, lane detection, Stanley steering and speed ramp."""

from __future__ import annotations

import threading
from pathlib import Path

import cv2
import rclpy
from ament_index_python.packages import PackageNotFoundError, get_package_share_directory
from geometry_msgs.msg import Vector3Stamped
from rclpy.callback_groups import MutuallyExclusiveCallbackGroup
from rclpy.executors import MultiThreadedExecutor
from rclpy.logging import get_logger
from rclpy.node import Node
from sensor_msgs.msg import Image

from .config import ConfigError, load_config
from .control_loop import ActuationCommand, ControlLoop
from .lane_detector import HoughTransformLaneDetector, LanePosition
from .perception_bridge import PerceptionBridge

PACKAGE_NAME = "lanekeeping"


class LaneKeepingNode(Node):
    """Main ROS2 node: camera frames in, steering/speed commands out."""

    def __init__(self):
        super().__init__("lane_keeping_node")
        self.declare_parameter("config_path", "")  # YAML config; empty = packaged default

        config_path = resolve_config_path(self.get_parameter("config_path").get_parameter_value().string_value)
        params = load_config(config_path)
        self.get_logger().info(f"Loaded configuration from {config_path}")
        self.params = params

        self._debug_lock = threading.Lock()
        self._debug_frame = None

        self.perception = PerceptionBridge()
        self.detector = HoughTransformLaneDetector(params.detector)
        self.control = ControlLoop(
            params,
            perception=self.perception,
            detector=self.detector,
            publish=self.publish_command,
            on_debug=self.store_debug_frame if params.debug else None,
            logger=self.get_logger(),
        )

        # Frame intake and the control timer run concurrently under a MultiThreadedExecutor.
        self.image_sub = self.create_subscription(
            Image,
            params.sub_topic,
            self.image_callback,
            params.queue_size,
            callback_group=MutuallyExclusiveCallbackGroup(),
        )
        self.cmd_pub = self.create_publisher(Vector3Stamped, params.pub_topic, params.queue_size)
        self.timer = self.create_timer(
            1.0 / params.control_rate,
            self.control_loop,
            callback_group=MutuallyExclusiveCallbackGroup(),
        )

        self.get_logger().info(
            f"Lane keeping started: {params.sub_topic} -> {params.pub_topic} at {params.control_rate:.1f} Hz, "
            f"steering law '{params.steering_law}', precision {params.precision}."
        )

    def image_callback(self, msg: Image) -> None:
        """Store the latest camera frame; rgb8 and bgr8 are accepted, anything else is dropped."""
        try:
            self.perception.on_frame(msg)
        except ValueError as exc:
            self.get_logger().error(f"Dropped image: {exc}", throttle_duration_sec=1.0)

    def control_loop(self) -> None:
        """Main control loop invoked by ROS timer."""
        self.control.step()

    def publish_command(self, command: ActuationCommand) -> None:
        msg = Vector3Stamped()
        msg.header.stamp = self.get_clock().now().to_msg()
        msg.header.frame_id = "base_link"
        msg.vector.x = float(command.angle)
        msg.vector.y = float(command.speed)
        msg.vector.z = 0.0
        self.cmd_pub.publish(msg)

    def store_debug_frame(self, position: LanePosition, estimated_x: int) -> None:
        """Annotate the detector frame for the main thread to display."""
        self.detector.draw_rectangles(position.left_x, position.right_x, estimated_x)
        frame = self.detector.debug_frame
        with self._debug_lock:
            self._debug_frame = frame

    def latest_debug_frame(self):
        with self._debug_lock:
            return self._debug_frame


def resolve_config_path(param_value: str) -> str:
    """
    Resolve the config location, preferring an explicit parameter then the packaged default.
    """
    if param_value:
        return param_value

    candidates = []
    try:
        share_dir = get_package_share_directory(PACKAGE_NAME)
        candidates.append(Path(share_dir) / "data" / "config.yaml")
    except PackageNotFoundError:
        pass
    candidates.append(Path(__file__).resolve().parent / "data" / "config.yaml")

    for candidate in candidates:
        if candidate.exists():
            return str(candidate)
    return ""


def show_debug_window(node: LaneKeepingNode) -> None:
    """Display debug frames on the calling thread until ROS shuts down."""
    while rclpy.ok():
        frame = node.latest_debug_frame()
        if frame is not None:
            cv2.imshow("Debug", frame)
        cv2.waitKey(30)


def main(args=None) -> None:
    rclpy.init(args=args)
    try:
        node = LaneKeepingNode()
    except ConfigError as exc:
        # The loop must not start with incomplete parameters.
        get_logger("lane_keeping_node").fatal(f"Invalid configuration: {exc}")
        rclpy.shutdown()
        raise SystemExit(1) from exc

    executor = MultiThreadedExecutor(num_threads=2)
    executor.add_node(node)
    try:
        if node.params.debug:
            # HighGUI stays on the main thread; callbacks run on executor workers.
            spin_thread = threading.Thread(target=executor.spin, daemon=True)
            spin_thread.start()
            show_debug_window(node)
        else:
            executor.spin()
    except KeyboardInterrupt:
        pass
    finally:
        if node.params.debug:
            cv2.destroyAllWindows()
        executor.shutdown()
        node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()


if __name__ == "__main__":
    main()
