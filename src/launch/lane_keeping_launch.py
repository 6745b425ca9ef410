from pathlib import Path
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description() -> LaunchDescription:
    default_config = Path(__file__).resolve().parent.parent / "lanekeeping" / "data" / "config.yaml"

    config_path = LaunchConfiguration("config_path")

    declare_config_path = DeclareLaunchArgument(
        "config_path",
        default_value=str(default_config) if default_config.exists() else "",
        description="Path to the lane keeping YAML configuration.",
    )

    lane_keeping_node = Node(
        package="lanekeeping",
        executable="lane_keeping_node",
        name="lane_keeping_node",
        output="screen",
        parameters=[{"config_path": config_path}],
    )

    return LaunchDescription([declare_config_path, lane_keeping_node])
