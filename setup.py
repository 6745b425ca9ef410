from setuptools import find_packages, setup


package_name = "lanekeeping"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={package_name: ["data/*.yaml"]},
    data_files=[
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        ("share/" + package_name + "/data", ["src/lanekeeping/data/config.yaml"]),
        ("share/" + package_name + "/launch", ["src/launch/lane_keeping_launch.py"]),
    ],
    # rclpy, ament_index_python and the message packages come from the ROS 2 install (see package.xml).
    install_requires=["setuptools", "numpy", "opencv-python", "PyYAML"],
    extras_require={"test": ["pytest"]},
    zip_safe=True,
    maintainer="Xycar Team",
    maintainer_email="user@example.com",
    description="Camera-based lane keeping controller for the Xycar platform.",
    license="Apache-2.0",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            "lane_keeping_node = lanekeeping.lane_keeping_node:main",
        ],
    },
)
