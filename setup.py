import os
from glob import glob
from setuptools import setup

"""
ROS2 setup file for the ros2_mag_autocal package.

Magnetometer hard-iron auto-calibration on top of a Madgwick AHRS filter.
Consumes /imu/data_raw and /imu/mag_raw as published by an IMU driver node
(e.g. ros2_icm20948), publishes /imu/data and the bias-corrected /imu/mag.

"""

package_name = "ros2_mag_autocal"

setup(
    name=package_name,
    version="0.1.0",
    packages=[package_name],
    data_files=[
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        # Include all launch files.
        (os.path.join("share", package_name), glob("launch/*launch.[pxy][yma]*")),
    ],
    install_requires=[
        "setuptools",
        "numpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    tests_require=["pytest"],
    zip_safe=True,
    maintainer="Simon-Pierre Deschênes",
    maintainer_email="simon-pierre.deschenes.1@ulaval.ca",
    description="Magnetometer hard-iron auto-calibration for IMU sensor fusion",
    license="BSD-2.0",
    entry_points={
        "console_scripts": [
            "mag_autocal_node = ros2_mag_autocal.mag_autocal_node:main",
        ],
    },
)
