from launch_ros.actions import Node
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch import LaunchDescription

#
# Testing: ros2 launch ros2_mag_autocal mag_autocal_node_launch.py
#
# Needs an IMU driver publishing /imu/data_raw and /imu/mag_raw, e.g.:
#   ros2 launch ros2_icm20948 icm20948_raw_node_launch.py
#

def generate_launch_description():

    min_mag_distance_uT = LaunchConfiguration('min_mag_distance_uT', default='20.0')

    return LaunchDescription(
        [
            DeclareLaunchArgument('min_mag_distance_uT', default_value='20.0',
                                  description='Minimal field separation between calibration samples, uT'),

            Node(
                package="ros2_mag_autocal",
                executable="mag_autocal_node",
                name="mag_autocal_node",
                output='screen',
                parameters=[{
                    "madgwick_beta": 0.08,         # 0.04-0.2 typical
                    "use_mag": True,
                    "use_uncalibrated_mag": False, # yaw from gyro only until the bias is known
                    "auto_calibrate": True,        # start collecting samples right away
                    "min_mag_distance_uT": min_mag_distance_uT,  # float, default 20.0 (0.2 gauss)
                    "min_quat_distance": 0.5       # quaternion space, default 0.5
                }]
            ),
        ]
    )
