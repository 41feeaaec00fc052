"""Magnetometer hard-iron auto-calibration for IMU sensor fusion."""

from .calibrator import MagCalibration, MagCalibrationState
from .fusion import SensorFusion
from .quaternion import Quaternion

__all__ = [
    "MagCalibration",
    "MagCalibrationState",
    "SensorFusion",
    "Quaternion",
]
