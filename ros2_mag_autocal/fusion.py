# -*- coding: utf-8 -*-
"""
    Copyright (c) 2015 Jonas Böer, jonas.boeer@student.kit.edu

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU Lesser General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU Lesser General Public License for more details.

    You should have received a copy of the GNU Lesser General Public License
    along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""

#
# Original code:  see https://github.com/morgil/madgwick_py/blob/master/madgwickahrs.py
#

import warnings

import numpy as np
from numpy.linalg import norm

from .helpers import apply_mag_transform, is_valid_mag_transform
from .quaternion import Quaternion


class SensorFusion:
    """
    Madgwick AHRS (gyro + accel + optional mag) holding the magnetometer
    calibration used by MagCalibration.

    - gyro in rad/s
    - accel in any unit (normalized internally)
    - mag in any unit (normalized internally), corrected by the installed
      4x4 calibration transform before use
    Quaternion is (w, x, y, z), body->world.
    """
    def __init__(self, beta=0.05, sample_period=1/256):
        self.beta = float(beta)
        self.sample_period = float(sample_period)
        self.quaternion = Quaternion(1, 0, 0, 0)

        self._raw_mag = np.zeros(3)
        self._mag_transform = np.eye(4)
        self._mag_calibrated = False

    def reset(self):
        self.quaternion = Quaternion(1, 0, 0, 0)

    # --- collaborator interface for MagCalibration ---

    def get_orientation(self):
        return Quaternion(self.quaternion)

    def get_magnetometer(self):
        """Last raw magnetometer reading, calibration not applied."""
        return self._raw_mag.copy()

    def update_mag_reading(self, magnetometer):
        """Store a raw reading without running a filter step."""
        self._raw_mag = np.array(magnetometer, dtype=float).reshape(3,)

    def get_calibrated_magnetometer(self):
        return apply_mag_transform(self._mag_transform, self._raw_mag)

    def clear_mag_calibration(self):
        self._mag_transform = np.eye(4)
        self._mag_calibrated = False

    def set_mag_calibration(self, transform):
        if not is_valid_mag_transform(transform):
            raise ValueError(f"Invalid magnetometer calibration transform:\n{transform}")
        self._mag_transform = np.array(transform, dtype=float)
        self._mag_calibrated = True

    def get_mag_calibration(self):
        return self._mag_transform.copy()

    @property
    def has_mag_calibration(self):
        return self._mag_calibrated

    # --- filter ---

    def update(self, gyroscope, accelerometer, magnetometer=None, dt=None):
        """
        One filter step. Without a magnetometer reading this is update_imu().
        :param gyroscope: three-element array, rad/s
        :param accelerometer: three-element array
        :param magnetometer: three-element array (raw) or None
        :param dt: step in seconds, sample_period if None
        """
        if magnetometer is None:
            return self.update_imu(gyroscope, accelerometer, dt)

        self.update_mag_reading(magnetometer)
        dt = self.sample_period if dt is None else float(dt)

        q = self.quaternion
        gyroscope = np.array(gyroscope, dtype=float).reshape(3,)
        accelerometer = np.array(accelerometer, dtype=float).reshape(3,)
        magnetometer = self.get_calibrated_magnetometer()

        a_norm = norm(accelerometer)
        if not np.isfinite(a_norm) or a_norm < 1e-12:
            warnings.warn("accelerometer is zero")
            return
        accelerometer /= a_norm

        m_norm = norm(magnetometer)
        if not np.isfinite(m_norm) or m_norm < 1e-12:
            warnings.warn("magnetometer is zero; falling back to IMU")
            return self.update_imu(gyroscope, accelerometer, dt)
        magnetometer /= m_norm

        # Reference direction of Earth's field in the world frame
        h = q * (Quaternion(0, magnetometer[0], magnetometer[1], magnetometer[2]) * q.conj())
        bx = norm(h[1:3])
        bz = h[3]

        f = np.array([
            2*(q[1]*q[3] - q[0]*q[2]) - accelerometer[0],
            2*(q[0]*q[1] + q[2]*q[3]) - accelerometer[1],
            2*(0.5 - q[1]**2 - q[2]**2) - accelerometer[2],
            2*bx*(0.5 - q[2]**2 - q[3]**2) + 2*bz*(q[1]*q[3] - q[0]*q[2]) - magnetometer[0],
            2*bx*(q[1]*q[2] - q[0]*q[3]) + 2*bz*(q[0]*q[1] + q[2]*q[3]) - magnetometer[1],
            2*bx*(q[0]*q[2] + q[1]*q[3]) + 2*bz*(0.5 - q[1]**2 - q[2]**2) - magnetometer[2]
        ])
        j = np.array([
            [-2*q[2],                2*q[3],                -2*q[0],                2*q[1]],
            [2*q[1],                 2*q[0],                2*q[3],                 2*q[2]],
            [0,                      -4*q[1],               -4*q[2],                0],
            [-2*bz*q[2],             2*bz*q[3],             -4*bx*q[2]-2*bz*q[0],   -4*bx*q[3]+2*bz*q[1]],
            [-2*bx*q[3]+2*bz*q[1],   2*bx*q[2]+2*bz*q[0],   2*bx*q[1]+2*bz*q[3],    -2*bx*q[0]+2*bz*q[2]],
            [2*bx*q[2],              2*bx*q[3]-4*bz*q[1],   2*bx*q[0]-4*bz*q[2],    2*bx*q[1]]
        ])

        self._integrate(gyroscope, j.T.dot(f), dt)

    def update_imu(self, gyroscope, accelerometer, dt=None):
        dt = self.sample_period if dt is None else float(dt)

        q = self.quaternion
        gyroscope = np.array(gyroscope, dtype=float).reshape(3,)
        accelerometer = np.array(accelerometer, dtype=float).reshape(3,)

        a_norm = norm(accelerometer)
        if not np.isfinite(a_norm) or a_norm < 1e-12:
            warnings.warn("accelerometer is zero")
            return
        accelerometer /= a_norm

        f = np.array([
            2*(q[1]*q[3] - q[0]*q[2]) - accelerometer[0],
            2*(q[0]*q[1] + q[2]*q[3]) - accelerometer[1],
            2*(0.5 - q[1]**2 - q[2]**2) - accelerometer[2]
        ])
        j = np.array([
            [-2*q[2], 2*q[3], -2*q[0], 2*q[1]],
            [2*q[1], 2*q[0], 2*q[3], 2*q[2]],
            [0, -4*q[1], -4*q[2], 0]
        ])

        self._integrate(gyroscope, j.T.dot(f), dt)

    def _integrate(self, gyroscope, step, dt):
        step_norm = norm(step)
        if step_norm > 1e-12:
            step = step / step_norm
        else:
            step = np.zeros(4)

        q = self.quaternion
        qdot = (q * Quaternion(0, gyroscope[0], gyroscope[1], gyroscope[2])) * 0.5 - Quaternion(step) * self.beta

        self.quaternion = (q + qdot * dt).normalized()

    def quaternion_xyzw(self):
        # ROS uses x,y,z,w
        w, x, y, z = self.quaternion.q
        return (x, y, z, w)
