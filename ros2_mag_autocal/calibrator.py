"""
Magnetometer hard-iron auto-calibration.

While the device is being rotated, four (orientation, field) samples that are
well spread out are picked from the live stream. The magnetometer readings are
assumed to lie on a sphere; its center is the hard-iron bias, which is pushed
to the sensor fusion as a translation-only calibration transform.

The sensor fusion object must provide:
    get_orientation()          -> Quaternion
    get_magnetometer()         -> raw field (3,)
    clear_mag_calibration()
    set_mag_calibration(M)     (M is 4x4, applied to [mx, my, mz, 1])

Not thread safe: one owner drives all calls.
"""

import enum
import logging

from .acceptance import AcceptancePolicy, DEFAULT_MIN_MAG_DISTANCE, DEFAULT_MIN_QUAT_DISTANCE
from .geometry import sphere_center, sphere_radius
from .helpers import bias_correction_transform
from .quaternion import Quaternion
from .samples import Sample, SampleBuffer


class MagCalibrationState(enum.IntEnum):
    UNCALIBRATED = 0
    AUTO_CALIBRATING = 1
    MANUALLY_CALIBRATING = 2
    CALIBRATED = 3


_ACTIVE_STATES = (MagCalibrationState.AUTO_CALIBRATING, MagCalibrationState.MANUALLY_CALIBRATING)


class MagCalibration:
    def __init__(self, fusion, min_mag_distance=DEFAULT_MIN_MAG_DISTANCE,
                 min_quat_distance=DEFAULT_MIN_QUAT_DISTANCE, logger=None):
        """
        :param fusion: sensor fusion object supplying orientation / field and receiving the calibration
        :param min_mag_distance: minimal field separation between samples, in field units
        :param min_quat_distance: minimal orientation separation between samples, in quaternion space
        :param logger: rclpy or logging style logger; a module logger is used if None
        """
        self.fusion = fusion
        self.policy = AcceptancePolicy(min_mag_distance, min_quat_distance)
        self.samples = SampleBuffer()
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._state = MagCalibrationState.UNCALIBRATED
        self._mag_center = None

    @property
    def state(self):
        return self._state

    @property
    def mag_center(self):
        """Hard-iron bias, None unless calibrated."""
        if self._state != MagCalibrationState.CALIBRATED:
            return None
        return self._mag_center.copy()

    @property
    def is_uncalibrated(self):
        return self._state == MagCalibrationState.UNCALIBRATED

    @property
    def is_auto_calibrating(self):
        return self._state == MagCalibrationState.AUTO_CALIBRATING

    @property
    def is_manually_calibrating(self):
        return self._state == MagCalibrationState.MANUALLY_CALIBRATING

    @property
    def is_calibrating(self):
        return self._state in _ACTIVE_STATES

    @property
    def is_calibrated(self):
        return self._state == MagCalibrationState.CALIBRATED

    @property
    def number_of_samples(self):
        return self.samples.count

    @property
    def samples_needed(self):
        return self.samples.capacity - self.samples.count

    def begin_auto_calibration(self):
        self._restart(MagCalibrationState.AUTO_CALIBRATING)

    def begin_manual_calibration(self):
        self._restart(MagCalibrationState.MANUALLY_CALIBRATING)

    def _restart(self, state):
        self._state = state
        # Hard reset: samples must be collected in an un-offset frame
        self.fusion.clear_mag_calibration()
        self.samples.clear()
        self._mag_center = None
        self.logger.debug(f"Mag calibration started: {state.name}")

    def clear_calibration(self):
        self._state = MagCalibrationState.UNCALIBRATED
        self.fusion.clear_mag_calibration()
        self._mag_center = None

    def abort_calibration(self):
        self._state = MagCalibrationState.UNCALIBRATED
        self.samples.clear()

    def update_auto_calibration(self):
        """
        Call once per fusion update. Offers the current reading to the sample
        buffer and finalizes the calibration on the fourth accepted sample.
        Returns the (possibly new) state.
        """
        if self._state != MagCalibrationState.AUTO_CALIBRATING:
            return self._state

        q = self.fusion.get_orientation()
        m = self.fusion.get_magnetometer()

        self.insert_if_acceptable(q, m)

        if self.samples.count == self.samples.capacity and self._state == MagCalibrationState.AUTO_CALIBRATING:
            self.finalize()

        return self._state

    def insert_if_acceptable(self, orientation, field):
        if not self.is_calibrating or self.samples.is_full:
            return False

        q = Quaternion(orientation)
        if not self.policy.is_acceptable(self.samples, q, field):
            return False

        self.samples.append(Sample(q, field))
        self.logger.debug(f"Mag calibration sample {self.samples.count}/{self.samples.capacity}: {field}")
        return True

    def finalize(self):
        """
        Fit the sphere through the four collected fields and install the bias
        correction. Returns False, leaving the state as is, when there are not
        enough samples or the fit is degenerate.
        """
        if self.samples.count < self.samples.capacity or not self.is_calibrating:
            return False

        fields = self.samples.fields()
        try:
            center = sphere_center(*fields)
        except ValueError as e:
            # Acceptance gate let a near-coplanar set through; start collecting again
            self.logger.warning(f"Mag calibration fit failed, restarting sample collection: {e}")
            self.samples.clear()
            return False

        self.fusion.set_mag_calibration(bias_correction_transform(center))
        self._mag_center = center
        self._state = MagCalibrationState.CALIBRATED

        self.logger.info(
            f"Mag calibration done: center=({center[0]:.4g}, {center[1]:.4g}, {center[2]:.4g}) "
            f"radius={sphere_radius(center, fields[0]):.4g}"
        )
        return True
