import numpy as np

from .geometry import point_to_plane_distance
from .samples import SAMPLE_CAPACITY

# Defaults in field units of 1 gauss (100 uT) and quaternion space
DEFAULT_MIN_MAG_DISTANCE = 0.2
DEFAULT_MIN_QUAT_DISTANCE = 0.5


class AcceptancePolicy:
    """
    Decides whether a candidate (orientation, field) sample is different enough
    from the ones already collected.

    Every candidate must be rotated away from all collected samples. The first
    three fields must also be apart from each other, and the fourth must be off
    the plane of the other three, otherwise the sphere fit is ill-conditioned.
    All comparisons are strict.
    """
    def __init__(self, min_mag_distance=DEFAULT_MIN_MAG_DISTANCE,
                 min_quat_distance=DEFAULT_MIN_QUAT_DISTANCE):
        if min_mag_distance < 0.0 or min_quat_distance < 0.0:
            raise ValueError("Acceptance thresholds must be non-negative")
        self._min_mag_distance = float(min_mag_distance)
        self._min_quat_distance = float(min_quat_distance)
        self._min_mag_distance_sq = self._min_mag_distance * self._min_mag_distance
        self._min_quat_distance_sq = self._min_quat_distance * self._min_quat_distance

    @property
    def min_mag_distance(self):
        return self._min_mag_distance

    @property
    def min_quat_distance(self):
        return self._min_quat_distance

    def is_acceptable(self, samples, orientation, field):
        count = len(samples)
        if count == 0:
            return True
        if count >= SAMPLE_CAPACITY:
            return False

        if not all(orientation.distance_sq(s.orientation) > self._min_quat_distance_sq for s in samples):
            return False

        m = np.asarray(field, dtype=float).reshape(3,)

        if count < 3:
            return all(self._field_distance_sq(m, s.field) > self._min_mag_distance_sq for s in samples)

        return self._off_plane(samples[0].field, samples[1].field, samples[2].field, m)

    @staticmethod
    def _field_distance_sq(a, b):
        d = a - b
        return float(np.dot(d, d))

    def _off_plane(self, p0, p1, p2, m):
        # each of the four points in turn against the plane of the other three
        tests = (
            (p0, p1, p2, m),
            (p1, p2, m, p0),
            (p2, m, p0, p1),
            (m, p0, p1, p2),
        )
        return any(point_to_plane_distance(*t) > self._min_mag_distance for t in tests)
