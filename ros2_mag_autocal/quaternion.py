import numbers

import numpy as np


class Quaternion:
    """
    A simple numpy-backed quaternion, stored as [w, x, y, z].
    """
    def __init__(self, w_or_q, x=None, y=None, z=None):
        if x is not None and y is not None and z is not None:
            self._q = np.array([w_or_q, x, y, z], dtype=float)
        elif isinstance(w_or_q, Quaternion):
            self._q = np.array(w_or_q.q, dtype=float)
        else:
            q = np.array(w_or_q, dtype=float).flatten()
            if q.shape != (4,):
                raise ValueError("Expecting a 4-element array or w x y z as parameters")
            self._q = q

    @classmethod
    def from_angle_axis(cls, rad, x, y, z):
        """Rotation of rad radians about the (x, y, z) axis."""
        axis = np.array([x, y, z], dtype=float)
        n = np.linalg.norm(axis)
        if n < 1e-12:
            return cls(1, 0, 0, 0)
        s = np.sin(rad / 2) / n
        return cls(np.cos(rad / 2), axis[0] * s, axis[1] * s, axis[2] * s)

    @property
    def q(self):
        return self._q

    def conj(self):
        return Quaternion(self._q[0], -self._q[1], -self._q[2], -self._q[3])

    def norm(self):
        return float(np.linalg.norm(self._q))

    def length_sq(self):
        return float(np.dot(self._q, self._q))

    def normalized(self):
        n = self.norm()
        if n < 1e-12:
            return Quaternion(1, 0, 0, 0)
        return Quaternion(self._q / n)

    def distance_sq(self, other):
        """
        Squared distance in quaternion space. q and -q encode the same rotation,
        so the smaller of |q - o|^2 and |q + o|^2 is returned.
        """
        d1 = (self - other).length_sq()
        d2 = (self + other).length_sq()
        return d1 if d1 < d2 else d2

    def distance(self, other):
        return float(np.sqrt(self.distance_sq(other)))

    def rotate(self, v):
        """Rotate a 3-vector by this (unit) quaternion: q * (0, v) * q^-1"""
        v = np.asarray(v, dtype=float).reshape(3,)
        p = self * Quaternion(0, v[0], v[1], v[2]) * self.conj()
        return p.q[1:4].copy()

    def __mul__(self, other):
        if isinstance(other, Quaternion):
            w0, x0, y0, z0 = self._q
            w1, x1, y1, z1 = other.q
            return Quaternion(
                w0*w1 - x0*x1 - y0*y1 - z0*z1,
                w0*x1 + x0*w1 + y0*z1 - z0*y1,
                w0*y1 - x0*z1 + y0*w1 + z0*x1,
                w0*z1 + x0*y1 - y0*x1 + z0*w1,
            )
        if isinstance(other, numbers.Number):
            return Quaternion(self._q * other)
        return NotImplemented

    def __rmul__(self, other):
        if isinstance(other, numbers.Number):
            return Quaternion(self._q * other)
        return NotImplemented

    def __add__(self, other):
        if isinstance(other, Quaternion):
            return Quaternion(self._q + other.q)
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Quaternion):
            return Quaternion(self._q - other.q)
        return NotImplemented

    def __neg__(self):
        return Quaternion(-self._q)

    def __getitem__(self, item):
        return self._q[item]

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._q.copy()
        return self._q.astype(dtype)

    def __repr__(self):
        w, x, y, z = self._q
        return f"Quaternion({w:.6g}, {x:.6g}, {y:.6g}, {z:.6g})"
