import numpy as np

"""
Closed-form geometry used by the magnetometer auto-calibration:
  - the center of the sphere through four points (hard-iron bias)
  - point to plane distance (non-coplanarity gate for the fourth sample)

Degeneracy tolerances are relative to the size of the point set, so the same
readings give the same answers in Tesla, gauss or uT.
"""

# Below this |det| / L^3 (L = largest point separation) the four points are treated as coplanar
MIN_SPHERE_DETERMINANT = 1e-9

# Below this |normal| / (|p1-p2| * |p1-p3|), i.e. sin of the corner angle, the triple is collinear
MIN_NORMAL_LENGTH = 1e-12


def _as_vec3(p):
    return np.asarray(p, dtype=float).reshape(3,)


def sphere_center(p1, p2, p3, p4):
    """
    Center of the unique sphere passing through p1, p2, p3, p4.

    Uses the determinant form of the sphere equation: for each point row
    [x^2+y^2+z^2, x, y, z, 1], the center is recovered from the cofactors
    of the first column. The points are shifted to their mean first; the
    determinants then stay well conditioned for small or far off-origin
    readings.

    Raises:
        ValueError if the points are (numerically) coplanar, in which case
        no unique sphere exists.
    """
    P = np.vstack([_as_vec3(p1), _as_vec3(p2), _as_vec3(p3), _as_vec3(p4)])
    origin = P.mean(axis=0)
    P = P - origin
    sq = np.einsum("ij,ij->i", P, P)
    ones = np.ones(4)

    scale = max(np.linalg.norm(P[i] - P[j]) for i in range(4) for j in range(i + 1, 4))
    m11 = np.linalg.det(np.column_stack([P, ones]))
    if not np.isfinite(m11) or not np.isfinite(scale) or abs(m11) <= MIN_SPHERE_DETERMINANT * scale**3:
        raise ValueError("Degenerate input: points are coplanar, sphere center is undefined")

    m12 = np.linalg.det(np.column_stack([sq, P[:, 1], P[:, 2], ones]))
    m13 = np.linalg.det(np.column_stack([sq, P[:, 0], P[:, 2], ones]))
    m14 = np.linalg.det(np.column_stack([sq, P[:, 0], P[:, 1], ones]))

    c = 0.5 / m11
    return origin + np.array([c * m12, -c * m13, c * m14])


def sphere_radius(center, p):
    return float(np.linalg.norm(_as_vec3(p) - _as_vec3(center)))


def point_to_plane_distance(p1, p2, p3, p4):
    """
    Unsigned distance from p4 to the plane through p1, p2, p3.

    A collinear p1, p2, p3 has no plane normal; 0.0 is returned so that any
    "distance > threshold" test fails for it.
    """
    p1 = _as_vec3(p1)
    e1 = p1 - _as_vec3(p2)
    e2 = p1 - _as_vec3(p3)
    normal = np.cross(e1, e2)
    n = np.linalg.norm(normal)
    if not np.isfinite(n) or n <= MIN_NORMAL_LENGTH * np.linalg.norm(e1) * np.linalg.norm(e2):
        return 0.0
    normal /= n
    return float(abs(np.dot(normal, _as_vec3(p4)) - np.dot(normal, p1)))
