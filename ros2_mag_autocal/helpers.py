import numpy as np

# Tesla -> microtesla, the field unit used for calibration thresholds in the node
TESLA_TO_UT = 1e6


def bias_correction_transform(center):
    """
    Build the 4x4 magnetometer calibration transform that subtracts a
    hard-iron bias: identity rotation/scale, translation by -center.

    Args:
        center : sphere center (3,) in the same units as the raw field

    Returns:
        4x4 numpy array, applied to [mx, my, mz, 1]
    """
    center = np.asarray(center, dtype=float).reshape(3,)
    if not np.all(np.isfinite(center)):
        raise ValueError(f"Non-finite magnetometer bias: {center}")
    M = np.eye(4)
    M[0:3, 3] = -center
    return M


def apply_mag_transform(transform, field):
    m = np.asarray(field, dtype=float).reshape(3,)
    return (transform @ np.append(m, 1.0))[:3]


def is_valid_mag_transform(transform):
    M = np.asarray(transform, dtype=float)
    if M.shape != (4, 4) or not np.all(np.isfinite(M)):
        return False
    return bool(np.allclose(M[3], [0.0, 0.0, 0.0, 1.0]))
