import numpy as np
import pytest

from ros2_mag_autocal.calibrator import MagCalibration
from ros2_mag_autocal.fusion import SensorFusion
from ros2_mag_autocal.helpers import bias_correction_transform
from ros2_mag_autocal.quaternion import Quaternion


def test__quaternion_rotation():
    q = Quaternion.from_angle_axis(np.pi / 2, 0, 0, 1)

    assert np.allclose(q.rotate([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0])
    assert np.allclose(q.conj().rotate(q.rotate([0.3, -2.0, 5.0])), [0.3, -2.0, 5.0])
    assert q.norm() == pytest.approx(1.0)


def test__quaternion_product():
    qx = Quaternion.from_angle_axis(np.pi / 2, 1, 0, 0)
    qz = Quaternion.from_angle_axis(np.pi / 2, 0, 0, 1)

    v = [0.0, 1.0, 0.0]
    assert np.allclose((qz * qx).rotate(v), qz.rotate(qx.rotate(v)))
    assert np.allclose((qx * qx.conj()).q, [1.0, 0.0, 0.0, 0.0])


def test__quaternion_rejects_bad_shape():
    with pytest.raises(ValueError):
        Quaternion([1.0, 0.0, 0.0])


def test__mag_calibration_applied_to_reading():
    f = SensorFusion()
    bias = np.array([-12.5, -10.8, 23.7])
    f.update_mag_reading([10.0, 20.0, 30.0])

    assert not f.has_mag_calibration
    assert np.allclose(f.get_calibrated_magnetometer(), [10.0, 20.0, 30.0])

    f.set_mag_calibration(bias_correction_transform(bias))
    assert f.has_mag_calibration
    assert np.allclose(f.get_magnetometer(), [10.0, 20.0, 30.0])
    assert np.allclose(f.get_calibrated_magnetometer(), np.array([10.0, 20.0, 30.0]) - bias)

    f.clear_mag_calibration()
    assert not f.has_mag_calibration
    assert np.allclose(f.get_mag_calibration(), np.eye(4))


def test__invalid_mag_calibration_rejected():
    f = SensorFusion()

    with pytest.raises(ValueError):
        f.set_mag_calibration(np.eye(3))
    assert not f.has_mag_calibration


def test__update_stores_raw_mag():
    f = SensorFusion()
    f.update((0.0, 0.0, 0.0), (0.0, 0.0, 9.81), (20.0, 0.0, -40.0), dt=0.01)

    assert np.allclose(f.get_magnetometer(), [20.0, 0.0, -40.0])


def test__stationary_level_stays_at_identity():
    f = SensorFusion(beta=0.1)

    for _ in range(200):
        f.update((0.0, 0.0, 0.0), (0.0, 0.0, 9.81), (20.0, 0.0, -40.0), dt=0.01)

    assert np.allclose(f.get_orientation().q, [1.0, 0.0, 0.0, 0.0], atol=1e-6)
    assert f.quaternion_xyzw() == pytest.approx((0.0, 0.0, 0.0, 1.0), abs=1e-6)


def test__gyro_integration_keeps_unit_norm():
    f = SensorFusion(beta=0.05)

    for _ in range(100):
        f.update_imu((0.1, -0.2, 0.5), (0.3, 0.1, 9.7), dt=0.01)

    assert f.get_orientation().norm() == pytest.approx(1.0)

    f.reset()
    assert np.allclose(f.get_orientation().q, [1.0, 0.0, 0.0, 0.0])


def test__zero_accelerometer_warns():
    f = SensorFusion()

    with pytest.warns(UserWarning, match="accelerometer is zero"):
        f.update_imu((0.1, 0.0, 0.0), (0.0, 0.0, 0.0))
    assert np.allclose(f.get_orientation().q, [1.0, 0.0, 0.0, 0.0])


def test__zero_magnetometer_falls_back_to_imu():
    f = SensorFusion()

    with pytest.warns(UserWarning, match="magnetometer is zero"):
        f.update((0.0, 0.0, 0.5), (0.0, 0.0, 9.81), (0.0, 0.0, 0.0), dt=0.01)
    # gyro about z still integrated
    assert f.get_orientation().q[3] > 0.0


def test__auto_calibration_through_sensor_fusion():
    rng = np.random.default_rng(54321)

    f = SensorFusion()
    bias = np.array([5.0, -3.0, 12.0])
    earth = np.array([0.0, 22.0, -41.0])
    f.set_mag_calibration(bias_correction_transform([100.0, 100.0, 100.0]))  # stale, must be cleared

    calibration = MagCalibration(f, min_mag_distance=20.0, min_quat_distance=0.5)
    calibration.begin_auto_calibration()
    assert not f.has_mag_calibration

    updates = 0
    while not calibration.is_calibrated and updates < 500:
        f.quaternion = Quaternion(rng.normal(size=4)).normalized()
        f.update_mag_reading(f.quaternion.conj().rotate(earth) + bias)
        calibration.update_auto_calibration()
        updates += 1

    assert calibration.is_calibrated
    assert f.has_mag_calibration
    assert np.allclose(calibration.mag_center, bias, atol=1e-6)
    # bias removed: the reading is the body frame Earth field again
    assert np.linalg.norm(f.get_calibrated_magnetometer()) == pytest.approx(np.linalg.norm(earth), rel=1e-6)
