import rclpy
import sensor_msgs.msg
from rclpy.node import Node

from .calibrator import MagCalibration, MagCalibrationState
from .fusion import SensorFusion
from .helpers import TESLA_TO_UT


def make_mag_msg(header, field_uT):
    msg = sensor_msgs.msg.MagneticField()
    msg.header = header
    mx, my, mz = field_uT / TESLA_TO_UT
    msg.magnetic_field.x = float(mx)
    msg.magnetic_field.y = float(my)
    msg.magnetic_field.z = float(mz)
    # all-zero covariance: unknown
    return msg


class MagAutoCalNode(Node):
    def __init__(self):
        super().__init__("mag_autocal_node")

        # Logger
        self.logger = self.get_logger()

        self.logger.info("IP: Magnetometer auto-calibration node has been started")

        # Parameters
        self.declare_parameter("madgwick_beta", 0.08)   # 0.04-0.2 typical
        self.beta = float(self.get_parameter("madgwick_beta").value)
        self.logger.info(f"   madgwick_beta: {self.beta}")

        self.declare_parameter("use_mag", True)
        self.use_mag = bool(self.get_parameter("use_mag").value)
        self.logger.info(f"   use_mag: {self.use_mag}")

        # Feed the filter with mag before a bias is known (yaw will be off)
        self.declare_parameter("use_uncalibrated_mag", False)
        self.use_uncalibrated_mag = bool(self.get_parameter("use_uncalibrated_mag").value)
        self.logger.info(f"   use_uncalibrated_mag: {self.use_uncalibrated_mag}")

        self.declare_parameter("auto_calibrate", True)
        self.auto_calibrate = bool(self.get_parameter("auto_calibrate").value)
        self.logger.info(f"   auto_calibrate: {self.auto_calibrate}")

        # 20 uT = 0.2 gauss
        self.declare_parameter("min_mag_distance_uT", 20.0)
        self.min_mag_distance_uT = float(self.get_parameter("min_mag_distance_uT").value)
        self.logger.info(f"   min_mag_distance_uT: {self.min_mag_distance_uT}")

        self.declare_parameter("min_quat_distance", 0.5)
        self.min_quat_distance = float(self.get_parameter("min_quat_distance").value)
        self.logger.info(f"   min_quat_distance: {self.min_quat_distance}")

        # Fusion works in microtesla so the thresholds above apply directly
        self.fusion = SensorFusion(beta=self.beta)
        self.calibration = MagCalibration(
            self.fusion,
            min_mag_distance=self.min_mag_distance_uT,
            min_quat_distance=self.min_quat_distance,
            logger=self.logger,
        )

        self._mag_uT = None
        self._last_stamp_ns = None
        self._shutting_down = False

        if self.auto_calibrate:
            self.calibration.begin_auto_calibration()
            self.logger.info("   rotate the sensor around all axes to calibrate the magnetometer")

        # Subscribers
        self.imu_sub = self.create_subscription(sensor_msgs.msg.Imu, "/imu/data_raw", self.imu_cback, 10)
        self.mag_sub = self.create_subscription(sensor_msgs.msg.MagneticField, "/imu/mag_raw", self.mag_cback, 10)

        # Publishers
        self.imu_pub = self.create_publisher(sensor_msgs.msg.Imu, "/imu/data", 10)
        self.mag_pub = self.create_publisher(sensor_msgs.msg.MagneticField, "/imu/mag", 10)

        self.logger.info("OK: Mag auto-calibration Node: init successful")

    def mag_cback(self, msg):
        if self._shutting_down:
            return

        self._mag_uT = (
            msg.magnetic_field.x * TESLA_TO_UT,
            msg.magnetic_field.y * TESLA_TO_UT,
            msg.magnetic_field.z * TESLA_TO_UT,
        )

    def imu_cback(self, msg):
        """
          /imu/data_raw drives the filter, the latest /imu/mag_raw is used with it.
          Publishes /imu/data (with orientation) and /imu/mag (bias removed).
        """

        if self._shutting_down:
            return

        try:
            stamp_ns = msg.header.stamp.sec * 1000000000 + msg.header.stamp.nanosec

            # Compute dt for filter
            if self._last_stamp_ns is None:
                dt = self.fusion.sample_period
            else:
                dt = (stamp_ns - self._last_stamp_ns) * 1e-9
                # Clamp dt to sane bounds (prevents huge jumps if the publisher pauses)
                if dt <= 0.0:
                    dt = self.fusion.sample_period
                elif dt > 0.2:
                    dt = 0.2
            self._last_stamp_ns = stamp_ns

            gyro = (msg.angular_velocity.x, msg.angular_velocity.y, msg.angular_velocity.z)
            accel = (msg.linear_acceleration.x, msg.linear_acceleration.y, msg.linear_acceleration.z)

            feed_mag = (
                self.use_mag
                and self._mag_uT is not None
                and (self.calibration.is_calibrated or self.use_uncalibrated_mag)
            )

            if self._mag_uT is not None:
                # the calibrator needs the raw reading even when yaw is not corrected by it
                self.fusion.update_mag_reading(self._mag_uT)

            if feed_mag:
                self.fusion.update(gyro, accel, self._mag_uT, dt=dt)
            else:
                self.fusion.update_imu(gyro, accel, dt=dt)

            if self._mag_uT is not None:
                prev_state = self.calibration.state
                state = self.calibration.update_auto_calibration()
                if state != prev_state:
                    self.logger.info(f"Mag calibration state: {prev_state.name} -> {state.name}")
                elif state == MagCalibrationState.AUTO_CALIBRATING:
                    self.logger.debug(f"Mag calibration samples: {self.calibration.number_of_samples}")

            self.publish(msg)

        except Exception as e:
            if not self._shutting_down:
                self.logger.error(f"imu_cback exception: {e}")

    def publish(self, imu_raw_msg):
        imu_msg = sensor_msgs.msg.Imu()
        imu_msg.header = imu_raw_msg.header
        imu_msg.linear_acceleration = imu_raw_msg.linear_acceleration
        imu_msg.angular_velocity = imu_raw_msg.angular_velocity
        imu_msg.angular_velocity_covariance = imu_raw_msg.angular_velocity_covariance
        imu_msg.linear_acceleration_covariance = imu_raw_msg.linear_acceleration_covariance

        qx, qy, qz, qw = self.fusion.quaternion_xyzw()
        imu_msg.orientation.x = float(qx)
        imu_msg.orientation.y = float(qy)
        imu_msg.orientation.z = float(qz)
        imu_msg.orientation.w = float(qw)

        # Provide non-negative covariances (tune later), yaw is unreliable until mag is calibrated
        imu_msg.orientation_covariance[0] = 0.05
        imu_msg.orientation_covariance[4] = 0.05
        imu_msg.orientation_covariance[8] = 0.10 if self.calibration.is_calibrated else 1.0

        self.imu_pub.publish(imu_msg)

        if self._mag_uT is None:
            return

        self.mag_pub.publish(make_mag_msg(imu_raw_msg.header, self.fusion.get_calibrated_magnetometer()))

    def destroy_node(self):
        self._shutting_down = True
        return super().destroy_node()


def main(args=None):
    rclpy.init(args=args)
    node = MagAutoCalNode()
    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        node.get_logger().info("Ctrl-C received, shutting down...")
    finally:
        try:
            node.destroy_node()
        except Exception:
            pass
        try:
            rclpy.shutdown()
        except Exception:
            pass

if __name__ == "__main__":
    main()
