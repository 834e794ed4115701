import logging
import unittest

from gamekit.composite import CompositeTracker, JumpTracker, LinearPingPongTracker
from gamekit.trackers import LinearTracker, Tolerance


def _quiet_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    return logger


class TestCompositeTracker(unittest.TestCase):
    def _make(self) -> CompositeTracker:
        return CompositeTracker(
            tolerance=Tolerance.absolute(0.5),
            tracker_factory=lambda: LinearTracker(tolerance=Tolerance.absolute(0.5)),
            logger=_quiet_logger("gamekit.test.composite"),
        )

    def test_first_rejection_starts_new_segment(self):
        """两条直线拼接：第一次被拒绝的点开启新段。"""

        tracker = self._make()
        starts: list[float] = []
        tracker.advanced_to_next_segment.subscribe(starts.append)

        for t in range(20):
            self.assertTrue(tracker.add(float(t), float(t)))
        for t in range(20, 40):
            self.assertTrue(tracker.add(100.0 - t, float(t)))

        self.assertEqual(len(tracker.segments), 2)
        self.assertEqual(tracker.current_segment.index, 1)
        self.assertEqual(tracker.current_segment.tracker.times[0], 20.0)
        self.assertEqual(tracker.finalized_segments[0].tracker.count, 20)
        self.assertAlmostEqual(tracker.regression.slope, -1.0)
        self.assertEqual(starts, [19.5])

    def test_integrity_check_does_not_mutate(self):
        tracker = self._make()
        for t in range(5):
            tracker.add(float(t), float(t))

        self.assertTrue(tracker.integrity_check(5.0, 5.0))
        self.assertTrue(tracker.integrity_check(50.0, 5.0))
        self.assertFalse(tracker.integrity_check(5.0, 4.0))

        self.assertEqual(tracker.current_segment.tracker.count, 5)
        self.assertEqual(len(tracker.segments), 1)
        self.assertEqual(tracker.monotonicity.last_value, 4.0)

    def test_non_monotonic_time_is_rejected(self):
        tracker = self._make()
        tracker.add(1.0, 1.0)

        with self.assertLogs("gamekit.test.composite", level="WARNING"):
            self.assertFalse(tracker.add(1.0, 1.0))
        self.assertEqual(tracker.current_segment.tracker.count, 1)

    def test_missing_tracker_factory_raises(self):
        with self.assertRaises(NotImplementedError):
            CompositeTracker(tolerance=Tolerance.absolute(1.0))


def _jump_heights(n: int, *, h0: float = 150.0, g: float = 600.0, v: float = 300.0) -> list[tuple[float, float]]:
    """每 0.8s（48 帧 @60fps）起跳一次的高度序列，返回 [(time, height)]。"""

    out = []
    for i in range(n):
        k = i // 48
        tau = (i - 48 * k) / 60.0
        start = h0 + k * (v * 0.8 - 0.5 * g * 0.8 * 0.8)
        out.append((i / 60.0, start + v * tau - 0.5 * g * tau * tau))
    return out


class TestJumpTracker(unittest.TestCase):
    def _make(self) -> JumpTracker:
        return JumpTracker(
            jump_tolerance=Tolerance.absolute(4.0),
            logger=_quiet_logger("gamekit.test.jump"),
        )

    def test_learns_gravity_and_jump_velocity(self):
        tracker = self._make()
        starts: list[float] = []
        tracker.advanced_to_next_segment.subscribe(starts.append)

        for t, h in _jump_heights(240):
            self.assertTrue(tracker.add(h, t))

        self.assertEqual(len(tracker.segments), 5)
        self.assertEqual(len(starts), 4)
        for k, start in enumerate(starts, start=1):
            self.assertAlmostEqual(start, 0.8 * k, delta=0.02)

        self.assertAlmostEqual(tracker.gravity, 600.0, delta=1.0)
        self.assertAlmostEqual(tracker.jump_velocity, 300.0, delta=1.0)

        parabola = tracker.parabola
        self.assertAlmostEqual(parabola.at(0.0), 0.0)
        self.assertAlmostEqual(parabola.derivative.at(0.0), tracker.jump_velocity)

        latest = tracker.latest_jump_start()
        assert latest is not None
        self.assertAlmostEqual(latest[0], 3.2, delta=0.01)
        self.assertAlmostEqual(latest[1], 150.0 + 4 * 48.0, delta=0.5)

    def test_outlier_is_dropped_without_new_segment(self):
        """新段和猜测函数都不接受的点视为离群点。"""

        tracker = self._make()
        outlier = None
        for i, (t, h) in enumerate(_jump_heights(120)):
            if i == 110:
                outlier = h + 100.0
                self.assertFalse(tracker.add(outlier, t - 1.0 / 120.0))
            self.assertTrue(tracker.add(h, t))

        self.assertEqual(len(tracker.segments), 3)
        self.assertNotIn(outlier, tracker.current_segment.tracker.values)
        self.assertEqual(tracker.current_segment.tracker.count, 120 - 97)

    def test_supposed_start_time_is_reported(self):
        tracker = self._make()
        refined: list[float | None] = []
        tracker.updated_supposed_start_time.subscribe(refined.append)

        for t, h in _jump_heights(60):
            tracker.add(h, t)

        self.assertAlmostEqual(tracker.current_segment.supposed_start_time, 0.8, delta=0.01)
        self.assertAlmostEqual(refined[-1], 0.8, delta=0.01)
        self.assertIsNone(refined[0])


class TestLinearPingPongTracker(unittest.TestCase):
    @staticmethod
    def _triangle(t: float) -> float:
        u = (10.0 * t) % 20.0
        return 10.0 + (u if u <= 10.0 else 20.0 - u)

    def test_bounds_slope_and_extrapolation(self):
        tracker = LinearPingPongTracker(
            tolerance=Tolerance.absolute(0.2),
            slope_tolerance=Tolerance.relative(0.3),
            bounds_tolerance=Tolerance.absolute(1.0),
            logger=_quiet_logger("gamekit.test.pingpong"),
        )

        for i in range(121):
            t = 0.05 * i
            self.assertTrue(tracker.add(self._triangle(t), t))

        self.assertEqual(len(tracker.segments), 6)
        self.assertAlmostEqual(tracker.slope, 10.0, delta=0.05)
        self.assertAlmostEqual(tracker.lower_bound, 10.0, delta=0.05)
        self.assertAlmostEqual(tracker.upper_bound, 20.0, delta=0.05)

        # 当前段向下运动，外推需要在上下界之间折返。
        self.assertAlmostEqual(tracker.value_at(7.5), 15.0, delta=0.1)
        self.assertAlmostEqual(tracker.value_at(6.5), 15.0, delta=0.1)

    def test_value_unknown_without_data(self):
        tracker = LinearPingPongTracker(
            tolerance=Tolerance.absolute(0.2),
            slope_tolerance=Tolerance.relative(0.3),
            bounds_tolerance=Tolerance.absolute(1.0),
            logger=_quiet_logger("gamekit.test.pingpong"),
        )
        self.assertIsNone(tracker.value_at(1.0))
        self.assertIsNone(tracker.slope)
