import math
import unittest

from gamekit.trackers import (
    AngularWrapper,
    ConstantTracker,
    Fallback,
    LinearTracker,
    PreliminaryTracker,
    Tolerance,
)


class TestTolerance(unittest.TestCase):
    def test_relative_boundary_is_admitted(self):
        """恰好等于容差视为通过，超出一点点即拒绝。"""

        tracker = ConstantTracker(tolerance=Tolerance.relative(0.25))
        tracker.add_value(4.0)
        tracker.add_value(4.0)

        self.assertTrue(tracker.is_value_valid(5.0))
        self.assertTrue(tracker.is_value_valid(3.0))
        self.assertFalse(tracker.is_value_valid(5.0 + 1e-9))

    def test_absolute_boundary_is_admitted(self):
        tracker = ConstantTracker(tolerance=Tolerance.absolute(0.5))
        tracker.add_value(1.0)
        tracker.add_value(1.0)

        self.assertTrue(tracker.is_value_valid(1.5))
        self.assertFalse(tracker.is_value_valid(1.5 + 1e-9))

    def test_temporary_tolerance_does_not_replace_own(self):
        tracker = ConstantTracker(tolerance=Tolerance.absolute(0.5))
        tracker.add_value(1.0)
        tracker.add_value(1.0)

        self.assertTrue(tracker.is_value_valid(3.0, tolerance=Tolerance.absolute(2.0)))
        self.assertFalse(tracker.is_value_valid(3.0))
        self.assertEqual(tracker.tolerance, Tolerance.absolute(0.5))

    def test_invalid_tolerance_raises(self):
        with self.assertRaises(ValueError):
            Tolerance("absolute", -1.0)
        with self.assertRaises(ValueError):
            Tolerance("sometimes", 1.0)
        with self.assertRaises(ValueError):
            Tolerance.relative(float("nan"))


class TestPolyTracker(unittest.TestCase):
    def test_required_points_count_distinct_times(self):
        """一次回归默认需要 1+1+1=3 个不同时间点。"""

        tracker = LinearTracker(tolerance=Tolerance.absolute(0.1))
        self.assertEqual(tracker.required_points, 3)

        tracker.add(1.0, 0.0)
        tracker.add(1.5, 0.0)
        tracker.add(2.0, 1.0)
        self.assertIsNone(tracker.regression)

        tracker.add(3.0, 2.0)
        self.assertIsNotNone(tracker.regression)

        exact = LinearTracker(tolerance=Tolerance.absolute(0.1), tolerance_points=0)
        exact.add(0.0, 0.0)
        exact.add(1.0, 1.0)
        self.assertAlmostEqual(exact.slope, 1.0)

    def test_line_regression(self):
        tracker = LinearTracker(tolerance=Tolerance.absolute(0.1))
        for i in range(10):
            tracker.add(3.0 * i - 2.0, float(i))

        self.assertAlmostEqual(tracker.slope, 3.0)
        self.assertAlmostEqual(tracker.intercept, -2.0)
        self.assertAlmostEqual(tracker.variance, 0.0)
        self.assertTrue(tracker.is_valid(28.05, 10.0))
        self.assertFalse(tracker.is_valid(28.5, 10.0))

    def test_regression_follows_data_changes(self):
        """回归按需重算：增删数据后读取到的是新结果。"""

        tracker = LinearTracker(tolerance=Tolerance.absolute(0.1))
        for i in range(3):
            tracker.add(float(i), float(i))
        self.assertAlmostEqual(tracker.slope, 1.0)

        tracker.add(100.0, 3.0)
        self.assertGreater(tracker.slope, 1.0)

        tracker.remove_last()
        self.assertAlmostEqual(tracker.slope, 1.0)

        tracker.reset()
        self.assertEqual(tracker.count, 0)
        self.assertIsNone(tracker.regression)

    def test_ring_buffer_drops_oldest(self):
        tracker = LinearTracker(tolerance=Tolerance.absolute(0.1), max_data_points=3)
        for i in range(5):
            tracker.add(float(i), float(i))

        self.assertEqual(tracker.count, 3)
        self.assertEqual(tracker.times, [2.0, 3.0, 4.0])
        self.assertEqual(tracker.last_value, 4.0)

    def test_fallback_without_regression(self):
        tracker = LinearTracker(tolerance=Tolerance.absolute(0.1))

        self.assertTrue(tracker.is_valid(5.0, 0.0, fallback=Fallback.VALID))
        self.assertFalse(tracker.is_valid(5.0, 0.0, fallback=Fallback.INVALID))
        self.assertFalse(tracker.is_valid(5.0, 0.0, fallback=Fallback.USE_LAST_VALUE))

        tracker.add(5.0, 0.0)
        self.assertTrue(tracker.is_valid(5.05, 1.0, fallback=Fallback.USE_LAST_VALUE))
        self.assertFalse(tracker.is_valid(6.0, 1.0, fallback=Fallback.USE_LAST_VALUE))

    def test_invalid_arguments_raise(self):
        with self.assertRaises(ValueError):
            LinearTracker(tolerance=Tolerance.absolute(0.1), max_data_points=0)
        with self.assertRaises(ValueError):
            LinearTracker(tolerance=Tolerance.absolute(0.1), tolerance_points=-1)


class TestConstantTrackers(unittest.TestCase):
    def test_average_and_variance(self):
        tracker = ConstantTracker(tolerance=Tolerance.absolute(10.0))
        self.assertIsNone(tracker.average)

        tracker.add_value(1.0)
        tracker.add_value(3.0)
        self.assertAlmostEqual(tracker.average, 2.0)
        self.assertAlmostEqual(tracker.variance, 1.0)

    def test_preliminary_value_can_be_replaced(self):
        tracker = PreliminaryTracker(tolerance=Tolerance.absolute(10.0))
        tracker.add_final(1.0)
        self.assertIsNone(tracker.average)
        self.assertEqual(tracker.best_estimate, 1.0)

        tracker.add_preliminary(3.0)
        self.assertTrue(tracker.has_preliminary_value)
        self.assertAlmostEqual(tracker.average, 2.0)

        self.assertTrue(tracker.update_preliminary_if_valid(5.0))
        self.assertEqual(tracker.count, 2)
        self.assertAlmostEqual(tracker.average, 3.0)

        tracker.remove_preliminary()
        self.assertEqual(tracker.count, 1)
        self.assertFalse(tracker.has_preliminary_value)

    def test_rejected_preliminary_only_clears_old_one(self):
        tracker = PreliminaryTracker(tolerance=Tolerance.absolute(10.0))
        tracker.add_final(1.0)
        tracker.add_final(1.0)
        tracker.add_preliminary(2.0)

        self.assertFalse(tracker.update_preliminary_if_valid(100.0))
        self.assertEqual(tracker.values, [1.0, 1.0])
        self.assertFalse(tracker.has_preliminary_value)

    def test_finalized_value_is_kept(self):
        tracker = PreliminaryTracker(tolerance=Tolerance.absolute(10.0))
        tracker.add_preliminary(2.0)
        tracker.finalize_preliminary()
        tracker.remove_preliminary()
        self.assertEqual(tracker.values, [2.0])


class TestAngularWrapper(unittest.TestCase):
    def test_wrapped_angles_are_unrolled(self):
        """角度每步增加 0.5 rad，测量值落在 [0, 2π)；展开后应是一条直线。"""

        wrapper = AngularWrapper(LinearTracker(tolerance=Tolerance.absolute(0.1)))
        for i in range(20):
            wrapper.add((0.5 * i) % (2.0 * math.pi), float(i))

        self.assertEqual(wrapper.count, 20)
        self.assertAlmostEqual(wrapper.values[-1], 9.5)
        self.assertAlmostEqual(wrapper.regression.slope, 0.5)

        self.assertTrue(wrapper.is_valid(10.0 % (2.0 * math.pi), 20.0))
        self.assertFalse(wrapper.is_valid((10.0 + math.pi) % (2.0 * math.pi), 20.0))

    def test_first_value_is_kept_as_is(self):
        wrapper = AngularWrapper(LinearTracker(tolerance=Tolerance.absolute(0.1)))
        self.assertEqual(wrapper.linearify(6.0, 0.0), 6.0)

        wrapper.add(6.0, 0.0)
        self.assertAlmostEqual(wrapper.linearify(0.1, 1.0), 0.1 + 2.0 * math.pi)
