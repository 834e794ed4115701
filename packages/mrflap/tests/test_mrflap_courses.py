import unittest

from mrflap.courses import BarCourse, BarState, PlayerCourse
from mrflap.model import GameModel
from mrflap.simulation import GameSimulation
from mrflap.types import BarMeasurement, PlayerMeasurement, Playfield, UpdateError


class TestPlayerCourse(unittest.TestCase):
    def setUp(self):
        self.sim = GameSimulation(noise=0.0)
        self.course = PlayerCourse(self.sim.playfield)
        for _ in range(30):
            result, t = self.sim.step()
            self.assertIsNone(self.course.integrity_check(result.player, t))
            self.course.update(result.player, t)

        self.next_result, self.next_time = self.sim.step()

    def _check(self, **changes):
        p = self.next_result.player
        values = {"angle": p.angle, "height": p.height, "size": p.size, **changes}
        return self.course.integrity_check(PlayerMeasurement(**values), self.next_time)

    def test_learns_ballistics(self):
        self.assertAlmostEqual(self.course.height.gravity, 600.0, delta=1.0)
        # 第一次跳跃的起点未知，起跳速度只能粗略估计。
        self.assertAlmostEqual(self.course.height.jump_velocity, 300.0, delta=15.0)
        self.assertAlmostEqual(self.course.size.average, 20.0)
        self.assertAlmostEqual(self.course.angle.regression.slope, 1.5)

    def test_integrity_check_reports_first_failure(self):
        p = self.next_result.player

        self.assertIsNone(self._check())
        self.assertEqual(self._check(size=2.0 * p.size), UpdateError.WRONG_SIZE)
        self.assertEqual(self._check(angle=p.angle + 1.0), UpdateError.WRONG_ANGLE)
        self.assertEqual(self._check(height=p.height + 50.0), UpdateError.WRONG_HEIGHT)
        self.assertEqual(self._check(size=2.0 * p.size, height=p.height + 50.0), UpdateError.WRONG_SIZE)

    def test_integrity_check_does_not_mutate(self):
        count = self.course.height.current_segment.tracker.count
        self._check(height=self.next_result.player.height + 50.0)
        self._check()
        self.assertEqual(self.course.height.current_segment.tracker.count, count)
        self.assertEqual(self.course.size.count, 30)


class TestBarCourse(unittest.TestCase):
    def setUp(self):
        self.playfield = Playfield(inner_radius=100.0, full_radius=300.0)
        self.course = BarCourse(self.playfield)

    def _update(self, t: float, hole: float, *, angle: float = 1.0, y: float = 200.0):
        bar = BarMeasurement(angle=angle, width=30.0, hole_size=hole, y_center=y)
        self.assertIsNone(self.course.integrity_check(bar, t))
        self.course.update(bar, t)

    def test_appearing_until_hole_size_leaves_the_line(self):
        """出现阶段开口线性变小；不再符合直线时转为 NORMAL。"""

        for i, hole in enumerate((200.0, 190.0, 180.0, 170.0)):
            self._update(0.1 * i, hole)
            self.assertIs(self.course.state, BarState.APPEARING)
        self.assertEqual(self.course.hole_size.count, 0)
        self.assertIsNone(self.course.best_hole_size)

        self._update(0.4, 120.0)
        self.assertIs(self.course.state, BarState.NORMAL)
        self.assertEqual(self.course.best_hole_size, 120.0)
        self.assertEqual(self.course.y_center_at(0.5), 200.0)

        # NORMAL 不会回到 APPEARING。
        self._update(0.5, 120.0)
        self.assertIs(self.course.state, BarState.NORMAL)
        self.assertAlmostEqual(self.course.best_hole_size, 120.0)

    def test_integrity_check_in_normal_state(self):
        for i, hole in enumerate((200.0, 190.0, 180.0, 170.0)):
            self._update(0.1 * i, hole)
        for i in range(4, 12):
            self._update(0.1 * i, 120.0)

        t = 1.2
        ok = BarMeasurement(angle=1.0, width=30.0, hole_size=120.0, y_center=200.0)
        self.assertIsNone(self.course.integrity_check(ok, t))
        self.assertEqual(
            self.course.integrity_check(BarMeasurement(1.5, 30.0, 120.0, 200.0), t), UpdateError.WRONG_ANGLE
        )
        self.assertEqual(
            self.course.integrity_check(BarMeasurement(1.0, 60.0, 120.0, 200.0), t), UpdateError.WRONG_WIDTH
        )
        self.assertEqual(
            self.course.integrity_check(BarMeasurement(1.0, 30.0, 150.0, 200.0), t), UpdateError.WRONG_HOLE_SIZE
        )
        self.assertEqual(self.course.angle.count, 12)

    def test_hole_size_is_not_checked_while_appearing(self):
        self._update(0.0, 200.0)
        self._update(0.1, 190.0)
        self.assertIsNone(self.course.integrity_check(BarMeasurement(1.0, 30.0, 20.0, 200.0), 0.2))

    def test_orphanage_is_reset_by_updates(self):
        self.course.orphanage.new_frame()
        self.course.orphanage.new_frame()
        self._update(0.0, 200.0)
        self.assertEqual(self.course.orphanage.frames_without_update, 0)


class TestGameModel(unittest.TestCase):
    def test_handles_are_stable_and_removal_is_notified(self):
        model = GameModel(Playfield(100.0, 300.0))
        removed: list[int] = []
        model.bar_removed.subscribe(removed.append)

        a, b = model.add_bar(), model.add_bar()
        self.assertEqual((a, b), (0, 1))
        self.assertEqual(list(model.bars), [0, 1])

        model.remove_bar(a)
        self.assertEqual(removed, [0])
        self.assertIsNone(model.bar(a))
        self.assertEqual(model.add_bar(), 2)

        with self.assertRaises(KeyError):
            model.remove_bar(a)
        self.assertEqual(removed, [0])

    def test_bars_is_a_snapshot(self):
        model = GameModel(Playfield(100.0, 300.0))
        model.add_bar()
        snapshot = model.bars
        model.add_bar()
        self.assertEqual(len(snapshot), 1)
        self.assertEqual(len(model.bars), 2)
