"""端到端：合成游戏 + MrFlap（手动计时器，时间完全由模拟推进）。"""

import logging
import unittest

import numpy as np

from gamekit.functions import SimpleRange
from gamekit.tapping import RelativeTap, RelativeTapSequence
from mrflap.configs import MrFlapConfig, PredictionConfig
from mrflap.game import MrFlap
from mrflap.prediction import (
    JumpingProperties,
    PlayerBarInteraction,
    PlayerProperties,
    PlayfieldProperties,
    PredictionFrame,
)
from mrflap.simulation import GameSimulation


class _SimulatedTimer:
    def __init__(self, due: float, fn) -> None:
        self.due = due
        self.fn = fn
        self.done = False

    def start(self) -> None:
        pass

    def cancel(self) -> None:
        self.done = True


class _SimulatedTimers:
    """按模拟时间触发的计时器集合。"""

    def __init__(self, sim: GameSimulation) -> None:
        self.sim = sim
        self.timers: list[_SimulatedTimer] = []

    def __call__(self, interval: float, fn) -> _SimulatedTimer:
        timer = _SimulatedTimer(self.sim.time + interval, fn)
        self.timers.append(timer)
        return timer

    def fire_due(self) -> None:
        for timer in list(self.timers):
            if not timer.done and timer.due <= self.sim.time:
                timer.done = True
                timer.fn()
        self.timers = [t for t in self.timers if not t.done]


class _NoSolution:
    """总能接手、但从不给出方案的策略。"""

    def __init__(self) -> None:
        self.calls = 0

    def can_solve(self, frame) -> bool:
        return True

    def solution(self, frame):
        self.calls += 1
        return None


def _quiet_logger() -> logging.Logger:
    logger = logging.getLogger("mrflap.test.game")
    logger.propagate = False
    logger.setLevel(logging.ERROR)
    return logger


class TestMrFlapOnSimulation(unittest.TestCase):
    def _make(self, sim: GameSimulation) -> tuple[MrFlap, _SimulatedTimers]:
        timers = _SimulatedTimers(sim)
        game = MrFlap(
            sim.playfield,
            tapper=sim.tap,
            time_provider=sim.current_time,
            cfg=MrFlapConfig(prediction=PredictionConfig(num_tries=200)),
            timer_factory=timers,
            rng=np.random.default_rng(0),
            logger=_quiet_logger(),
        )
        return game, timers

    @staticmethod
    def _run(sim: GameSimulation, game: MrFlap, timers: _SimulatedTimers, frames: int) -> None:
        for _ in range(frames):
            result, t = sim.step()
            timers.fire_due()
            game.process(result, t)

    def test_idle_jumping_learns_physics_and_delay(self):
        sim = GameSimulation(seed=0)
        game, timers = self._make(sim)
        self._run(sim, game, timers, 600)

        self.assertFalse(sim.touched_floor)
        self.assertGreaterEqual(len(sim.jump_times), 5)

        height = game.model.player.height
        self.assertAlmostEqual(height.gravity, 600.0, delta=60.0)
        self.assertAlmostEqual(height.jump_velocity, 300.0, delta=30.0)

        delay = game.scheduler.delay
        assert delay is not None
        self.assertAlmostEqual(delay, 0.05, delta=0.02)
        self.assertLessEqual(game.scheduler.delay_tracker.pending_taps, 1)

        frame = game.predictor.last_frame
        assert frame is not None
        self.assertAlmostEqual(frame.player.x_speed, 1.5, delta=0.01)
        self.assertAlmostEqual(frame.playfield.lower_radius, 110.0, delta=1.0)
        self.assertIsNone(frame.next_bar)

    def test_passes_a_static_bar(self):
        sim = GameSimulation(seed=0)
        sim.add_bar(6.0, hole_size=160.0)
        game, timers = self._make(sim)
        self._run(sim, game, timers, 330)

        self.assertFalse(sim.crashed)
        self.assertFalse(sim.touched_floor)
        self.assertEqual(list(game.model.bars), [0])

    def test_no_prediction_without_player_data(self):
        sim = GameSimulation(seed=0)
        game, timers = self._make(sim)

        result, t = sim.step()
        self.assertIsNone(game.process(result, t))
        self.assertEqual(game.scheduler.scheduled_tap_times, [])

    def test_lock_and_fallback_delay(self):
        sim = GameSimulation(seed=0)
        game, _ = self._make(sim)
        predictor = game.predictor

        self.assertAlmostEqual(predictor.delay, game.cfg.tapping.fallback_delay)

        predictor.reschedule(RelativeTapSequence([RelativeTap(0.5)], unlock_duration=0.6), 0.0)
        self.assertEqual(game.scheduler.scheduled_tap_times, [0.5])
        self.assertFalse(predictor.is_locked(0.0))
        self.assertTrue(predictor.is_locked(0.46))
        self.assertIsNone(predictor.predict(0.46))
        self.assertEqual(game.scheduler.scheduled_tap_times, [0.5])

        # unlock_duration 到期后序列被清除。
        self.assertFalse(predictor.is_locked(0.7))
        self.assertIsNone(predictor.tap_sequence)

        # 没有剩余点击的序列一直锁定到 unlock_duration。
        predictor.reschedule(RelativeTapSequence([], unlock_duration=0.3), 0.0)
        self.assertTrue(predictor.is_locked(0.1))
        self.assertFalse(predictor.is_locked(0.3))

        predictor.reschedule(RelativeTapSequence([RelativeTap(0.5)]), 0.0)
        game.stop()
        self.assertEqual(game.scheduler.scheduled_tap_times, [])
        self.assertIsNone(predictor.tap_sequence)
        self.assertFalse(predictor.is_locked(0.46))

    def test_infeasible_frame_keeps_scheduled_taps(self):
        sim = GameSimulation(seed=0)
        game, timers = self._make(sim)
        self._run(sim, game, timers, 300)
        game.stop()

        strategy = _NoSolution()
        game.predictor.strategies = [strategy]

        now = sim.time
        game.predictor.reschedule(RelativeTapSequence([RelativeTap(1.0)]), now)
        self.assertIsNone(game.predictor.predict(now))

        self.assertEqual(strategy.calls, 1)
        self.assertEqual(game.scheduler.scheduled_tap_times, [now + 1.0])
        self.assertIsNotNone(game.predictor.tap_sequence)

    def test_removed_bar_discards_warm_start(self):
        sim = GameSimulation(seed=0)
        game, _ = self._make(sim)

        jumping = JumpingProperties(gravity=10.0, jump_velocity=5.0)
        frame = PredictionFrame(
            frame_time=0.0,
            jumping=jumping,
            player=PlayerProperties(0.5, 4.0, 5.25, x_position=0.0, x_speed=1.0),
            playfield=PlayfieldProperties(0.0, 10.0),
            next_bar=PlayerBarInteraction(0, 0.8, 0.8, 1.2, SimpleRange(2.0, 9.0)),
        )
        randomized = game.predictor.randomized
        self.assertIsNotNone(randomized.solution(frame))

        handle = game.model.add_bar()
        self.assertEqual(handle, 0)
        game.model.remove_bar(handle)
        self.assertIsNone(randomized.last_solution)
