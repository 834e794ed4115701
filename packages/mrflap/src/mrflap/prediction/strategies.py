"""求解策略。

说明：
    每个策略都提供同样的两个操作：
        - can_solve(frame) -> bool
        - solution(frame) -> Solution | None
    `TapPredictor` 按固定优先级 [IdleStrategy, RandomizedSearchStrategy] 依次尝试，
    使用第一个 can_solve 为 True 的策略。
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Protocol

import numpy as np

from gamekit.functions import (
    SimpleRange,
    parabola_maximum_in,
    parabola_minimum_in,
    solve_polynomial_equals,
)
from gamekit.logging_utils import default_logger

from mrflap.configs import PredictionConfig
from mrflap.prediction.models import PlayerBarInteraction, PredictionFrame
from mrflap.prediction.solution import Jump, Solution


class SolutionStrategy(Protocol):
    def can_solve(self, frame: PredictionFrame) -> bool: ...

    def solution(self, frame: PredictionFrame) -> Solution | None: ...


class IdleStrategy:
    """没有障碍时保持有规律的跳跃。

    说明：
        目标是让跳跃起点位于 `lower + idle_height * (size - jump_height)`。
        玩家下落到该高度时点击（取二次方程较大的根，即尽量晚）；
        已经低于该高度时立即点击。两种情况都要满足最小跳跃间隔。
    """

    def __init__(self, cfg: PredictionConfig | None = None) -> None:
        self.cfg = cfg or PredictionConfig()

    def can_solve(self, frame: PredictionFrame) -> bool:
        return frame.next_bar is None

    def solution(self, frame: PredictionFrame) -> Solution | None:
        player, jumping, playfield = frame.player, frame.jumping, frame.playfield

        start_height = playfield.lower_radius + self.cfg.idle_height * (playfield.size - jumping.jump_height)
        floor = max(0.0, self.cfg.min_jump_distance - player.time_passed_since_jump_start)

        roots = solve_polynomial_equals(jumping.parabola, start_height - player.jump_start_height)
        if roots is None:
            tap = floor
        else:
            tap = max(floor, max(roots) - player.time_passed_since_jump_start)

        return Solution.from_tap_times([tap], time_until_end=tap, rating=1.0)


class SolutionGenerator:
    """为下一个障碍随机生成点击方案。"""

    def __init__(self, frame: PredictionFrame, rng: np.random.Generator, *, max_taps: int = 5) -> None:
        if frame.next_bar is None:
            raise ValueError("SolutionGenerator 需要一个障碍")
        self.frame = frame
        self.bar: PlayerBarInteraction = frame.next_bar
        self.rng = rng
        self.max_taps = int(max_taps)

    @property
    def minimum_number_of_taps(self) -> int | None:
        """离开障碍之前至少需要的点击次数（必要条件，不一定充分）。

        说明：
            把 [当前跳跃起点, leave_time] 均分成 N 次跳跃，N 次跳跃总共最多升高
            v*T - g*T^2/(2N)；它不低于开口下沿所需的最小 N 即为下界。
            当前这次跳跃已经发生，因此结果是 N - 1。若均分后每段比已经过的时间还短，
            则改为从当前高度和相对时间 0 开始计算。

        Returns:
            开口为空或目标高度无法到达时返回 None。
        """

        hole = self.bar.hole
        if hole.is_empty or hole.size <= 0.0:
            return None

        player = self.frame.player
        passed = player.time_passed_since_jump_start
        duration = self.bar.leave_time + passed

        n = self._equidistant_jumps(duration, hole.lower - player.jump_start_height)
        if n is None:
            return None
        if n == 0 or duration / n >= passed:
            return max(0, n - 1)

        return self._equidistant_jumps(self.bar.leave_time, hole.lower - player.current_height)

    def _equidistant_jumps(self, duration: float, height_diff: float) -> int | None:
        jumping = self.frame.jumping
        reach = jumping.jump_velocity * duration - height_diff
        if reach <= 0.0:
            return None
        return int(math.ceil(0.5 * jumping.gravity * duration * duration / reach))

    @property
    def max_time_for_first_tap(self) -> float:
        """不点击时玩家落到游戏区域下界的相对时间；第一次点击必须在此之前。"""

        player, jumping = self.frame.player, self.frame.jumping
        diff = self.frame.playfield.lower_radius - player.jump_start_height
        roots = solve_polynomial_equals(jumping.parabola, diff)
        if roots is None:
            return math.inf
        return max(roots) - player.time_passed_since_jump_start

    @property
    def zero_solution(self) -> Solution:
        return Solution(None, (), self.bar.leave_time)

    def random_solution(self, min_distance: float) -> Solution | None:
        """生成 n 次点击（n 为最少次数或多一次），相邻点击间隔不小于 min_distance。

        说明：
            点击落在 [max(0, min_distance - 已过时间), leave_time] 内；第一次点击不晚于
            `max_time_for_first_tap`。放不下 n 次点击时先减少次数（至少 1 次）。

        Returns:
            仍无法满足约束时返回 None。
        """

        minimum = self.minimum_number_of_taps
        if minimum is None:
            return None

        low = max(1, minimum)
        high = max(low, min(self.max_taps, low + 1))
        n = int(self.rng.integers(low, high + 1))

        end = self.bar.leave_time
        first = max(0.0, min_distance - self.frame.player.time_passed_since_jump_start)
        if min_distance > 0.0:
            n = max(1, min(n, int(math.ceil((end - first) / min_distance))))

        slack = end - first - (n - 1) * min_distance
        if slack < 0.0:
            return None
        first_slack = min(slack, self.max_time_for_first_tap - first)
        if first_slack < 0.0:
            return None

        points = np.concatenate(([self.rng.uniform(0.0, first_slack)], self.rng.uniform(0.0, slack, size=n - 1)))
        offsets = np.sort(points)
        taps = first + offsets + min_distance * np.arange(n)
        return Solution.from_tap_times(taps.tolist(), end)


class SolutionVerifier:
    """对方案打分，越大越好。

    rating = time_rating * safety_rating
        - time_rating：最小跳跃间隔（含当前这次跳跃），上限为一次跳跃时长；
          最后一次点击离有效期结束太近也会被惩罚。
        - safety_rating ∈ [0, 1]：与游戏区域边界、开口边界的距离，以及最陡的下落速度。
    """

    def __init__(self, frame: PredictionFrame, cfg: PredictionConfig | None = None) -> None:
        if frame.next_bar is None:
            raise ValueError("SolutionVerifier 需要一个障碍")
        self.frame = frame
        self.bar: PlayerBarInteraction = frame.next_bar
        self.cfg = cfg or PredictionConfig()

    def precondition(self, solution: Solution) -> bool:
        """玩家在进入和离开柱子的时刻都位于开口内。"""

        hole = self.bar.hole
        for t in (self.bar.enter_time, self.bar.leave_time):
            if t <= 0.0:
                continue
            h = solution.height_at(t, self.frame.player, self.frame.jumping)
            if not (hole.lower < h < hole.upper):
                return False
        return True

    def rating(self, solution: Solution) -> float:
        time_rating = self.time_rating(solution)
        if time_rating <= 0.0:
            return 0.0

        jumps = solution.jumps(self.frame.player, self.frame.jumping, until=self.bar.leave_time)
        safety = 1.0
        for part in (self._playfield_rating, self._descend_rating, self._vertical_hole_rating):
            safety *= part(jumps)
            if safety <= 0.0:
                return 0.0
        return time_rating * safety

    def time_rating(self, solution: Solution) -> float:
        player, jumping = self.frame.player, self.frame.jumping

        if solution.time_until_start is not None:
            first = solution.time_until_start
        else:
            first = solution.time_until_end or 0.0

        distances = [player.time_passed_since_jump_start + first, *solution.jump_time_distances]
        rating = min(jumping.horizontal_jump_length, min(distances))

        last = solution.length_of_last_jump
        if last is not None:
            rating = min(rating, 3.0 * last)
        return rating

    # ------------------------------------------------------------------

    def _playfield_rating(self, jumps: list[Jump]) -> float:
        playfield = self.frame.playfield
        window = SimpleRange(0.0, self.bar.leave_time)

        distance = math.inf
        for jump in jumps:
            r = jump.time_range.intersection(window)
            if r.is_empty:
                continue
            lower = parabola_minimum_in(jump.parabola, r.lower, r.upper) - playfield.lower_radius
            upper = 3.0 * (playfield.upper_radius - parabola_maximum_in(jump.parabola, r.lower, r.upper))
            distance = min(distance, lower, upper)
            if distance <= 0.0:
                return 0.0

        return min(1.0, distance / (self.cfg.playfield_safety_ratio * playfield.size))

    def _descend_rating(self, jumps: list[Jump]) -> float:
        descends = [-jump.parabola.derivative.at(jump.end_time) for jump in jumps]
        steepest = max([0.01, *descends])
        return min(1.0, 1.2 * self.frame.jumping.jump_velocity / steepest)

    def _vertical_hole_rating(self, jumps: list[Jump]) -> float:
        hole = self.bar.hole
        window = SimpleRange(self.bar.enter_time, self.bar.leave_time)

        distance = math.inf
        for jump in jumps:
            r = jump.time_range.intersection(window)
            if r.is_empty:
                continue
            lower = parabola_minimum_in(jump.parabola, r.lower, r.upper) - hole.lower
            # 撞到上沿没有撞到下沿危险。
            upper = 1.5 * (hole.upper - parabola_maximum_in(jump.parabola, r.lower, r.upper))
            distance = min(distance, lower, upper)
            if distance <= 0.0:
                return 0.0

        return min(1.0, distance / (self.cfg.vertical_safety_ratio * hole.size))


class RandomizedSearchStrategy:
    """随机搜索点击方案，保留评分最高者，并作为下一帧的起点。

    说明：
        - 上一帧的最佳方案按帧间隔平移后先参与评估（warm start）；
          下一个障碍换了，或该障碍已被移除（`invalidate`）时丢弃。
        - 每轮生成 num_tries 个候选；一轮下来仍没有可行方案时，把最小点击间隔
          乘以 relaxation_factor 再试，最多 max_relaxations 次。
        - 生成候选时最小间隔取 max(当前最小间隔, 当前最佳评分)：评分不超过最小间隔，
          间隔更小的候选不可能更好。
    """

    def __init__(
        self,
        cfg: PredictionConfig | None = None,
        *,
        rng: np.random.Generator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg or PredictionConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self._logger = logger or default_logger("mrflap")

        self._last_solution: Solution | None = None
        self._last_frame_time: float | None = None
        self._last_handle: int | None = None

    @property
    def last_solution(self) -> Solution | None:
        return self._last_solution

    def invalidate(self, handle: int | None = None) -> None:
        """丢弃 warm start；给定 handle 时只在上一方案针对该柱子时丢弃。"""

        if handle is None or handle == self._last_handle:
            self._last_solution = None
            self._last_handle = None

    def can_solve(self, frame: PredictionFrame) -> bool:
        if frame.next_bar is None:
            return False
        taps = SolutionGenerator(frame, self.rng, max_taps=self.cfg.max_taps).minimum_number_of_taps
        return taps is not None and taps <= self.cfg.max_taps

    def solution(self, frame: PredictionFrame) -> Solution | None:
        generator = SolutionGenerator(frame, self.rng, max_taps=self.cfg.max_taps)
        verifier = SolutionVerifier(frame, self.cfg)
        bar = generator.bar

        best: Solution | None = None
        best_rating = 0.0

        def evaluate(candidate: Solution) -> None:
            nonlocal best, best_rating
            if not verifier.precondition(candidate):
                return
            rating = verifier.rating(candidate)
            if rating > best_rating:
                best, best_rating = candidate.with_rating(rating), rating

        if self._last_solution is not None and self._last_handle == bar.handle and self._last_frame_time is not None:
            shifted = self._last_solution.shifted(frame.frame_time - self._last_frame_time)
            if shifted is not None:
                evaluate(replace(shifted, time_until_end=bar.leave_time))

        evaluate(generator.zero_solution)

        min_distance = self.cfg.min_jump_distance
        for relaxation in range(self.cfg.max_relaxations + 1):
            for _ in range(self.cfg.num_tries):
                candidate = generator.random_solution(max(min_distance, best_rating))
                if candidate is not None:
                    evaluate(candidate)
            if best_rating > 0.0:
                break
            min_distance *= self.cfg.relaxation_factor
            self._logger.debug("RandomizedSearchStrategy: 第 %d 次放宽最小点击间隔 -> %.4f", relaxation + 1, min_distance)

        self._last_solution = best
        self._last_frame_time = frame.frame_time
        self._last_handle = bar.handle if best is not None else None
        return best
