"""分段（composite）tracker：跟踪分段定义的函数。

说明：
    - 由若干个已冻结（finalized）的段和一个当前段组成；每段内部是一个简单 tracker。
    - 新数据点不满足当前段的回归时，当前段立刻结束并开启新段（第一次拒绝即切段）。
    - 新段在拥有自己的回归之前，用上一段在切分点处给出的“猜测函数”（guesses）做准入判断。
    - 若猜测函数存在且同样拒绝该点，则该点视为离群点，不切段、不写入。

约束：
    - 时间必须严格单调（由 MonotonicityChecker 校验）。
    - 子类通过覆盖 `tracker_for_next_segment` / `guess_for_next_segment` /
      `current_segment_was_updated` / `will_finalize_current_segment` 定制行为。
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable

from gamekit.events import Event
from gamekit.functions import (
    Polynomial,
    SimpleRange,
    linear_zero,
    solve_quadratic_nearest,
)
from gamekit.logging_utils import default_logger
from gamekit.monotonicity import Direction, MonotonicityChecker
from gamekit.trackers import (
    LinearTracker,
    ParabolaTracker,
    PolyTracker,
    PreliminaryTracker,
    Tolerance,
)


@dataclass
class Segment:
    """一个分段：已冻结段或当前段。

    Attributes:
        index: 段序号，从 0 开始。
        tracker: 该段的简单 tracker。
        guesses: 该段还没有回归时使用的猜测函数（来自上一段）。
        supposed_start_time: 推测的段起始时间；还无法推测时为 None。
    """

    index: int
    tracker: PolyTracker
    guesses: tuple[Polynomial, ...] | None = None
    supposed_start_time: float | None = None


class CompositeTracker:
    """分段 tracker 的基类。

    Args:
        tolerance: 所有段（以及猜测函数）共用的容差。
        tracker_factory: 为新段创建空 tracker；子类也可以覆盖 `tracker_for_next_segment`。
        logger: 可选 logger。
    """

    def __init__(
        self,
        *,
        tolerance: Tolerance,
        tracker_factory: Callable[[], PolyTracker] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.tolerance = tolerance
        self._tracker_factory = tracker_factory
        self._logger = logger or default_logger()

        self.monotonicity = MonotonicityChecker(Direction.BOTH, strict=True)
        self.finalized_segments: list[Segment] = []
        self.current_segment = Segment(index=0, tracker=self._new_tracker())

        # 段切换时触发，参数为新段起始时间的粗略估计。
        self.advanced_to_next_segment = Event()
        # 当前段的 supposed_start_time 每次刷新时触发（参数可能为 None）。
        self.updated_supposed_start_time = Event()

    # ------------------------------------------------------------------
    # 只读视图
    # ------------------------------------------------------------------

    @property
    def segments(self) -> list[Segment]:
        return [*self.finalized_segments, self.current_segment]

    @property
    def regression(self) -> Polynomial | None:
        """当前段的回归函数。"""

        return self.current_segment.tracker.regression

    # ------------------------------------------------------------------
    # 公共接口
    # ------------------------------------------------------------------

    def integrity_check(self, value: float, time: float) -> bool:
        """判断 `add(value, time)` 是否会接受该点（不修改任何状态）。"""

        if not copy.copy(self.monotonicity).verify(time):
            return False

        if self._current_segment_matches(value, time):
            return True

        guesses = self._guesses_for_next_segment(time)
        return guesses is None or self._matches_guesses(value, time, guesses)

    def add(self, value: float, time: float) -> bool:
        """写入一个数据点。

        Returns:
            True 表示该点被接受（写入当前段或开启了新段）；False 表示被拒绝。
        """

        if not self.monotonicity.verify(time):
            self._logger.warning(
                "%s: 时间不单调，time=%s last=%s direction=%s",
                type(self).__name__,
                time,
                self.monotonicity.last_value,
                self.monotonicity.direction.value,
            )
            return False

        if self._current_segment_matches(value, time):
            self.current_segment.tracker.add(value, time)
            self._refresh_current_segment()
            return True

        guesses = self._guesses_for_next_segment(time)
        if guesses is not None and not self._matches_guesses(value, time, guesses):
            return False

        self._advance_to_next_segment(value, time, guesses)
        return True

    # ------------------------------------------------------------------
    # 可覆盖的钩子
    # ------------------------------------------------------------------

    def tracker_for_next_segment(self) -> PolyTracker:
        """为下一段创建空 tracker；容差会被统一覆盖为 self.tolerance。"""

        if self._tracker_factory is None:
            raise NotImplementedError("需要提供 tracker_factory 或覆盖 tracker_for_next_segment")
        return self._tracker_factory()

    def guess_for_next_segment(self, time: float, value: float) -> Polynomial | None:
        """猜测在 (time, value) 处开始的下一段函数；信息不足时返回 None。"""

        return None

    def adapted_guess_range(self, proposed: SimpleRange) -> SimpleRange:
        """调整“新段可能开始的时间区间”；默认是上一个点到当前点之间。"""

        return proposed

    def current_segment_was_updated(self, segment: Segment) -> float | None:
        """当前段每次更新后调用；返回该段推测的起始时间。"""

        times = segment.tracker.times
        return times[0] if times else None

    def will_finalize_current_segment(self) -> None:
        """当前段即将被冻结时调用（每段恰好一次）。"""

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------

    def _new_tracker(self) -> PolyTracker:
        tracker = self.tracker_for_next_segment()
        tracker.tolerance = self.tolerance
        return tracker

    def _current_segment_matches(self, value: float, time: float) -> bool:
        seg = self.current_segment
        seg.tracker.tolerance = self.tolerance

        if seg.tracker.regression is not None:
            return seg.tracker.is_valid(value, time)
        if seg.guesses:
            return self._matches_guesses(value, time, seg.guesses)

        # 点数太少，无从判断。
        return True

    def _guesses_for_next_segment(self, time: float) -> tuple[Polynomial, ...] | None:
        seg = self.current_segment
        last_time = seg.tracker.last_time
        if last_time is None:
            return None

        reg = seg.tracker.regression
        if reg is not None:
            functions: tuple[Polynomial, ...] = (reg,)
        elif seg.guesses:
            functions = seg.guesses
        else:
            return None

        rng = self.adapted_guess_range(SimpleRange(last_time, time))
        slots = [rng.lower] if rng.lower == rng.upper else [rng.lower, rng.upper]

        guesses: list[Polynomial] = []
        for f in functions:
            for slot in slots:
                g = self.guess_for_next_segment(slot, f.at(slot))
                if g is not None:
                    guesses.append(g)

        if not guesses:
            return None

        # 只保留在当前时间处取值最小/最大的两个猜测，作为包络。
        lo = min(guesses, key=lambda g: g.at(time))
        hi = max(guesses, key=lambda g: g.at(time))
        return (lo,) if lo is hi else (lo, hi)

    def _matches_guesses(self, value: float, time: float, guesses: tuple[Polynomial, ...]) -> bool:
        at = [g.at(time) for g in guesses]
        if min(at) <= value <= max(at):
            return True
        return any(self.tolerance.admits(y, value) for y in at)

    def _refresh_current_segment(self) -> None:
        seg = self.current_segment
        seg.supposed_start_time = self.current_segment_was_updated(seg)
        self.updated_supposed_start_time.trigger(seg.supposed_start_time)

    def _advance_to_next_segment(
        self,
        value: float,
        time: float,
        guesses: tuple[Polynomial, ...] | None,
    ) -> None:
        old = self.current_segment
        self.will_finalize_current_segment()
        self.finalized_segments.append(old)

        last_time = old.tracker.last_time
        start_guess = time if last_time is None else 0.5 * (last_time + time)

        tracker = self._new_tracker()
        tracker.add(value, time)
        self.current_segment = Segment(index=old.index + 1, tracker=tracker, guesses=guesses)

        self._logger.debug("%s: 开启第 %d 段，start≈%.4f", type(self).__name__, old.index + 1, start_guess)
        self.advanced_to_next_segment.trigger(start_guess)
        self._refresh_current_segment()


class JumpTracker(CompositeTracker):
    """跟踪重力环境下物体高度的分段 tracker，每段是一个抛物线（一次跳跃）。

    说明：
        - 假设每次起跳把竖直速度设为同一个常数（绝对跳跃，与之前速度无关）。
        - 每段的重力与起跳速度作为“临时值”写入均值 tracker，段结束时确认。
        - 有了重力与起跳速度之后，才能对下一次跳跃给出猜测函数。

    Args:
        jump_tolerance: 段内容差。
        relative_value_range_tolerance: 重力/起跳速度的相对容差。
        custom_guess_range: 新跳跃可能开始的时间，相对于“上一个点到当前点”的区间。
        idle_height_before_initial_segment: 第一次跳跃前的静止高度（用于推算首跳起点）。
    """

    def __init__(
        self,
        *,
        jump_tolerance: Tolerance,
        relative_value_range_tolerance: float = 0.2,
        custom_guess_range: tuple[float, float] = (0.0, 1.0),
        idle_height_before_initial_segment: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        tol = Tolerance.relative(relative_value_range_tolerance)
        self.gravity_tracker = PreliminaryTracker(tolerance=tol, tolerance_points=1)
        self.jump_velocity_tracker = PreliminaryTracker(tolerance=tol, tolerance_points=1)
        self.custom_guess_range = (float(custom_guess_range[0]), float(custom_guess_range[1]))
        self.idle_height_before_initial_segment = idle_height_before_initial_segment
        super().__init__(tolerance=jump_tolerance, logger=logger)

    @property
    def gravity(self) -> float | None:
        return self.gravity_tracker.best_estimate

    @property
    def jump_velocity(self) -> float | None:
        return self.jump_velocity_tracker.best_estimate

    @property
    def parabola(self) -> Polynomial | None:
        """过原点的跳跃抛物线 f(0)=0, f'(0)=jump_velocity, f''=-gravity。"""

        g, v = self.gravity, self.jump_velocity
        if g is None or v is None:
            return None
        return Polynomial.parabola(-0.5 * g, v, 0.0)

    def latest_jump_start(self) -> tuple[float, float] | None:
        """最近一个同时具备起始时间与回归的段的 (起跳时间, 起跳高度)。"""

        for seg in [self.current_segment, *reversed(self.finalized_segments)]:
            reg = seg.tracker.regression
            if seg.supposed_start_time is not None and reg is not None:
                return seg.supposed_start_time, reg.at(seg.supposed_start_time)
        return None

    # ------------------------------------------------------------------
    # 钩子
    # ------------------------------------------------------------------

    def tracker_for_next_segment(self) -> PolyTracker:
        return ParabolaTracker(tolerance=self.tolerance)

    def current_segment_was_updated(self, segment: Segment) -> float | None:
        jump = segment.tracker.regression
        if jump is None:
            return None

        start = self._start_time_for_current_jump(jump)
        gravity = -2.0 * jump.a
        velocity = jump.derivative.at(start)

        self.gravity_tracker.remove_preliminary()
        self.jump_velocity_tracker.remove_preliminary()
        if self.gravity_tracker.is_value_valid(gravity) and self.jump_velocity_tracker.is_value_valid(velocity):
            self.gravity_tracker.add_preliminary(gravity)
            self.jump_velocity_tracker.add_preliminary(velocity)

        return start

    def will_finalize_current_segment(self) -> None:
        self.gravity_tracker.finalize_preliminary()
        self.jump_velocity_tracker.finalize_preliminary()

    def guess_for_next_segment(self, time: float, value: float) -> Polynomial | None:
        g, v = self.gravity, self.jump_velocity
        if g is None or v is None:
            return None

        # f(time) = value 且 f'(time) = v。
        a = -0.5 * g
        b = v - 2.0 * a * time
        c = value - (a * time * time + b * time)
        return Polynomial.parabola(a, b, c)

    def adapted_guess_range(self, proposed: SimpleRange) -> SimpleRange:
        lo_rel, hi_rel = self.custom_guess_range
        return SimpleRange(proposed.lower + lo_rel * proposed.size, proposed.lower + hi_rel * proposed.size)

    # ------------------------------------------------------------------

    def _start_time_for_current_jump(self, jump: Polynomial) -> float:
        guess = self.current_segment.tracker.times[0]

        if not self.finalized_segments:
            if self.idle_height_before_initial_segment is None:
                return guess
            start = solve_quadratic_nearest(jump, self.idle_height_before_initial_segment, guess)
            return guess if start is None else start

        last = self.finalized_segments[-1]
        if last.tracker.last_time is not None:
            guess = 0.5 * (guess + last.tracker.last_time)

        last_jump = last.tracker.regression
        if last_jump is None:
            return guess

        start = solve_quadratic_nearest(jump - last_jump, 0.0, guess)
        return guess if start is None else start


class LinearPingPongTracker(CompositeTracker):
    """在上下界之间往返的线性运动（例如柱子开口中心的上下移动）。

    说明：
        - 每段是一条直线，相邻段斜率符号相反、绝对值相同。
        - 段与段的交点给出下界（斜率由负转正）或上界（由正转负）。
        - 时间只允许递增。

    Args:
        tolerance: 段内容差。
        slope_tolerance: |斜率| 均值 tracker 的容差。
        bounds_tolerance: 上下界均值 tracker 的容差。
        segment_tolerance_points: 每段直线 tracker 的 tolerance_points。
    """

    def __init__(
        self,
        *,
        tolerance: Tolerance,
        slope_tolerance: Tolerance,
        bounds_tolerance: Tolerance,
        segment_tolerance_points: int = 1,
        logger: logging.Logger | None = None,
    ) -> None:
        self.slope_tracker = PreliminaryTracker(tolerance=slope_tolerance, tolerance_points=0)
        self.lower_bound_tracker = PreliminaryTracker(tolerance=bounds_tolerance, tolerance_points=0)
        self.upper_bound_tracker = PreliminaryTracker(tolerance=bounds_tolerance, tolerance_points=0)
        self.segment_tolerance_points = int(segment_tolerance_points)
        super().__init__(tolerance=tolerance, logger=logger)

    @property
    def slope(self) -> float | None:
        avg = self.slope_tracker.average
        return None if avg is None else abs(avg)

    @property
    def lower_bound(self) -> float | None:
        return self.lower_bound_tracker.average

    @property
    def upper_bound(self) -> float | None:
        return self.upper_bound_tracker.average

    def current_line(self) -> Polynomial | None:
        """当前段的直线；还没有回归时退化为第一条猜测。"""

        reg = self.regression
        if reg is not None:
            return reg
        guesses = self.current_segment.guesses
        return guesses[0] if guesses else None

    def value_at(self, time: float) -> float | None:
        """外推 time 处的值；上下界都已知时按往返运动折返。"""

        line = self.current_line()
        if line is None:
            return None

        v = line.at(time)
        lo, hi = self.lower_bound, self.upper_bound
        if lo is None or hi is None or hi <= lo:
            return v

        size = hi - lo
        u = (v - lo) % (2.0 * size)
        if u > size:
            u = 2.0 * size - u
        return lo + u

    # ------------------------------------------------------------------
    # 钩子
    # ------------------------------------------------------------------

    def tracker_for_next_segment(self) -> PolyTracker:
        return LinearTracker(tolerance=self.tolerance, tolerance_points=self.segment_tolerance_points)

    def current_segment_was_updated(self, segment: Segment) -> float | None:
        line = segment.tracker.regression
        if line is None:
            return None

        self.slope_tracker.update_preliminary_if_valid(abs(line.slope))

        last_line = self.finalized_segments[-1].tracker.regression if self.finalized_segments else None
        if last_line is None:
            return segment.tracker.times[0]

        x = linear_zero(line - last_line)
        if x is None:
            return segment.tracker.times[0]

        # 斜率为正：刚从下界折返；为负：刚从上界折返。
        bound = self.lower_bound_tracker if line.slope > 0.0 else self.upper_bound_tracker
        bound.update_preliminary_if_valid(line.at(x))
        return x

    def will_finalize_current_segment(self) -> None:
        self.slope_tracker.finalize_preliminary()
        self.lower_bound_tracker.finalize_preliminary()
        self.upper_bound_tracker.finalize_preliminary()

    def guess_for_next_segment(self, time: float, value: float) -> Polynomial | None:
        slope = self.slope
        line = self.current_line()
        if slope is None or line is None or line.slope == 0.0:
            return None

        new_slope = -slope if line.slope > 0.0 else slope
        return Polynomial.line(new_slope, value - new_slope * time)
