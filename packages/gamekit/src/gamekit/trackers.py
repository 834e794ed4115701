"""简单 tracker：跟踪一维标量随时间的变化，并给出回归函数。

说明：
    - tracker 持有一个有上限的 (time, value) 环形缓冲；超出容量时丢弃最旧的点。
    - 回归函数按需（lazy）重新计算：只有在数据变化后第一次读取 `regression` 时才重算。
    - 数据点不足（按不同时间点计数）时 `regression` 为 None。
    - `is_valid` 根据容差策略判断新观测是否与回归一致；没有回归时按 fallback 处理。
"""

from __future__ import annotations

import enum
import math
from collections import deque
from dataclasses import dataclass
from typing import Literal

import numpy as np

from gamekit.functions import Polynomial, poly_regression


@dataclass(frozen=True)
class Tolerance:
    """容差策略。

    说明：
        - absolute：|f(t) - v| <= value。
        - relative：|f(t) - v| <= |f(t)| * value。
        - 边界值（恰好等于容差）视为通过。
    """

    kind: Literal["absolute", "relative"]
    value: float

    def __post_init__(self) -> None:
        if self.kind not in ("absolute", "relative"):
            raise ValueError(f"未知的容差类型：{self.kind}")
        if not (math.isfinite(self.value) and self.value >= 0.0):
            raise ValueError(f"容差必须是非负有限数，实际是：{self.value}")

    @classmethod
    def absolute(cls, value: float) -> Tolerance:
        return cls("absolute", float(value))

    @classmethod
    def relative(cls, value: float) -> Tolerance:
        return cls("relative", float(value))

    def admits(self, expected: float, value: float) -> bool:
        """判断 value 是否落在以 expected 为参考的容差范围内。"""

        diff = abs(expected - value)
        if self.kind == "absolute":
            return diff <= self.value
        return diff <= abs(expected) * self.value


class Fallback(enum.Enum):
    """没有回归函数时的判定方式。"""

    VALID = "valid"
    INVALID = "invalid"
    USE_LAST_VALUE = "use_last_value"


class PolyTracker:
    """多项式回归 tracker（常数/一次/n 次）。

    Args:
        degree: 回归多项式次数。
        tolerance: 默认容差策略。
        max_data_points: 环形缓冲容量。
        tolerance_points: 在“刚好能确定多项式”之外额外要求的点数。
            required_points = degree + tolerance_points + 1。
    """

    def __init__(
        self,
        degree: int,
        *,
        tolerance: Tolerance,
        max_data_points: int = 500,
        tolerance_points: int = 1,
    ) -> None:
        if degree < 0:
            raise ValueError(f"degree 必须 >= 0，实际是：{degree}")
        if max_data_points <= 0:
            raise ValueError(f"max_data_points 必须 > 0，实际是：{max_data_points}")
        if tolerance_points < 0:
            raise ValueError(f"tolerance_points 必须 >= 0，实际是：{tolerance_points}")

        self.degree = int(degree)
        self.tolerance = tolerance
        self.max_data_points = int(max_data_points)
        self.required_points = self.degree + int(tolerance_points) + 1

        self._times: deque[float] = deque(maxlen=self.max_data_points)
        self._values: deque[float] = deque(maxlen=self.max_data_points)
        self._regression: Polynomial | None = None
        self._stale = False

    # ------------------------------------------------------------------
    # 数据
    # ------------------------------------------------------------------

    @property
    def times(self) -> list[float]:
        return list(self._times)

    @property
    def values(self) -> list[float]:
        return list(self._values)

    @property
    def count(self) -> int:
        return len(self._times)

    @property
    def last_time(self) -> float | None:
        return self._times[-1] if self._times else None

    @property
    def last_value(self) -> float | None:
        return self._values[-1] if self._values else None

    def add(self, value: float, time: float) -> None:
        """追加一个观测点；超出容量时最旧的点被丢弃（deque 自动完成）。"""

        self._times.append(float(time))
        self._values.append(float(value))
        self._stale = True

    def remove_last(self) -> None:
        """删除最新的观测点。调用方需保证至少存在一个点。"""

        self._times.pop()
        self._values.pop()
        self._stale = True

    def reset(self) -> None:
        self._times.clear()
        self._values.clear()
        self._regression = None
        self._stale = False

    # ------------------------------------------------------------------
    # 回归
    # ------------------------------------------------------------------

    @property
    def regression(self) -> Polynomial | None:
        """当前回归函数；点数不足或数据退化时为 None。"""

        if self._stale:
            self._regression = self._calculate_regression()
            self._stale = False
        return self._regression

    @property
    def has_regression(self) -> bool:
        return self.regression is not None

    def _calculate_regression(self) -> Polynomial | None:
        if len(set(self._times)) < self.required_points:
            return None
        return poly_regression(list(self._times), list(self._values), self.degree)

    @property
    def variance(self) -> float | None:
        """观测值相对回归的均方残差。"""

        f = self.regression
        if f is None:
            return None
        residuals = np.asarray([f.at(t) - v for t, v in zip(self._times, self._values)], dtype=float)
        return float(np.mean(residuals**2))

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------

    def is_valid(
        self,
        value: float,
        time: float,
        *,
        tolerance: Tolerance | None = None,
        fallback: Fallback = Fallback.VALID,
    ) -> bool:
        """判断 value 在 time 处是否与回归一致。

        Args:
            value: 待校验的观测值。
            time: 观测时间。
            tolerance: 临时容差；None 表示使用 tracker 自身的容差（不会修改 self.tolerance）。
            fallback: 没有回归时的判定方式。
        """

        tol = self.tolerance if tolerance is None else tolerance
        f = self.regression
        if f is not None:
            return tol.admits(f.at(time), value)

        if fallback is Fallback.VALID:
            return True
        if fallback is Fallback.INVALID:
            return False

        last = self.last_value
        if last is None:
            return False
        return tol.admits(last, value)


class ConstantTracker(PolyTracker):
    """常数（均值）tracker。

    说明：
        只关心数值本身，时间用一个内部计数器代替。
    """

    def __init__(
        self,
        *,
        tolerance: Tolerance = Tolerance.absolute(0.0),
        max_data_points: int = 50,
        tolerance_points: int = 1,
    ) -> None:
        super().__init__(
            0,
            tolerance=tolerance,
            max_data_points=max_data_points,
            tolerance_points=tolerance_points,
        )
        self._counter = 0.0

    def add_value(self, value: float) -> None:
        self.add(value, self._counter)
        self._counter += 1.0

    def is_value_valid(
        self,
        value: float,
        *,
        tolerance: Tolerance | None = None,
        fallback: Fallback = Fallback.VALID,
    ) -> bool:
        return self.is_valid(value, self._counter, tolerance=tolerance, fallback=fallback)

    @property
    def average(self) -> float | None:
        f = self.regression
        return None if f is None else f.intercept

    @property
    def variance(self) -> float | None:
        avg = self.average
        if avg is None:
            return None
        return float(np.mean((np.asarray(self.values, dtype=float) - avg) ** 2))


class PreliminaryTracker(ConstantTracker):
    """带“临时值”的均值 tracker。

    说明：
        最新的一个值可以标记为临时（preliminary）：在被确认（finalize）之前可以被替换或删除。
        典型用途：分段 tracker 在当前段仍在增长时不断刷新该段的估计值，段结束时再确认。
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._last_is_preliminary = False

    @property
    def has_preliminary_value(self) -> bool:
        return self._last_is_preliminary

    def add_final(self, value: float) -> None:
        self.finalize_preliminary()
        self.add_value(value)

    def add_preliminary(self, value: float) -> None:
        self.finalize_preliminary()
        self.add_value(value)
        self._last_is_preliminary = True

    def finalize_preliminary(self) -> None:
        self._last_is_preliminary = False

    def remove_preliminary(self) -> None:
        if self._last_is_preliminary:
            self.remove_last()
            self._counter -= 1.0
        self._last_is_preliminary = False

    def update_preliminary_if_valid(self, value: float) -> bool:
        """替换临时值；新值不满足容差时仅清除旧的临时值。

        Returns:
            新值是否被写入。
        """

        self.remove_preliminary()
        if self.is_value_valid(value):
            self.add_preliminary(value)
            return True
        return False

    @property
    def best_estimate(self) -> float | None:
        """均值；点数不足时退化为最新值。"""

        avg = self.average
        return avg if avg is not None else self.last_value


class LinearTracker(PolyTracker):
    """一次回归 tracker。"""

    def __init__(
        self,
        *,
        tolerance: Tolerance,
        max_data_points: int = 500,
        tolerance_points: int = 1,
    ) -> None:
        super().__init__(
            1,
            tolerance=tolerance,
            max_data_points=max_data_points,
            tolerance_points=tolerance_points,
        )

    @property
    def slope(self) -> float | None:
        f = self.regression
        return None if f is None else f.slope

    @property
    def intercept(self) -> float | None:
        f = self.regression
        return None if f is None else f.intercept


class ParabolaTracker(PolyTracker):
    """二次回归 tracker。"""

    def __init__(
        self,
        *,
        tolerance: Tolerance,
        max_data_points: int = 500,
        tolerance_points: int = 1,
    ) -> None:
        super().__init__(
            2,
            tolerance=tolerance,
            max_data_points=max_data_points,
            tolerance_points=tolerance_points,
        )


class AngularWrapper:
    """把取值在 [0, 2π) 的角度 tracker 展开（linearify）到实数轴上。

    说明：
        新角度会被平移若干个 2π，使其最接近 tracker 当前的预测值
        （有回归时用回归值，否则用最新值；都没有时原样返回）。
    """

    def __init__(self, tracker: PolyTracker) -> None:
        self.tracker = tracker

    @property
    def regression(self) -> Polynomial | None:
        return self.tracker.regression

    @property
    def values(self) -> list[float]:
        return self.tracker.values

    @property
    def times(self) -> list[float]:
        return self.tracker.times

    @property
    def count(self) -> int:
        return self.tracker.count

    def linearify(self, value: float, time: float) -> float:
        f = self.tracker.regression
        guess = f.at(time) if f is not None else self.tracker.last_value
        if guess is None:
            return float(value)

        rotations = math.floor((guess - value + math.pi) / (2.0 * math.pi))
        return float(value + rotations * 2.0 * math.pi)

    def add(self, value: float, time: float) -> None:
        self.tracker.add(self.linearify(value, time), time)

    def is_valid(
        self,
        value: float,
        time: float,
        *,
        tolerance: Tolerance | None = None,
        fallback: Fallback = Fallback.VALID,
    ) -> bool:
        return self.tracker.is_valid(
            self.linearify(value, time),
            time,
            tolerance=tolerance,
            fallback=fallback,
        )
