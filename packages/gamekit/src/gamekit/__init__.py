"""gamekit 包入口。

与具体游戏无关的基础设施：
    - functions：多项式、区间、求根与回归；
    - trackers / composite：带容差准入的回归 tracker 与分段 tracker；
    - monotonicity / orphanage / events：小工具；
    - tapping：点击调度与延迟估计；
    - logging_utils：默认 logger、后台日志、限频日志。
"""

from gamekit.composite import CompositeTracker, JumpTracker, LinearPingPongTracker, Segment
from gamekit.events import Event
from gamekit.functions import (
    Polynomial,
    SimpleRange,
    bisection,
    linear_zero,
    parabola_maximum_in,
    parabola_minimum_in,
    poly_regression,
    solve_polynomial_equals,
    solve_quadratic,
    solve_quadratic_nearest,
)
from gamekit.logging_utils import LogDamper, default_logger, start_background_logging
from gamekit.monotonicity import Direction, MonotonicityChecker
from gamekit.orphanage import OrphanageDetector
from gamekit.tapping import RelativeTap, RelativeTapSequence, TapDelayTracker, TapScheduler
from gamekit.trackers import (
    AngularWrapper,
    ConstantTracker,
    Fallback,
    LinearTracker,
    ParabolaTracker,
    PolyTracker,
    PreliminaryTracker,
    Tolerance,
)

__all__ = [
    "AngularWrapper",
    "bisection",
    "CompositeTracker",
    "ConstantTracker",
    "default_logger",
    "Direction",
    "Event",
    "Fallback",
    "JumpTracker",
    "linear_zero",
    "LinearPingPongTracker",
    "LinearTracker",
    "LogDamper",
    "MonotonicityChecker",
    "OrphanageDetector",
    "parabola_maximum_in",
    "parabola_minimum_in",
    "ParabolaTracker",
    "poly_regression",
    "Polynomial",
    "PolyTracker",
    "PreliminaryTracker",
    "RelativeTap",
    "RelativeTapSequence",
    "Segment",
    "SimpleRange",
    "solve_polynomial_equals",
    "solve_quadratic",
    "solve_quadratic_nearest",
    "start_background_logging",
    "TapDelayTracker",
    "TapScheduler",
    "Tolerance",
]
