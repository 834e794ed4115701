"""mrflap 的配置定义。

说明：
    - 每个关注点一个冻结 dataclass，由 `MrFlapConfig` 聚合。
    - 与游戏区域大小相关的容差以 `*_ratio` 表示（相对 free_space），构造 tracker 时再换算成像素。
    - 非法取值在 `__post_init__` 中直接抛 ValueError，避免带着错误配置跑起来。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


def _require_positive(owner: object, **values: float) -> None:
    for name, v in values.items():
        if not (math.isfinite(float(v)) and float(v) > 0.0):
            raise ValueError(f"{type(owner).__name__}.{name} 必须是正的有限数，实际是：{v}")


@dataclass(frozen=True)
class PlayerTrackingConfig:
    """玩家 tracker 的容差。"""

    # 角度：绝对容差（rad）。
    angle_tolerance: float = 0.07 * math.pi

    # 玩家直径：相对容差。
    size_tolerance: float = 0.2

    # 跳跃段内高度的绝对容差，相对 free_space。
    jump_tolerance_ratio: float = 0.02

    # 重力 / 起跳速度的相对容差。
    jump_value_range_tolerance: float = 0.1

    def __post_init__(self) -> None:
        _require_positive(
            self,
            angle_tolerance=self.angle_tolerance,
            size_tolerance=self.size_tolerance,
            jump_tolerance_ratio=self.jump_tolerance_ratio,
            jump_value_range_tolerance=self.jump_value_range_tolerance,
        )


@dataclass(frozen=True)
class BarTrackingConfig:
    """柱子 tracker 的容差与生命周期参数。"""

    angle_tolerance: float = 0.05 * math.pi
    width_tolerance: float = 0.2
    hole_size_tolerance: float = 0.05

    # 出现阶段开口大小（线性变化）的绝对容差，相对 free_space。
    appearing_hole_size_ratio: float = 0.05

    # 开口中心：段内绝对容差、|斜率| 的相对容差、上下界的绝对容差。
    y_center_tolerance_ratio: float = 0.01
    y_center_slope_tolerance: float = 0.3
    y_center_bounds_ratio: float = 0.05

    # 连续多少帧没有有效更新后移除柱子。
    max_frames_without_update: int = 2

    def __post_init__(self) -> None:
        _require_positive(
            self,
            angle_tolerance=self.angle_tolerance,
            width_tolerance=self.width_tolerance,
            hole_size_tolerance=self.hole_size_tolerance,
            appearing_hole_size_ratio=self.appearing_hole_size_ratio,
            y_center_tolerance_ratio=self.y_center_tolerance_ratio,
            y_center_slope_tolerance=self.y_center_slope_tolerance,
            y_center_bounds_ratio=self.y_center_bounds_ratio,
        )
        if int(self.max_frames_without_update) < 0:
            raise ValueError(f"max_frames_without_update 必须 >= 0，实际是：{self.max_frames_without_update}")


@dataclass(frozen=True)
class PredictionConfig:
    """点击预测参数。时间单位均为秒。"""

    # 空闲时跳跃的相对高度：0 表示尽量低，1 表示尽量高。
    idle_height: float = 0.3

    # 两次点击的最小间隔。
    min_jump_distance: float = 0.2

    # 超过该点击次数就不尝试求解。
    max_taps: int = 5

    # 每帧随机候选数量；全部失败时把最小间隔乘以 relaxation_factor 重试，最多 max_relaxations 次。
    num_tries: int = 1000
    relaxation_factor: float = 0.5
    max_relaxations: int = 3

    # 下一次点击在该时间内时锁定当前方案，不再重新规划。
    lock_duration: float = 0.05

    # 已执行点击的生效时间与跳跃起点相差不超过该值时，视为同一次跳跃。
    tap_overlap_tolerance: float = 0.05

    # 进入时间超过该值的柱子暂不视为障碍。
    obstacle_horizon: float = 2.0

    # 安全评分：期望与开口边界保持 vertical_safety_ratio*开口大小 的竖直距离，
    # 与游戏区域边界保持 playfield_safety_ratio*区域大小 的距离。
    vertical_safety_ratio: float = 0.4
    playfield_safety_ratio: float = 0.2

    # 估计“穿越期间开口范围”时的采样点数。
    corridor_samples: int = 9

    def __post_init__(self) -> None:
        if not (0.0 <= float(self.idle_height) <= 1.0):
            raise ValueError(f"idle_height 必须在 [0, 1] 内，实际是：{self.idle_height}")
        if not (0.0 < float(self.relaxation_factor) < 1.0):
            raise ValueError(f"relaxation_factor 必须在 (0, 1) 内，实际是：{self.relaxation_factor}")
        _require_positive(
            self,
            min_jump_distance=self.min_jump_distance,
            lock_duration=self.lock_duration,
            tap_overlap_tolerance=self.tap_overlap_tolerance,
            obstacle_horizon=self.obstacle_horizon,
            vertical_safety_ratio=self.vertical_safety_ratio,
            playfield_safety_ratio=self.playfield_safety_ratio,
        )
        for name in ("max_taps", "num_tries", "corridor_samples"):
            if int(getattr(self, name)) < 1:
                raise ValueError(f"{name} 必须 >= 1，实际是：{getattr(self, name)}")
        if int(self.max_relaxations) < 0:
            raise ValueError(f"max_relaxations 必须 >= 0，实际是：{self.max_relaxations}")


@dataclass(frozen=True)
class TappingConfig:
    """点击调度与延迟估计。"""

    # 延迟样本的绝对容差（s）。
    delay_tolerance: float = 0.1

    # 还没有测到延迟时使用的值（s）。
    fallback_delay: float = 0.05

    # 保留最近多少次已执行点击（用于推算尚未观测到的跳跃）。
    max_performed_taps: int = 32

    def __post_init__(self) -> None:
        _require_positive(self, delay_tolerance=self.delay_tolerance)
        if not (math.isfinite(float(self.fallback_delay)) and float(self.fallback_delay) >= 0.0):
            raise ValueError(f"fallback_delay 必须是非负有限数，实际是：{self.fallback_delay}")
        if int(self.max_performed_taps) < 1:
            raise ValueError(f"max_performed_taps 必须 >= 1，实际是：{self.max_performed_taps}")


@dataclass(frozen=True)
class MrFlapConfig:
    """mrflap 总配置。"""

    player: PlayerTrackingConfig = field(default_factory=PlayerTrackingConfig)
    bar: BarTrackingConfig = field(default_factory=BarTrackingConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    tapping: TappingConfig = field(default_factory=TappingConfig)

    # 同一类完整性检查失败日志的最小间隔（s）。
    failure_log_interval: float = 1.0
