"""合成游戏：在没有真实画面的情况下产生逐帧测量，用于集成测试与离线调参。

说明：
    - 时间由模拟自身推进（`step`），不依赖真实时钟；`time` 可以直接作为 time_provider。
    - 点击通过 `tap()` 触发，经过固定的 `delay` 后才真正起跳。
    - 所有测量都叠加独立的高斯噪声（numpy Generator，固定 seed 可复现）。
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from mrflap.types import AnalysisResult, BarMeasurement, PlayerMeasurement, Playfield

_TWO_PI = 2.0 * math.pi


@dataclass
class SimulatedBar:
    """一个匀速转动的柱子，开口中心在 [y_lower, y_upper] 之间往返。"""

    angle: float
    angular_speed: float
    width: float
    hole_size: float
    y_lower: float
    y_upper: float
    y_speed: float
    created_at: float
    appear_duration: float = 0.5

    def angle_at(self, t: float) -> float:
        return (self.angle + self.angular_speed * (t - self.created_at)) % _TWO_PI

    def y_center_at(self, t: float) -> float:
        size = self.y_upper - self.y_lower
        if size <= 0.0 or self.y_speed == 0.0:
            return self.y_lower
        u = (self.y_speed * (t - self.created_at)) % (2.0 * size)
        if u > size:
            u = 2.0 * size - u
        return self.y_lower + u

    def measured_hole_size(self, t: float, free_space: float) -> float:
        """出现阶段开口从 free_space 线性缩小到 hole_size。"""

        progress = (t - self.created_at) / self.appear_duration if self.appear_duration > 0.0 else 1.0
        progress = min(max(progress, 0.0), 1.0)
        return free_space + (self.hole_size - free_space) * progress

    def contains_angle(self, angle: float, t: float, *, radius: float, player_size: float) -> bool:
        half = 0.5 * (self.width + player_size) / radius
        d = (angle - self.angle_at(t) + math.pi) % _TWO_PI - math.pi
        return abs(d) <= half


class GameSimulation:
    """合成的 MrFlap 游戏。

    Args:
        playfield: 游戏区域。
        gravity / jump_velocity: 弹道参数（px/s^2，px/s）。
        player_speed: 玩家角速度（rad/s）。
        player_size: 玩家直径（px）。
        delay: 从 `tap()` 到起跳的延迟（s）。
        noise: 高度类测量的噪声标准差（px）。
        fps: 帧率。
        seed: 随机种子。
    """

    def __init__(
        self,
        playfield: Playfield | None = None,
        *,
        gravity: float = 600.0,
        jump_velocity: float = 300.0,
        player_speed: float = 1.5,
        player_size: float = 20.0,
        start_height: float | None = None,
        delay: float = 0.05,
        noise: float = 0.5,
        fps: float = 60.0,
        seed: int | None = 0,
    ) -> None:
        self.playfield = playfield or Playfield(inner_radius=100.0, full_radius=300.0)
        self.gravity = float(gravity)
        self.jump_velocity = float(jump_velocity)
        self.player_speed = float(player_speed)
        self.player_size = float(player_size)
        self.delay = float(delay)
        self.noise = float(noise)
        self.frame_interval = 1.0 / float(fps)
        self.rng = np.random.default_rng(seed)

        self.time = 0.0
        self.jump_start_time = 0.0
        self.jump_start_height = (
            float(start_height)
            if start_height is not None
            else self.playfield.inner_radius + 0.5 * self.playfield.free_space
        )
        self.bars: list[SimulatedBar] = []

        self.pending_jumps: list[float] = []
        self.jump_times: list[float] = []
        self.touched_floor = False
        self.crashed = False

    # ------------------------------------------------------------------
    # 控制
    # ------------------------------------------------------------------

    def current_time(self) -> float:
        return self.time

    def tap(self) -> None:
        self.pending_jumps.append(self.time + self.delay)

    def add_bar(
        self,
        angle: float,
        *,
        angular_speed: float = 0.0,
        width: float = 30.0,
        hole_size: float = 120.0,
        y_lower: float | None = None,
        y_upper: float | None = None,
        y_speed: float = 0.0,
        appear_duration: float = 0.5,
    ) -> SimulatedBar:
        mid = self.playfield.inner_radius + 0.5 * self.playfield.free_space
        bar = SimulatedBar(
            angle=float(angle) % _TWO_PI,
            angular_speed=float(angular_speed),
            width=float(width),
            hole_size=float(hole_size),
            y_lower=mid if y_lower is None else float(y_lower),
            y_upper=mid if y_upper is None else float(y_upper),
            y_speed=float(y_speed),
            created_at=self.time,
            appear_duration=float(appear_duration),
        )
        self.bars.append(bar)
        return bar

    def remove_bar(self, bar: SimulatedBar) -> None:
        self.bars.remove(bar)

    # ------------------------------------------------------------------
    # 真实状态
    # ------------------------------------------------------------------

    @property
    def floor_height(self) -> float:
        return self.playfield.inner_radius + 0.5 * self.player_size

    def player_height_at(self, t: float) -> float:
        tau = t - self.jump_start_time
        h = self.jump_start_height + self.jump_velocity * tau - 0.5 * self.gravity * tau * tau
        return max(h, self.floor_height)

    def player_angle_at(self, t: float) -> float:
        return (self.player_speed * t) % _TWO_PI

    def _start_due_jumps(self) -> None:
        due = sorted(t for t in self.pending_jumps if t <= self.time)
        self.pending_jumps = [t for t in self.pending_jumps if t > self.time]
        for t in due:
            self.jump_start_height = self.player_height_at(t)
            self.jump_start_time = t
            self.jump_times.append(t)

    def _check_collisions(self) -> None:
        height = self.player_height_at(self.time)
        if height <= self.floor_height:
            self.touched_floor = True

        angle = self.player_angle_at(self.time)
        for bar in self.bars:
            if not bar.contains_angle(angle, self.time, radius=height, player_size=self.player_size):
                continue
            if self.time - bar.created_at < bar.appear_duration:
                continue
            y = bar.y_center_at(self.time)
            half_free = 0.5 * (bar.hole_size - self.player_size)
            if abs(height - y) > half_free:
                self.crashed = True

    # ------------------------------------------------------------------
    # 逐帧
    # ------------------------------------------------------------------

    def step(self) -> tuple[AnalysisResult, float]:
        """推进一帧，返回 (测量结果, 帧时间)。"""

        self.time += self.frame_interval
        self._start_due_jumps()
        self._check_collisions()

        t = self.time
        mid = self.playfield.inner_radius + 0.5 * self.playfield.free_space
        angle_noise = self.noise / mid

        player = PlayerMeasurement(
            angle=float((self.player_angle_at(t) + self.rng.normal(0.0, angle_noise)) % _TWO_PI),
            height=float(self.player_height_at(t) + self.rng.normal(0.0, self.noise)),
            size=float(self.player_size + self.rng.normal(0.0, 0.1 * self.noise)),
        )

        bars = tuple(
            BarMeasurement(
                angle=float((bar.angle_at(t) + self.rng.normal(0.0, angle_noise)) % _TWO_PI),
                width=float(bar.width + self.rng.normal(0.0, 0.1 * self.noise)),
                hole_size=float(
                    bar.measured_hole_size(t, self.playfield.free_space) + self.rng.normal(0.0, 0.1 * self.noise)
                ),
                y_center=float(bar.y_center_at(t) + self.rng.normal(0.0, self.noise)),
            )
            for bar in self.bars
        )
        return AnalysisResult(player=player, bars=bars), t
