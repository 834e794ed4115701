"""预测帧（PredictionFrame）及其物理模型。

时间约定：
    - 预测帧内的时间都是相对时间，0 对应 `frame_time = current_time + delay`，
      即“现在发出的点击最早能够生效的时刻”。
    - 所以相对时间 r 处的点击应当在真实时间 `current_time + r` 发出。

说明：
    - 所有模型都是不可变快照，每帧重新构造。
    - 为了简化计算，玩家被看作一个点：游戏区域与柱子开口都按玩家直径收缩。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from gamekit.composite import JumpTracker
from gamekit.functions import Polynomial, SimpleRange

from mrflap.configs import PredictionConfig
from mrflap.courses import BarCourse, BarState, PlayerCourse
from mrflap.model import GameModel
from mrflap.types import Playfield

_TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class JumpingProperties:
    """跳跃的弹道参数：每次点击把竖直速度设为 jump_velocity，之后以 gravity 减速。"""

    gravity: float
    jump_velocity: float

    @classmethod
    def from_tracker(cls, tracker: JumpTracker) -> JumpingProperties | None:
        g, v = tracker.gravity, tracker.jump_velocity
        if g is None or v is None or g <= 0.0 or v <= 0.0:
            return None
        return cls(gravity=float(g), jump_velocity=float(v))

    @property
    def parabola(self) -> Polynomial:
        """起跳后的高度增量 f(t)，f(0)=0。"""

        return Polynomial.parabola(-0.5 * self.gravity, self.jump_velocity, 0.0)

    @property
    def jump_height(self) -> float:
        return self.jump_velocity**2 / (2.0 * self.gravity)

    @property
    def horizontal_jump_length(self) -> float:
        """从起跳到回落到起跳高度所需的时间。"""

        return 2.0 * self.jump_velocity / self.gravity


@dataclass(frozen=True)
class PlayfieldProperties:
    """按玩家直径收缩后的可活动高度范围。"""

    lower_radius: float
    upper_radius: float

    @classmethod
    def from_playfield(cls, playfield: Playfield, player_size: float) -> PlayfieldProperties:
        return cls(
            lower_radius=playfield.inner_radius + 0.5 * player_size,
            upper_radius=playfield.full_radius - 0.5 * player_size,
        )

    @property
    def size(self) -> float:
        return self.upper_radius - self.lower_radius

    @property
    def range(self) -> SimpleRange:
        return SimpleRange(self.lower_radius, self.upper_radius)


@dataclass(frozen=True)
class PlayerProperties:
    """预测帧开始时刻（相对时间 0）的玩家状态。

    属性:
        time_passed_since_jump_start: 当前这次跳跃已经经过的时间（>= 0）。
        jump_start_height: 当前这次跳跃的起跳高度。
        current_height: 相对时间 0 处的高度。
        x_position: 相对时间 0 处的角度（rad，[0, 2π)）。
        x_speed: 角速度（rad/s）。
    """

    time_passed_since_jump_start: float
    jump_start_height: float
    current_height: float
    x_position: float
    x_speed: float

    @classmethod
    def from_course(
        cls,
        course: PlayerCourse,
        jumping: JumpingProperties,
        *,
        performed_tap_times: Sequence[float],
        delay: float,
        frame_time: float,
        overlap_tolerance: float,
    ) -> PlayerProperties | None:
        """从玩家 course 构造。

        说明：
            跳跃 tracker 只知道已经被观测到的跳跃。已经执行、但生效时间（执行时间 + delay）
            晚于最近跳跃起点的点击，会在这里按弹道模型继续推进。
        """

        angle = course.angle.regression
        start = course.height.latest_jump_start()
        if angle is None or start is None:
            return None

        start_time, start_height = start
        parabola = jumping.parabola
        for tap in sorted(performed_tap_times):
            effect = tap + delay
            if effect <= start_time + overlap_tolerance or effect > frame_time:
                continue
            start_height = start_height + parabola.at(effect - start_time)
            start_time = effect

        passed = frame_time - start_time
        return cls(
            time_passed_since_jump_start=passed,
            jump_start_height=start_height,
            current_height=start_height + parabola.at(passed),
            x_position=angle.at(frame_time) % _TWO_PI,
            x_speed=angle.slope,
        )


@dataclass(frozen=True)
class BarProperties:
    """一个柱子在预测帧内的属性。

    属性:
        handle: 柱子在 GameModel 中的句柄。
        angular_width: 柱子宽度加上玩家直径后对应的角宽度（在游戏区域下界处计算，偏保守）。
        hole_size: 开口大小减去玩家直径。
        x_speed: 角速度（rad/s）。
        x_position: 相对时间 0 处的角度（rad，[0, 2π)）。
        y_center: 相对时间 -> 开口中心高度。

    说明：
        柱子的 tracker 以玩家的线性化角度为横坐标；`player_angle`（帧时间 -> 玩家角度）
        把帧时间换算到该坐标上。
    """

    handle: int
    angular_width: float
    hole_size: float
    x_speed: float
    x_position: float
    y_center: Callable[[float], float]

    @classmethod
    def from_course(
        cls,
        handle: int,
        course: BarCourse,
        *,
        playfield: Playfield,
        player_size: float,
        player_angle: Polynomial,
        frame_time: float,
    ) -> BarProperties | None:
        """柱子还在出现阶段或缺少数据时返回 None（暂不视为障碍）。"""

        if course.state is not BarState.NORMAL:
            return None

        angle = course.angle.regression
        width = course.width.average
        hole = course.best_hole_size
        now = player_angle.at(frame_time)
        y_now = course.y_center_at(now)
        if angle is None or width is None or hole is None or y_now is None:
            return None

        lower = playfield.inner_radius + 0.5 * player_size
        hole_size = hole - player_size
        lo = playfield.inner_radius + 0.5 * hole
        hi = playfield.full_radius - 0.5 * hole

        def y_center(t: float) -> float:
            y = course.y_center_at(player_angle.at(frame_time + t))
            if y is None:
                y = y_now
            return min(max(y, lo), hi)

        return cls(
            handle=handle,
            angular_width=(width + player_size) / lower,
            hole_size=hole_size,
            x_speed=angle.slope * player_angle.slope,
            x_position=angle.at(now) % _TWO_PI,
            y_center=y_center,
        )

    def hole_at(self, t: float) -> SimpleRange:
        y = self.y_center(t)
        return SimpleRange(y - 0.5 * self.hole_size, y + 0.5 * self.hole_size)


@dataclass(frozen=True)
class PlayerBarInteraction:
    """玩家与一个柱子的相遇。

    属性:
        handle: 柱子句柄。
        distance: 沿相对运动方向，从玩家到柱子的有符号角距离；
            玩家正在穿越柱子时为负（>= -angular_width/2）。
        enter_time / leave_time: 玩家进入 / 离开柱子的相对时间。
        hole: 穿越期间始终可以通过的高度范围（各时刻开口的交集）。
    """

    handle: int
    distance: float
    enter_time: float
    leave_time: float
    hole: SimpleRange

    @classmethod
    def between(
        cls,
        player: PlayerProperties,
        bar: BarProperties,
        *,
        samples: int = 9,
    ) -> PlayerBarInteraction | None:
        relative_speed = player.x_speed - bar.x_speed
        if relative_speed == 0.0:
            return None

        direction = 1.0 if relative_speed > 0.0 else -1.0
        half = 0.5 * bar.angular_width
        distance = ((bar.x_position - player.x_position) * direction + half) % _TWO_PI - half

        speed = abs(relative_speed)
        enter = (distance - half) / speed
        leave = (distance + half) / speed

        holes = [bar.hole_at(float(t)) for t in np.linspace(enter, leave, max(2, int(samples)))]
        corridor = SimpleRange(max(h.lower for h in holes), min(h.upper for h in holes))

        return cls(
            handle=bar.handle,
            distance=distance,
            enter_time=enter,
            leave_time=leave,
            hole=corridor,
        )


@dataclass(frozen=True)
class PredictionFrame:
    """一帧预测所需的全部信息。

    属性:
        frame_time: 相对时间 0 对应的绝对时间。
        next_bar: 下一个障碍；没有障碍（或都在 obstacle_horizon 之外）时为 None。
        bars: 所有可用柱子的相遇信息，按距离排序。
    """

    frame_time: float
    jumping: JumpingProperties
    player: PlayerProperties
    playfield: PlayfieldProperties
    next_bar: PlayerBarInteraction | None = None
    bars: tuple[PlayerBarInteraction, ...] = ()

    @classmethod
    def from_model(
        cls,
        model: GameModel,
        *,
        performed_tap_times: Sequence[float],
        delay: float,
        current_time: float,
        cfg: PredictionConfig,
    ) -> PredictionFrame | None:
        """从模型构造预测帧；玩家相关的任何回归缺失时返回 None。"""

        player_course = model.player
        jumping = JumpingProperties.from_tracker(player_course.height)
        player_size = player_course.size.average
        if jumping is None or player_size is None:
            return None

        frame_time = current_time + delay
        player = PlayerProperties.from_course(
            player_course,
            jumping,
            performed_tap_times=performed_tap_times,
            delay=delay,
            frame_time=frame_time,
            overlap_tolerance=cfg.tap_overlap_tolerance,
        )
        if player is None:
            return None
        player_angle = player_course.angle.regression
        if player_angle is None:
            return None

        interactions: list[PlayerBarInteraction] = []
        for handle, course in model.bars.items():
            bar = BarProperties.from_course(
                handle,
                course,
                playfield=model.playfield,
                player_size=player_size,
                player_angle=player_angle,
                frame_time=frame_time,
            )
            if bar is None:
                continue
            interaction = PlayerBarInteraction.between(player, bar, samples=cfg.corridor_samples)
            if interaction is not None:
                interactions.append(interaction)

        interactions.sort(key=lambda i: (i.distance, i.handle))
        upcoming = [i for i in interactions if i.enter_time <= cfg.obstacle_horizon]

        return cls(
            frame_time=frame_time,
            jumping=jumping,
            player=player,
            playfield=PlayfieldProperties.from_playfield(model.playfield, player_size),
            next_bar=upcoming[0] if upcoming else None,
            bars=tuple(interactions),
        )
