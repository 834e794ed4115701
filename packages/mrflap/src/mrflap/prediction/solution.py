"""点击方案（Solution）与由方案推导出的跳跃序列。"""

from __future__ import annotations

from dataclasses import dataclass, replace

from gamekit.functions import Polynomial, SimpleRange
from gamekit.tapping import RelativeTap, RelativeTapSequence

from mrflap.prediction.models import JumpingProperties, PlayerProperties


@dataclass(frozen=True)
class Jump:
    """一次跳跃；parabola 以预测帧的相对时间为横坐标，给出绝对高度。"""

    start_time: float
    end_time: float
    start_height: float
    parabola: Polynomial

    @property
    def time_range(self) -> SimpleRange:
        return SimpleRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class Solution:
    """一组相对时间上的点击。

    属性:
        time_until_start: 第一次点击的相对时间；None 表示不点击。
        jump_time_distances: 相邻两次点击的间隔。
        time_until_end: 方案的有效期（相对时间）；None 表示不限。
        rating: 评分，越大越好；<= 0 表示不可行。
    """

    time_until_start: float | None
    jump_time_distances: tuple[float, ...] = ()
    time_until_end: float | None = None
    rating: float = 0.0

    @classmethod
    def from_tap_times(
        cls,
        tap_times: list[float] | tuple[float, ...],
        time_until_end: float | None = None,
        rating: float = 0.0,
    ) -> Solution:
        taps = sorted(float(t) for t in tap_times)
        if not taps:
            return cls(None, (), time_until_end, rating)
        distances = tuple(b - a for a, b in zip(taps, taps[1:]))
        return cls(taps[0], distances, time_until_end, rating)

    @property
    def tap_times(self) -> tuple[float, ...]:
        if self.time_until_start is None:
            return ()
        times = [self.time_until_start]
        for d in self.jump_time_distances:
            times.append(times[-1] + d)
        return tuple(times)

    @property
    def length_of_last_jump(self) -> float | None:
        """最后一次点击到有效期结束之间的时间。"""

        taps = self.tap_times
        if not taps or self.time_until_end is None:
            return None
        return self.time_until_end - taps[-1]

    def with_rating(self, rating: float) -> Solution:
        return replace(self, rating=float(rating))

    def shifted(self, by: float) -> Solution | None:
        """把方案平移到 by 秒之后；已经过去的点击被丢弃。有效期已过时返回 None。"""

        if self.time_until_end is not None and self.time_until_end < by:
            return None
        taps = [t - by for t in self.tap_times if t >= by]
        end = None if self.time_until_end is None else self.time_until_end - by
        return Solution.from_tap_times(taps, end, self.rating)

    def as_tap_sequence(self) -> RelativeTapSequence:
        return RelativeTapSequence([RelativeTap(t) for t in self.tap_times], self.time_until_end)

    # ------------------------------------------------------------------
    # 弹道
    # ------------------------------------------------------------------

    def jumps(self, player: PlayerProperties, jumping: JumpingProperties, until: float) -> list[Jump]:
        """从当前这次跳跃开始，到 until 为止的全部跳跃。

        说明：
            第一个 Jump 是已经在进行中的跳跃（start_time <= 0）；此后每次点击开启一个新 Jump。
        """

        base = jumping.parabola
        start_time = -player.time_passed_since_jump_start
        start_height = player.jump_start_height

        jumps: list[Jump] = []
        for tap in self.tap_times:
            if tap >= until:
                break
            parabola = base.shifted_left(-start_time) + start_height
            jumps.append(Jump(start_time, tap, start_height, parabola))
            start_time, start_height = tap, parabola.at(tap)

        parabola = base.shifted_left(-start_time) + start_height
        jumps.append(Jump(start_time, max(until, start_time), start_height, parabola))
        return jumps

    def height_at(self, t: float, player: PlayerProperties, jumping: JumpingProperties) -> float:
        start_time = -player.time_passed_since_jump_start
        start_height = player.jump_start_height
        base = jumping.parabola

        for tap in self.tap_times:
            if tap > t:
                break
            start_height = start_height + base.at(tap - start_time)
            start_time = tap

        return start_height + base.at(t - start_time)
