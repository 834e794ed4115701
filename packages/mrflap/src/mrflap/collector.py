"""逐帧把测量结果写入 GameModel，并完成柱子匹配。"""

from __future__ import annotations

import logging
import time
from typing import Callable

from gamekit.logging_utils import LogDamper, default_logger
from gamekit.trackers import Fallback

from mrflap.model import GameModel
from mrflap.types import AnalysisResult, BarMeasurement


class GameModelCollector:
    """每帧一次：玩家更新、柱子匹配、柱子更新、孤儿移除。

    匹配规则：
        对每个柱子测量，找出角度 tracker（经过 linearify）接受该角度的已有柱子
        （没有回归时与最近一次角度比较）：
            - 0 个：新柱子（APPEARING）；
            - 1 个：直接配对；
            - 多个：配对给观测数最多的柱子。

    说明：
        - 柱子的 tracker 以玩家的线性化角度为横坐标（而非帧时间），帧时间的抖动不会影响柱子。
        - 完整性检查失败的实体保持不变，只输出一条限频的 warning。
        - 孤儿柱子会被移除，每个柱子恰好触发一次 `bar_removed`。
    """

    def __init__(
        self,
        model: GameModel,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.model = model
        self._logger = logger or default_logger("mrflap")

        interval = model.cfg.failure_log_interval
        self._player_damper = LogDamper(interval, clock=clock or time.monotonic)
        self._bar_damper = LogDamper(interval, clock=clock or time.monotonic)

    def accept(self, result: AnalysisResult, time: float) -> bool:
        """写入一帧。

        Returns:
            玩家数据是否通过完整性检查。为 False 时本帧的柱子数据被整体丢弃。
        """

        player = self.model.player
        error = player.integrity_check(result.player, time)
        if error is not None:
            self._player_damper.log(
                self._logger, logging.WARNING, "玩家完整性检查失败：%s (t=%.3f)", error.value, time
            )
            return False

        self._player_damper.reset()
        player.update(result.player, time)
        player_angle = player.angle.linearify(result.player.angle, time)

        bars = self.model.bars
        for course in bars.values():
            course.orphanage.new_frame()

        unmatched: list[BarMeasurement] = []
        for measurement in result.bars:
            handle = self._match(measurement, player_angle)
            if handle is None:
                unmatched.append(measurement)
                continue

            course = bars[handle]
            bar_error = course.integrity_check(measurement, player_angle)
            if bar_error is None:
                course.update(measurement, player_angle)
            else:
                self._bar_damper.log(
                    self._logger,
                    logging.WARNING,
                    "柱子完整性检查失败：handle=%d %s (t=%.3f)",
                    handle,
                    bar_error.value,
                    time,
                )

        for measurement in unmatched:
            handle = self.model.add_bar()
            self.model.bar(handle).update(measurement, player_angle)  # type: ignore[union-attr]

        for handle, course in bars.items():
            if course.orphanage.is_orphaned:
                self.model.remove_bar(handle)

        return True

    def _match(self, measurement: BarMeasurement, player_angle: float) -> int | None:
        candidates = [
            (handle, course)
            for handle, course in self.model.bars.items()
            if course.angle.is_valid(measurement.angle, player_angle, fallback=Fallback.USE_LAST_VALUE)
        ]
        if not candidates:
            return None

        # 观测数相同时取句柄最小者。
        handle, _ = max(candidates, key=lambda hc: (hc[1].angle.count, -hc[0]))
        return handle
