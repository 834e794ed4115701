"""mrflap 的逐帧入口：把模型收集、点击预测与调度串起来。"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from gamekit.logging_utils import default_logger
from gamekit.tapping import TapScheduler, TimerFactory
from gamekit.trackers import Tolerance

from mrflap.collector import GameModelCollector
from mrflap.configs import MrFlapConfig
from mrflap.model import GameModel
from mrflap.prediction import Solution, TapPredictor
from mrflap.types import AnalysisResult, Playfield


class MrFlap:
    """一局游戏。

    Args:
        playfield: 游戏区域。
        tapper: 执行点击的回调（外部输入层）。
        time_provider: 当前时间；必须与帧时间使用同一时钟。
        cfg: 总配置。
        timer_factory: 计时器工厂；None 表示使用 `threading.Timer`。
        rng: 随机搜索使用的随机数生成器。

    说明：
        `process` 必须在单个帧循环线程里按时间顺序调用；点击在计时器线程上执行。
    """

    def __init__(
        self,
        playfield: Playfield,
        *,
        tapper: Callable[[], None],
        time_provider: Callable[[], float],
        cfg: MrFlapConfig | None = None,
        timer_factory: TimerFactory | None = None,
        rng: np.random.Generator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg or MrFlapConfig()
        self._logger = logger or default_logger("mrflap")

        self.model = GameModel(playfield, self.cfg, logger=self._logger)
        self.collector = GameModelCollector(self.model, logger=self._logger)

        scheduler_kwargs = {} if timer_factory is None else {"timer_factory": timer_factory}
        self.scheduler = TapScheduler(
            tapper,
            time_provider,
            delay_tolerance=Tolerance.absolute(self.cfg.tapping.delay_tolerance),
            max_performed=self.cfg.tapping.max_performed_taps,
            logger=self._logger,
            **scheduler_kwargs,
        )
        self.predictor = TapPredictor(
            self.model,
            self.scheduler,
            self.cfg.prediction,
            self.cfg.tapping,
            rng=rng,
            logger=self._logger,
        )

    def process(self, result: AnalysisResult, time: float) -> Solution | None:
        """处理一帧；玩家数据不可用时不做预测。"""

        if not self.collector.accept(result, time):
            return None
        return self.predictor.predict(time)

    def stop(self) -> None:
        self.predictor.remove_scheduled_taps()
