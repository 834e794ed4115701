"""逐帧的点击预测：模型 -> 预测帧 -> 策略 -> 调度。"""

from __future__ import annotations

import logging

import numpy as np

from gamekit.logging_utils import default_logger
from gamekit.tapping import RelativeTapSequence, TapScheduler

from mrflap.configs import PredictionConfig, TappingConfig
from mrflap.model import GameModel
from mrflap.prediction.models import PredictionFrame
from mrflap.prediction.solution import Solution
from mrflap.prediction.strategies import IdleStrategy, RandomizedSearchStrategy, SolutionStrategy


class TapPredictor:
    """每帧调用一次 `predict`。

    流程：
        1. 当前序列处于锁定状态时不重新规划。
        2. 用当前延迟估计构造预测帧；数据不足时跳过本帧。
        3. 按优先级选择第一个 can_solve 的策略求解。
        4. 有新方案时取消旧的调度，把方案作为点击序列安排在 `current_time + 相对时间`；
           没有方案时保留已有调度。

    锁定：
        序列的 unlock_duration 到期前，下一次尚未执行的点击在 lock_duration 之内时锁定；
        序列中的点击都已执行时也锁定，直到 unlock_duration 到期。

    说明：
        - 玩家跳跃 tracker 开启新段（检测到一次跳跃）时通知延迟 tracker；
          跳跃起点被细化时同步细化检测时间。
        - 柱子被移除时丢弃引用它的 warm start。
    """

    def __init__(
        self,
        model: GameModel,
        scheduler: TapScheduler,
        cfg: PredictionConfig | None = None,
        tapping: TappingConfig | None = None,
        *,
        rng: np.random.Generator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.model = model
        self.scheduler = scheduler
        self.cfg = cfg or PredictionConfig()
        self.tapping = tapping or TappingConfig()
        self._logger = logger or default_logger("mrflap")

        self.randomized = RandomizedSearchStrategy(self.cfg, rng=rng, logger=self._logger)
        self.strategies: list[SolutionStrategy] = [IdleStrategy(self.cfg), self.randomized]

        self.last_frame: PredictionFrame | None = None
        self.last_solution: Solution | None = None

        self.tap_sequence: RelativeTapSequence | None = None
        self.reference_time: float | None = None

        height = model.player.height
        height.advanced_to_next_segment.subscribe(self._jump_detected)
        height.updated_supposed_start_time.subscribe(self._jump_start_refined)
        model.bar_removed.subscribe(self.randomized.invalidate)

    @property
    def delay(self) -> float:
        measured = self.scheduler.delay
        return self.tapping.fallback_delay if measured is None else measured

    def is_locked(self, current_time: float) -> bool:
        sequence, reference = self.tap_sequence, self.reference_time
        if sequence is None or reference is None:
            return False

        unlock = sequence.unlock_duration
        if unlock is not None and reference + unlock <= current_time:
            self.tap_sequence = None
            self.reference_time = None
            return False

        pending = self.scheduler.scheduled_tap_times
        if not pending:
            # 序列已执行完：等待 unlock_duration 到期。
            return unlock is not None
        return pending[0] - current_time < self.cfg.lock_duration

    def reschedule(self, sequence: RelativeTapSequence, reference_time: float) -> None:
        """用新序列替换当前调度。"""

        self.scheduler.unschedule_all()
        self.tap_sequence = sequence
        self.reference_time = float(reference_time)
        self.scheduler.schedule_sequence(sequence, reference_time)

    def remove_scheduled_taps(self) -> None:
        self.scheduler.unschedule_all()
        self.tap_sequence = None
        self.reference_time = None

    def predict(self, current_time: float) -> Solution | None:
        """为本帧规划点击。

        Returns:
            本帧采用的方案；锁定、数据不足或无解时返回 None，此时已有调度保持不变。
        """

        if self.is_locked(current_time):
            return None

        frame = PredictionFrame.from_model(
            self.model,
            performed_tap_times=self.scheduler.performed_tap_times,
            delay=self.delay,
            current_time=current_time,
            cfg=self.cfg,
        )
        self.last_frame = frame
        if frame is None:
            return None

        solution: Solution | None = None
        for strategy in self.strategies:
            if strategy.can_solve(frame):
                solution = strategy.solution(frame)
                break

        if solution is None:
            self._logger.debug("TapPredictor: t=%.3f 无可行方案，保留已有调度", current_time)
            return None

        self.last_solution = solution
        self.reschedule(solution.as_tap_sequence(), current_time)
        return solution

    # ------------------------------------------------------------------

    def _jump_detected(self, time: float) -> None:
        if not self.scheduler.delay_tracker.tap_detected(time):
            self._logger.debug("TapPredictor: t=%.3f 检测到跳跃，但没有对应的已执行点击", time)

    def _jump_start_refined(self, time: float | None) -> None:
        if time is not None:
            self.scheduler.delay_tracker.refine_last_tap_detection_time(time)
