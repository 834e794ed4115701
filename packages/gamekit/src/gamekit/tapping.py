"""点击（tap）的调度与延迟估计。

说明：
    - `TapDelayTracker` 把“执行点击的时间”与“在画面中检测到点击效果的时间”配对，
      估计输入+输出的总延迟。
    - `TapScheduler` 在未来某个绝对时间执行点击。点击在独立的计时器线程上执行，
      只修改调度器自身（加锁保护）的状态，不触碰 tracker/模型状态。

线程模型：
    帧循环（单线程）负责调度/取消；计时器线程只负责执行点击并记录执行时间。
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Protocol

from gamekit.events import Event
from gamekit.logging_utils import default_logger
from gamekit.trackers import PreliminaryTracker, Tolerance


class _Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], _Timer]


def _thread_timer(interval: float, fn: Callable[[], None]) -> _Timer:
    t = threading.Timer(interval, fn)
    t.daemon = True
    return t


class TapDelayTracker:
    """估计从执行点击到检测到点击效果之间的平均延迟。

    说明：
        - `tap_performed` 记录执行时间（计时器线程调用）。
        - `tap_detected` 把最早一个尚未配对的执行时间与检测时间配对，得到一个延迟样本。
        - 最新样本先作为临时值写入，检测时间被细化（`refine_last_tap_detection_time`）时替换。
    """

    def __init__(self, tolerance: Tolerance, *, max_pending: int = 32) -> None:
        self.tracker = PreliminaryTracker(tolerance=tolerance, tolerance_points=0)
        self._performed: deque[float] = deque(maxlen=max_pending)
        self._latest_tap_time: float | None = None
        self._lock = threading.Lock()

    @property
    def delay(self) -> float | None:
        with self._lock:
            return self.tracker.average

    @property
    def variance(self) -> float | None:
        with self._lock:
            return self.tracker.variance

    @property
    def pending_taps(self) -> int:
        with self._lock:
            return len(self._performed)

    def tap_performed(self, time: float) -> None:
        with self._lock:
            self._performed.append(float(time))

    def tap_detected(self, time: float) -> bool:
        """检测到一次点击效果。

        Returns:
            是否找到了对应的已执行点击。
        """

        with self._lock:
            self.tracker.finalize_preliminary()
            self._latest_tap_time = None
            if not self._performed:
                return False

            self._latest_tap_time = self._performed.popleft()
            self.tracker.update_preliminary_if_valid(float(time) - self._latest_tap_time)
            return True

    def refine_last_tap_detection_time(self, time: float) -> None:
        with self._lock:
            if self._latest_tap_time is None:
                return
            self.tracker.update_preliminary_if_valid(float(time) - self._latest_tap_time)


@dataclass(frozen=True)
class RelativeTap:
    """相对某个（未指定的）参考时间的点击；relative_time 可以为负。"""

    relative_time: float


@dataclass
class RelativeTapSequence:
    """相对参考时间的点击序列。

    Attributes:
        taps: 按 relative_time 升序排列的点击。
        unlock_duration: 序列完成（锁释放）所需时间；None 表示不加锁。
    """

    taps: list[RelativeTap] = field(default_factory=list)
    unlock_duration: float | None = None

    def __post_init__(self) -> None:
        self.taps = sorted(self.taps, key=lambda t: t.relative_time)

    @property
    def next_tap(self) -> RelativeTap | None:
        return self.taps[0] if self.taps else None

    def remove(self, tap: RelativeTap) -> None:
        self.taps = [t for t in self.taps if t is not tap]

    def shifted(self, by: float) -> RelativeTapSequence | None:
        """把序列平移到 `by` 秒之后的参考时间；已经过去的点击被丢弃。

        Returns:
            平移后的序列；若整个序列已经结束（by 超过 unlock_duration）返回 None。
        """

        if self.unlock_duration is not None and self.unlock_duration < by:
            return None
        taps = [RelativeTap(t.relative_time - by) for t in self.taps if t.relative_time >= by]
        unlock = None if self.unlock_duration is None else self.unlock_duration - by
        return RelativeTapSequence(taps, unlock)


class TapScheduler:
    """在未来的绝对时间执行点击。

    Args:
        tapper: 真正执行点击的回调（外部输入层）。
        time_provider: 返回当前时间（秒）的回调。
        delay_tolerance: 延迟 tracker 的容差。
        timer_factory: 计时器工厂，签名同 `threading.Timer(interval, fn)`；测试可注入手动计时器。
        max_performed: 只保留最近这么多次已执行点击，更早的对预测已经没有影响。
    """

    def __init__(
        self,
        tapper: Callable[[], None],
        time_provider: Callable[[], float],
        *,
        delay_tolerance: Tolerance,
        timer_factory: TimerFactory = _thread_timer,
        max_performed: int = 32,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tapper = tapper
        self._time = time_provider
        self._timer_factory = timer_factory
        self._logger = logger or default_logger()

        self.delay_tracker = TapDelayTracker(delay_tolerance, max_pending=max_performed)
        self.tap_performed = Event()

        self._lock = threading.Lock()
        self._timers: dict[int, tuple[float, _Timer]] = {}
        self._next_id = 0
        self._performed: deque[float] = deque(maxlen=max_performed)

    @property
    def delay(self) -> float | None:
        return self.delay_tracker.delay

    @property
    def scheduled_tap_times(self) -> list[float]:
        with self._lock:
            return sorted(t for t, _ in self._timers.values())

    @property
    def performed_tap_times(self) -> list[float]:
        with self._lock:
            return list(self._performed)

    def expected_detection_times(self, before: float | None = None) -> list[float]:
        """所有已执行与已调度点击的预期检测时间（执行时间 + 延迟）。

        Returns:
            升序列表；延迟未知时返回空列表。
        """

        delay = self.delay
        if delay is None:
            return []
        with self._lock:
            times = [*self._performed, *(t for t, _ in self._timers.values())]
        out = sorted(t + delay for t in times)
        if before is not None:
            out = [t for t in out if t < before]
        return out

    def tap_now(self) -> None:
        self._perform(None)

    def schedule(self, absolute_time: float) -> None:
        """在绝对时间 absolute_time 执行一次点击。"""

        distance = float(absolute_time) - float(self._time())
        if distance < 0.0:
            self._logger.warning("TapScheduler: 调度时间已过去（%.4fs），将立即执行", distance)

        with self._lock:
            tap_id = self._next_id
            self._next_id += 1
            timer = self._timer_factory(max(0.0, distance), lambda: self._perform(tap_id))
            self._timers[tap_id] = (float(absolute_time), timer)
        timer.start()

    def schedule_sequence(self, sequence: RelativeTapSequence, reference_time: float) -> None:
        for tap in sequence.taps:
            self.schedule(reference_time + tap.relative_time)

    def unschedule_all(self) -> None:
        with self._lock:
            timers = [timer for _, timer in self._timers.values()]
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _perform(self, tap_id: int | None) -> None:
        with self._lock:
            if tap_id is not None and self._timers.pop(tap_id, None) is None:
                # 已被取消。
                return
            now = float(self._time())
            self._performed.append(now)

        self._tapper()
        self.delay_tracker.tap_performed(now)
        self.tap_performed.trigger(now)
