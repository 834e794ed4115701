"""gamekit 相关的日志工具。

说明：
    gamekit 作为轻依赖模块，不强制要求外部提供特定的日志框架。
    这里提供一个“可用即可”的默认 logger，避免在脚本/单测环境中出现
    无 handler 导致的静默。

    帧循环是单线程的，不能被日志 IO 阻塞：需要时可以用
    `start_background_logging` 把 handler 的实际输出挪到后台线程。
"""

from __future__ import annotations

import logging
import logging.handlers
import queue
import time
from typing import Callable

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def default_logger(name: str = "gamekit") -> logging.Logger:
    """获取默认 logger。

    Args:
        name: logger 名称（例如 "gamekit"、"mrflap"）。

    Returns:
        标准库 `logging.Logger` 实例。
    """

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def start_background_logging(logger: logging.Logger) -> logging.handlers.QueueListener:
    """把 logger 现有的 handler 挪到后台线程执行。

    说明：
        - logger 上只保留一个 QueueHandler，调用方线程只负责入队。
        - 返回已启动的 QueueListener；退出前调用 `listener.stop()` 以刷新队列。
    """

    q: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    handlers = list(logger.handlers)
    for h in handlers:
        logger.removeHandler(h)

    logger.addHandler(logging.handlers.QueueHandler(q))
    listener = logging.handlers.QueueListener(q, *handlers, respect_handler_level=True)
    listener.start()
    return listener


class LogDamper:
    """限制同一类日志的输出频率。

    说明：
        两次输出之间至少间隔 `interval` 秒，期间到来的消息直接丢弃（只计数）。
        `reset()` 之后的下一条消息会立即输出。
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = float(interval)
        self._clock = clock
        self._last: float | None = None
        self.suppressed = 0

    def reset(self) -> None:
        self._last = None

    def log(self, logger: logging.Logger, level: int, msg: str, *args: object) -> bool:
        """尝试输出一条日志；返回是否真的输出了。"""

        now = float(self._clock())
        if self._last is not None and now - self._last < self.interval:
            self.suppressed += 1
            return False

        if self.suppressed:
            msg = f"{msg} (suppressed={self.suppressed})"
            self.suppressed = 0
        self._last = now
        logger.log(level, msg, *args)
        return True
