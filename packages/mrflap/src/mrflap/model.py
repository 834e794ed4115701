"""游戏模型：玩家 + 柱子集合。"""

from __future__ import annotations

import logging

from gamekit.events import Event
from gamekit.logging_utils import default_logger

from mrflap.configs import MrFlapConfig
from mrflap.courses import BarCourse, PlayerCourse
from mrflap.types import Playfield


class GameModel:
    """持有全部实体 course。

    说明：
        - 柱子以稳定的整数句柄（handle）存放，句柄单调递增、不复用。
        - 模型单向持有 course；course 不反向引用模型。
        - 柱子被移除时触发 `bar_removed(handle)`，下游据此丢弃引用该柱子的缓存方案。
    """

    def __init__(
        self,
        playfield: Playfield,
        cfg: MrFlapConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg or MrFlapConfig()
        self.playfield = playfield
        self._logger = logger or default_logger("mrflap")

        self.player = PlayerCourse(playfield, self.cfg.player, logger=self._logger)
        self._bars: dict[int, BarCourse] = {}
        self._next_handle = 0

        self.bar_removed = Event()

    @property
    def bars(self) -> dict[int, BarCourse]:
        """handle -> BarCourse 的只读快照（按 handle 升序）。"""

        return dict(sorted(self._bars.items()))

    def bar(self, handle: int) -> BarCourse | None:
        return self._bars.get(handle)

    def add_bar(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._bars[handle] = BarCourse(self.playfield, self.cfg.bar, logger=self._logger)
        return handle

    def remove_bar(self, handle: int) -> None:
        if self._bars.pop(handle, None) is None:
            raise KeyError(f"未知的柱子句柄：{handle}")
        self._logger.debug("GameModel: 移除柱子 handle=%d", handle)
        self.bar_removed.trigger(handle)
