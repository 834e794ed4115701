"""实体的轨迹（course）：把一个真实实体的多个 tracker 打包在一起。

说明：
    - 每个 course 对外只有两个操作：`integrity_check`（只读）与 `update`（写入）。
      调用方必须先做完整性检查，检查通过才允许 update。
    - course 不持有 GameModel 的引用；需要的上下文（游戏区域）通过构造参数传入。
"""

from __future__ import annotations

import enum
import logging

from gamekit.composite import JumpTracker, LinearPingPongTracker
from gamekit.logging_utils import default_logger
from gamekit.orphanage import OrphanageDetector
from gamekit.trackers import AngularWrapper, ConstantTracker, LinearTracker, Tolerance

from mrflap.configs import BarTrackingConfig, PlayerTrackingConfig
from mrflap.types import BarMeasurement, PlayerMeasurement, Playfield, UpdateError


class PlayerCourse:
    """玩家：角度（匀速绕圈）、直径（常数）、高度（分段抛物线）。

    说明：
        所有 tracker 都使用帧时间作为横坐标；线性化后的角度同时是柱子 tracker 的横坐标。
    """

    def __init__(
        self,
        playfield: Playfield,
        cfg: PlayerTrackingConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg or PlayerTrackingConfig()
        self.playfield = playfield

        self.angle = AngularWrapper(LinearTracker(tolerance=Tolerance.absolute(self.cfg.angle_tolerance)))
        self.size = ConstantTracker(tolerance=Tolerance.relative(self.cfg.size_tolerance))
        self.height = JumpTracker(
            jump_tolerance=Tolerance.absolute(self.cfg.jump_tolerance_ratio * playfield.free_space),
            relative_value_range_tolerance=self.cfg.jump_value_range_tolerance,
            logger=logger or default_logger("mrflap"),
        )

    def integrity_check(self, player: PlayerMeasurement, time: float) -> UpdateError | None:
        if not self.size.is_value_valid(player.size):
            return UpdateError.WRONG_SIZE
        if not self.angle.is_valid(player.angle, time):
            return UpdateError.WRONG_ANGLE
        if not self.height.integrity_check(player.height, time):
            return UpdateError.WRONG_HEIGHT
        return None

    def update(self, player: PlayerMeasurement, time: float) -> None:
        self.angle.add(player.angle, time)
        self.size.add_value(player.size)
        self.height.add(player.height, time)


class BarState(enum.Enum):
    """柱子状态：APPEARING 只能单向转为 NORMAL。"""

    APPEARING = "appearing"
    NORMAL = "normal"


class BarCourse:
    """柱子：角度、宽度、开口大小与开口中心。

    出现阶段（APPEARING）：
        柱子从内外圆往中间长出，开口大小线性变小，写入 `appearing_hole_size`。
        当某个开口大小不再符合这条直线时，认为柱子已经完全长出，转为 NORMAL，
        此后开口大小写入 `hole_size`，开口中心写入 `y_center`。

    说明：
        方法中的 `time` 是玩家的线性化角度（见 `GameModelCollector`），不是帧时间。
    """

    def __init__(
        self,
        playfield: Playfield,
        cfg: BarTrackingConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg or BarTrackingConfig()
        self.playfield = playfield
        self.state = BarState.APPEARING
        free = playfield.free_space

        self.angle = AngularWrapper(LinearTracker(tolerance=Tolerance.absolute(self.cfg.angle_tolerance)))
        self.width = ConstantTracker(tolerance=Tolerance.relative(self.cfg.width_tolerance))
        self.hole_size = ConstantTracker(tolerance=Tolerance.relative(self.cfg.hole_size_tolerance))
        self.appearing_hole_size = LinearTracker(
            tolerance=Tolerance.absolute(self.cfg.appearing_hole_size_ratio * free),
            tolerance_points=0,
        )
        self.y_center = LinearPingPongTracker(
            tolerance=Tolerance.absolute(self.cfg.y_center_tolerance_ratio * free),
            slope_tolerance=Tolerance.relative(self.cfg.y_center_slope_tolerance),
            bounds_tolerance=Tolerance.absolute(self.cfg.y_center_bounds_ratio * free),
            logger=logger or default_logger("mrflap"),
        )
        self.orphanage = OrphanageDetector(self.cfg.max_frames_without_update)

    def integrity_check(self, bar: BarMeasurement, time: float) -> UpdateError | None:
        """依次检查角度、宽度；NORMAL 状态下再检查开口大小与开口中心。不修改任何状态。"""

        if not self.angle.is_valid(bar.angle, time):
            return UpdateError.WRONG_ANGLE
        if not self.width.is_value_valid(bar.width):
            return UpdateError.WRONG_WIDTH
        if self.state is BarState.NORMAL:
            if not self.hole_size.is_value_valid(bar.hole_size):
                return UpdateError.WRONG_HOLE_SIZE
            if not self.y_center.integrity_check(bar.y_center, time):
                return UpdateError.WRONG_Y_CENTER
        return None

    def update(self, bar: BarMeasurement, time: float) -> None:
        self.orphanage.mark_as_valid()
        self.angle.add(bar.angle, time)
        self.width.add_value(bar.width)

        if self.state is BarState.APPEARING:
            if self.appearing_hole_size.is_valid(bar.hole_size, time):
                self.appearing_hole_size.add(bar.hole_size, time)
                return
            self.state = BarState.NORMAL

        self.hole_size.add_value(bar.hole_size)
        self.y_center.add(bar.y_center, time)

    # ------------------------------------------------------------------
    # 供预测使用的读取接口
    # ------------------------------------------------------------------

    @property
    def best_hole_size(self) -> float | None:
        avg = self.hole_size.average
        return avg if avg is not None else self.hole_size.last_value

    def y_center_at(self, time: float) -> float | None:
        """外推 time 处的开口中心；还没有直线时退化为最近一次测量值。"""

        value = self.y_center.value_at(time)
        if value is not None:
            return value
        return self.y_center.current_segment.tracker.last_value
