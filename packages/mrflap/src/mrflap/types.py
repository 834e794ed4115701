"""mrflap 的测量数据结构。

说明：
    这些类型由外部的图像分析层逐帧产出，是本包唯一的输入。

坐标约定：
    - 游戏区域是一个圆环：内圆半径 inner_radius，外圆半径 full_radius。
    - angle：绕圆心的角度（rad），取值 [0, 2π)。
    - 高度类字段（player.height、bar.y_center）都是到圆心的距离（px），不是相对内圆的偏移。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Playfield:
    """游戏区域（静态）。

    属性:
        inner_radius: 内圆半径（px）。
        full_radius: 外圆半径（px）。
    """

    inner_radius: float
    full_radius: float

    def __post_init__(self) -> None:
        if not (0.0 <= self.inner_radius < self.full_radius):
            raise ValueError(
                f"需要 0 <= inner_radius < full_radius，实际是：{self.inner_radius}, {self.full_radius}"
            )

    @property
    def free_space(self) -> float:
        """内外圆之间的距离。"""

        return float(self.full_radius - self.inner_radius)


@dataclass(frozen=True)
class PlayerMeasurement:
    """单帧玩家测量。

    属性:
        angle: 玩家中心角度（rad）。
        height: 玩家中心到圆心的距离（px）。
        size: 玩家直径（px）。
    """

    angle: float
    height: float
    size: float


@dataclass(frozen=True)
class BarMeasurement:
    """单帧柱子测量。柱子从内圆一直延伸到外圆，中间有一个可上下移动的开口。

    属性:
        angle: 柱子中心角度（rad）。
        width: 柱子切向宽度（px）。
        hole_size: 开口的径向大小（px）。出现阶段该值持续变小，直到柱子完全长出。
        y_center: 开口中心到圆心的距离（px）。
    """

    angle: float
    width: float
    hole_size: float
    y_center: float


@dataclass(frozen=True)
class AnalysisResult:
    """图像分析层对一帧的输出。"""

    player: PlayerMeasurement
    bars: tuple[BarMeasurement, ...] = field(default_factory=tuple)


class UpdateError(enum.Enum):
    """完整性检查失败的原因。"""

    WRONG_ANGLE = "wrong_angle"
    WRONG_WIDTH = "wrong_width"
    WRONG_HOLE_SIZE = "wrong_hole_size"
    WRONG_Y_CENTER = "wrong_y_center"
    WRONG_SIZE = "wrong_size"
    WRONG_HEIGHT = "wrong_height"
