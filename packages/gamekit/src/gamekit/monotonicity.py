"""单调性检查：校验一个输入流是否（严格）单调。"""

from __future__ import annotations

import enum
from typing import Any


class Direction(enum.Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    # 方向尚未确定：第一次出现不相等的值时固定方向。
    BOTH = "both"


class MonotonicityChecker:
    """检查输入值是否单调。

    说明：
        - 第一次调用 `verify` 总是成功，并记录该值。
        - 方向为 BOTH 时：相等的连续值在 strict 下失败、否则成功，且不固定方向；
          严格变大/变小会把方向固定为 INCREASING/DECREASING。
        - 方向固定后：按 strict 使用 `>`/`>=` 或 `<`/`<=`；失败时仅在
          `still_update_on_failure=True` 时更新 last_value。
    """

    def __init__(self, direction: Direction = Direction.BOTH, *, strict: bool = True) -> None:
        self.direction = direction
        self.strict = bool(strict)
        self.last_value: Any = None

    def verify(self, value: Any, still_update_on_failure: bool = False) -> bool:
        if self.last_value is None:
            self.last_value = value
            return True

        last = self.last_value

        if self.direction is Direction.BOTH:
            if value == last:
                return not self.strict
            self.direction = Direction.INCREASING if value > last else Direction.DECREASING
            self.last_value = value
            return True

        if self.direction is Direction.INCREASING:
            ok = value > last if self.strict else value >= last
        else:
            ok = value < last if self.strict else value <= last

        if ok or still_update_on_failure:
            self.last_value = value
        return bool(ok)

    @property
    def sign(self) -> int | None:
        """已确定方向时返回 +1/-1，否则返回 None。"""

        if self.direction is Direction.INCREASING:
            return 1
        if self.direction is Direction.DECREASING:
            return -1
        return None
