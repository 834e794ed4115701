"""孤儿检测：连续若干帧没有有效更新的实体应被移除。"""

from __future__ import annotations


class OrphanageDetector:
    """统计实体连续未被有效更新的帧数。

    Args:
        max_frames_without_update: 允许的最大连续无更新帧数；超过即视为孤儿。

    说明：
        每帧开始对所有实体调用 `new_frame()`；有效更新时调用 `mark_as_valid()` 清零。
    """

    def __init__(self, max_frames_without_update: int) -> None:
        if max_frames_without_update < 0:
            raise ValueError(f"max_frames_without_update 必须 >= 0，实际是：{max_frames_without_update}")
        self.max_frames_without_update = int(max_frames_without_update)
        self.frames_without_update = 0

    def new_frame(self) -> None:
        self.frames_without_update += 1

    def mark_as_valid(self) -> None:
        self.frames_without_update = 0

    @property
    def is_orphaned(self) -> bool:
        return self.frames_without_update > self.max_frames_without_update
