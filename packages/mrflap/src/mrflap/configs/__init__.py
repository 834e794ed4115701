"""mrflap 配置包。

说明：
    只包含 dataclass 配置定义，不做任何 IO；YAML 加载见 `mrflap.config_yaml`。
"""

from mrflap.configs.models import (
    BarTrackingConfig,
    MrFlapConfig,
    PlayerTrackingConfig,
    PredictionConfig,
    TappingConfig,
)

__all__ = [
    "BarTrackingConfig",
    "MrFlapConfig",
    "PlayerTrackingConfig",
    "PredictionConfig",
    "TappingConfig",
]
