"""mrflap 包入口。

导出内容：
    - MrFlap：逐帧入口（模型收集 + 点击预测 + 调度）。
    - GameModel / GameModelCollector：实体跟踪与柱子匹配。
    - 测量类型与配置 dataclass。
    - GameSimulation：合成游戏，用于测试。
"""

from mrflap.collector import GameModelCollector
from mrflap.config_yaml import load_mrflap_config_yaml, mrflap_config_from_dict
from mrflap.configs import (
    BarTrackingConfig,
    MrFlapConfig,
    PlayerTrackingConfig,
    PredictionConfig,
    TappingConfig,
)
from mrflap.courses import BarCourse, BarState, PlayerCourse
from mrflap.game import MrFlap
from mrflap.model import GameModel
from mrflap.simulation import GameSimulation, SimulatedBar
from mrflap.types import (
    AnalysisResult,
    BarMeasurement,
    PlayerMeasurement,
    Playfield,
    UpdateError,
)

__all__ = [
    "AnalysisResult",
    "BarCourse",
    "BarMeasurement",
    "BarState",
    "BarTrackingConfig",
    "GameModel",
    "GameModelCollector",
    "GameSimulation",
    "load_mrflap_config_yaml",
    "MrFlap",
    "MrFlapConfig",
    "mrflap_config_from_dict",
    "PlayerCourse",
    "PlayerMeasurement",
    "PlayerTrackingConfig",
    "Playfield",
    "PredictionConfig",
    "SimulatedBar",
    "TappingConfig",
    "UpdateError",
]
