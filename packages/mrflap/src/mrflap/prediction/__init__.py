"""mrflap 的点击预测。"""

from mrflap.prediction.models import (
    BarProperties,
    JumpingProperties,
    PlayerBarInteraction,
    PlayerProperties,
    PlayfieldProperties,
    PredictionFrame,
)
from mrflap.prediction.solution import Jump, Solution
from mrflap.prediction.strategies import (
    IdleStrategy,
    RandomizedSearchStrategy,
    SolutionGenerator,
    SolutionStrategy,
    SolutionVerifier,
)
from mrflap.prediction.tap_predictor import TapPredictor

__all__ = [
    "BarProperties",
    "IdleStrategy",
    "Jump",
    "JumpingProperties",
    "PlayerBarInteraction",
    "PlayerProperties",
    "PlayfieldProperties",
    "PredictionFrame",
    "RandomizedSearchStrategy",
    "Solution",
    "SolutionGenerator",
    "SolutionStrategy",
    "SolutionVerifier",
    "TapPredictor",
]
