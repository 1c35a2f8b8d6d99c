# Processing layers
from .context_sensor import ContextSensor
from .signal_processing import SignalProcessor
from .state_classifier import LinearStateScorer, StateClassifier, StateScoringStrategy
from .state_predictor import StatePredictor

__all__ = [
    "ContextSensor",
    "SignalProcessor",
    "LinearStateScorer",
    "StateClassifier",
    "StateScoringStrategy",
    "StatePredictor",
]
