"""
State Predictor

Heuristic forecasts of the next likely cognitive state. Predictions are
advisory: they ride along on the published CognitiveState and never change
the classified label.
"""
from typing import List, Optional

from aura_engine.types.cognitive import CognitiveState, CognitiveStateType, StatePrediction
from aura_engine.types.config import PredictorConfig


class StatePredictor:
    """
    Rule table keyed on the current state, its duration and the recent trend.
    """

    def __init__(self, config: Optional[PredictorConfig] = None):
        self._config = config or PredictorConfig()

    def configure(self, config: PredictorConfig) -> None:
        self._config = config

    def predict(
        self,
        state: CognitiveState,
        trend: float,
        stress_count: int = 0,
    ) -> List[StatePrediction]:
        """
        Args:
            state: The current classified state.
            trend: Recent attention slope per sample.
            stress_count: Number of stress indicators on the latest metrics.

        Returns:
            Zero or more predictions, most likely first.
        """
        cfg = self._config
        minutes = state.duration_minutes
        predictions: List[StatePrediction] = []

        if state.state == CognitiveStateType.DEEP_FOCUS:
            if minutes > cfg.focus_fatigue_minutes or trend < cfg.declining_trend:
                predictions.append(StatePrediction(
                    next_state=CognitiveStateType.FRAGMENTED_ATTENTION,
                    probability=0.7,
                    horizon_minutes=5,
                    triggers=("fatigue", "attention-decline"),
                ))

        elif state.state == CognitiveStateType.FRAGMENTED_ATTENTION:
            if trend > cfg.recovery_trend:
                predictions.append(StatePrediction(
                    next_state=CognitiveStateType.DEEP_FOCUS,
                    probability=0.6,
                    horizon_minutes=3,
                    triggers=("recovery", "attention-increase"),
                ))
            if stress_count > cfg.stress_accumulation_count:
                predictions.append(StatePrediction(
                    next_state=CognitiveStateType.COGNITIVE_OVERLOAD,
                    probability=0.4,
                    horizon_minutes=2,
                    triggers=("stress-accumulation",),
                ))

        elif state.state == CognitiveStateType.COGNITIVE_OVERLOAD:
            predictions.append(StatePrediction(
                next_state=CognitiveStateType.FRAGMENTED_ATTENTION,
                probability=0.8,
                horizon_minutes=1,
                triggers=("rest", "intervention"),
            ))

        elif state.state == CognitiveStateType.CREATIVE_FLOW:
            if minutes > cfg.creative_exhaustion_minutes:
                predictions.append(StatePrediction(
                    next_state=CognitiveStateType.FRAGMENTED_ATTENTION,
                    probability=0.5,
                    horizon_minutes=10,
                    triggers=("creative-exhaustion",),
                ))

        predictions.sort(key=lambda p: p.probability, reverse=True)
        return predictions
