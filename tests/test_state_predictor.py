"""
Tests for the heuristic next-state predictor.
"""
from dataclasses import replace

import pytest

from aura_engine.layers.state_predictor import StatePredictor
from aura_engine.types.cognitive import CognitiveState, CognitiveStateType
from aura_engine.types.config import PredictorConfig


def state_for(label, minutes=0.0):
    return replace(CognitiveState.initial(0.0), state=label, duration=minutes * 60)


@pytest.fixture
def predictor():
    return StatePredictor()


class TestStatePredictor:
    """Rule table per current state."""

    def test_deep_focus_fatigue(self, predictor):
        predictions = predictor.predict(state_for(CognitiveStateType.DEEP_FOCUS, minutes=26), trend=0.0)
        assert len(predictions) == 1
        assert predictions[0].next_state == CognitiveStateType.FRAGMENTED_ATTENTION
        assert predictions[0].probability == pytest.approx(0.7)
        assert predictions[0].horizon_minutes == 5
        assert "fatigue" in predictions[0].triggers

    def test_deep_focus_declining_trend(self, predictor):
        predictions = predictor.predict(state_for(CognitiveStateType.DEEP_FOCUS, minutes=3), trend=-0.2)
        assert [p.next_state for p in predictions] == [CognitiveStateType.FRAGMENTED_ATTENTION]

    def test_fresh_deep_focus_has_no_forecast(self, predictor):
        assert predictor.predict(state_for(CognitiveStateType.DEEP_FOCUS, minutes=3), trend=0.0) == []

    def test_fragmented_recovery_and_stress(self, predictor):
        predictions = predictor.predict(
            state_for(CognitiveStateType.FRAGMENTED_ATTENTION),
            trend=0.1,
            stress_count=3,
        )
        assert [p.next_state for p in predictions] == [
            CognitiveStateType.DEEP_FOCUS,
            CognitiveStateType.COGNITIVE_OVERLOAD,
        ]
        assert [p.probability for p in predictions] == [pytest.approx(0.6), pytest.approx(0.4)]

    def test_fragmented_without_signals(self, predictor):
        assert predictor.predict(state_for(CognitiveStateType.FRAGMENTED_ATTENTION), trend=0.0, stress_count=2) == []

    def test_overload_always_predicts_recovery(self, predictor):
        predictions = predictor.predict(state_for(CognitiveStateType.COGNITIVE_OVERLOAD), trend=0.0)
        assert predictions[0].next_state == CognitiveStateType.FRAGMENTED_ATTENTION
        assert predictions[0].probability == pytest.approx(0.8)
        assert predictions[0].horizon_minutes == 1

    def test_creative_exhaustion(self, predictor):
        assert predictor.predict(state_for(CognitiveStateType.CREATIVE_FLOW, minutes=30), trend=0.0) == []
        predictions = predictor.predict(state_for(CognitiveStateType.CREATIVE_FLOW, minutes=50), trend=0.0)
        assert predictions[0].triggers == ("creative-exhaustion",)

    def test_configurable_fatigue_threshold(self):
        predictor = StatePredictor(PredictorConfig(focus_fatigue_minutes=5))
        predictions = predictor.predict(state_for(CognitiveStateType.DEEP_FOCUS, minutes=6), trend=0.0)
        assert len(predictions) == 1
