"""
State Classifier

Input: ProcessedMetrics (+ session statistics) on every tick
Output: CognitiveState on every tick, StateTransition whenever the label changes

Classification is a two-step process. A pluggable scoring strategy proposes
a provisional label (the default is a hand-weighted linear scorer over
attention, load and stability), then safety overrides are applied in
priority order. Overrides always win over the strategy, so swapping in a
trained model cannot disable them.

The only cross-session tuning state is the AdaptiveThresholds snapshot,
which is replaced (never mutated) on each transition.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from aura_engine.layers.attention_scorer import contextual_ema, forecast_attention, linear_trend
from aura_engine.layers.state_predictor import StatePredictor
from aura_engine.services.event_bus import EventBus, Subscription
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.types.cognitive import (
    AdaptiveThresholds,
    CognitiveState,
    CognitiveStateType,
    ProcessedMetrics,
    SessionStats,
    StateFeatures,
    StateTransition,
    clamp,
)
from aura_engine.types.config import ClassifierConfig
from aura_engine.types.context import ContextSnapshot
from aura_engine.types.domain_events import DomainEvent, DomainEventType


TRANSITION_TRIGGER = "metrics-driven"


class StateScoringStrategy(ABC):
    """
    Produces a score per candidate state; the classifier takes the argmax
    as its provisional label before applying overrides.
    """

    @abstractmethod
    def score(self, features: StateFeatures) -> Dict[CognitiveStateType, float]:
        pass


class LinearStateScorer(StateScoringStrategy):
    """Weighted sum over (attention, cognitive load, stability) per state."""

    def __init__(self, weights: Dict[str, List[float]]):
        self._weights = {CognitiveStateType(label): tuple(w) for label, w in weights.items()}

    def score(self, features: StateFeatures) -> Dict[CognitiveStateType, float]:
        return {
            state: (
                w_attention * features.attention
                + w_load * features.cognitive_load
                + w_stability * features.stability
            )
            for state, (w_attention, w_load, w_stability) in self._weights.items()
        }


class StateClassifier:
    """
    Cognitive state machine driven by processed metrics.
    """

    def __init__(
        self,
        config: Optional[ClassifierConfig] = None,
        predictor: Optional[StatePredictor] = None,
        strategy: Optional[StateScoringStrategy] = None,
        bus: Optional[EventBus] = None,
        logger: Optional[LoggerService] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the classifier.

        Args:
            config: Weights, threshold seeds, history caps and confidence shaping.
            predictor: Forecasts attached to each published state.
            strategy: Provisional-label scorer; defaults to LinearStateScorer.
            bus: Event bus for state publication.
            logger: Shared logger service.
            clock: Time source (unix seconds).
        """
        self._config = config or ClassifierConfig()
        self._predictor = predictor or StatePredictor()
        self._strategy = strategy or LinearStateScorer(self._config.state_weights)
        self._bus = bus
        self._logger = logger or get_logger()
        self._clock = clock

        self._thresholds: AdaptiveThresholds = self._config.thresholds
        self._sequence: int = 0
        self._last_context: Optional[ContextSnapshot] = None
        self._reset_state()

    def configure(self, config: ClassifierConfig) -> None:
        """Apply new weights and caps. Learned thresholds are kept."""
        self._config = config
        self._strategy = LinearStateScorer(config.state_weights)
        self._logger.system(
            "state_classifier_config_updated",
            {
                "creative_flow_min_indicators": config.creative_flow_min_indicators,
                "learning_rate": config.learning_rate,
            },
            level="DEBUG",
        )

    def set_strategy(self, strategy: StateScoringStrategy) -> None:
        self._strategy = strategy

    def subscribe(self, bus: EventBus) -> List[Subscription]:
        self._bus = bus
        return [
            bus.subscribe(DomainEventType.METRICS_UPDATED, self._on_metrics_event),
            bus.subscribe(DomainEventType.CONTEXT_UPDATED, self._on_context_event),
        ]

    def reset_session(self) -> None:
        """Start a fresh session. Adaptive thresholds carry over."""
        self._reset_state()
        self._logger.system(
            "state_classifier_session_reset",
            {"thresholds_version": self._thresholds.version},
            level="DEBUG",
        )

    # --- Classification ---

    def update(
        self,
        metrics: ProcessedMetrics,
        stats: Optional[SessionStats] = None,
    ) -> CognitiveState:
        """
        Run one tick of the state machine and publish the result.

        Never raises on bad data: a failing scoring strategy falls back to
        the previous label.
        """
        previous = self._current
        now = metrics.timestamp or self._clock()

        features = self.build_features(metrics, stats, now)
        label = self.classify(features, fallback=previous.state)
        changed = label != previous.state

        confidence = self.compute_confidence(features, label)

        transition: Optional[StateTransition] = None
        if changed:
            self._sequence += 1
            transition = StateTransition(
                sequence=self._sequence,
                from_state=previous.state,
                to_state=label,
                timestamp=now,
                trigger=TRANSITION_TRIGGER,
                confidence=confidence,
            )
            self._record_transition(transition)
            self._thresholds = self._thresholds.adapt(label, features.attention, self._config.learning_rate)
            entered_at = now
            duration = 0.0
        else:
            entered_at = previous.entered_at
            duration = max(0.0, now - entered_at)

        self._smoothed_attention = clamp(contextual_ema(
            features.attention,
            self._smoothed_attention,
            previous.state,
            self._config.ema_default_alpha,
        ))
        self._attention_history = self._trim(
            self._attention_history + [self._smoothed_attention],
            self._config.state_history_cap,
        )

        state = CognitiveState(
            state=label,
            attention=self._smoothed_attention,
            cognitive_load=metrics.cognitive_load,
            stability=features.stability,
            confidence=confidence,
            entered_at=entered_at,
            duration=duration,
            timestamp=now,
        )
        predictions = self._predictor.predict(state, self._trend(), len(metrics.stress_indicators))
        forecast = (
            forecast_attention(self._attention_history, self._last_context)
            if self._last_context is not None else None
        )
        state = replace(state, predictions=tuple(predictions), attention_forecast=forecast)

        self._current = state
        self._state_history = self._trim(self._state_history + [state], self._config.state_history_cap)

        if self._bus is not None:
            self._bus.publish(DomainEvent(
                event_type=DomainEventType.STATE_CHANGED,
                payload=state,
                timestamp=now,
            ))
            if transition is not None:
                self._bus.publish(DomainEvent(
                    event_type=DomainEventType.STATE_TRANSITION,
                    payload=transition,
                    timestamp=now,
                ))

        return state

    def build_features(
        self,
        metrics: ProcessedMetrics,
        stats: Optional[SessionStats] = None,
        now: Optional[float] = None,
    ) -> StateFeatures:
        enough_history = stats is not None and stats.sample_count >= self._config.min_history
        if now is None:
            now = metrics.timestamp
        return StateFeatures(
            attention=metrics.filtered_attention,
            cognitive_load=metrics.cognitive_load,
            stability=stats.stability if enough_history else 0.5,
            max_stress=metrics.max_stress,
            quality=metrics.quality_score,
            time_in_state=max(0.0, now - self._current.entered_at),
            trend=self._trend(),
        )

    def classify(
        self,
        features: StateFeatures,
        fallback: CognitiveStateType = CognitiveStateType.FRAGMENTED_ATTENTION,
    ) -> CognitiveStateType:
        """Provisional argmax label, then safety overrides in priority order."""
        provisional = fallback
        try:
            scores = self._strategy.score(features)
            if scores:
                provisional = max(scores, key=scores.get)
        except Exception as e:
            self._logger.system(
                "state_scoring_error",
                {"error": str(e), "error_type": type(e).__name__, "fallback": fallback.value},
                level="ERROR",
            )

        t = self._thresholds
        attention = features.attention
        load = features.cognitive_load

        if features.max_stress > 0.8 or load > 0.9:
            return CognitiveStateType.COGNITIVE_OVERLOAD
        if attention < t.fragmented_max:
            return CognitiveStateType.FRAGMENTED_ATTENTION
        if attention > t.deep_focus_min and load < 0.6:
            return CognitiveStateType.DEEP_FOCUS

        creative_indicators = sum((
            0.6 < attention < 0.85 and load < 0.5,
            features.stability > 0.7,
            features.max_stress < 0.3 and attention > 0.6,
        ))
        if creative_indicators >= self._config.creative_flow_min_indicators:
            return CognitiveStateType.CREATIVE_FLOW

        return provisional

    def compute_confidence(self, features: StateFeatures, label: CognitiveStateType) -> float:
        confidence = features.quality

        distance = min(abs(features.attention - b) for b in self._thresholds.boundaries())
        if distance < self._config.borderline_margin:
            confidence *= self._config.borderline_penalty

        recent = self._state_history[-self._config.agreement_window:]
        if recent:
            agreement = sum(1 for s in recent if s.state == label) / len(recent)
        else:
            agreement = 0.5
        confidence *= 0.5 + 0.5 * agreement

        return clamp(confidence, 0.1, 1.0)

    # --- Accessors (copies only) ---

    def get_current_state(self) -> CognitiveState:
        return self._current

    def get_state_history(self) -> List[CognitiveState]:
        return list(self._state_history)

    def get_transitions(self) -> List[StateTransition]:
        return list(self._transitions)

    def get_thresholds(self) -> AdaptiveThresholds:
        return self._thresholds

    def set_thresholds(self, thresholds: AdaptiveThresholds) -> None:
        """Seed thresholds, e.g. from persisted learning at startup."""
        self._thresholds = thresholds
        self._logger.system(
            "state_thresholds_seeded",
            {"version": thresholds.version},
            level="DEBUG",
        )

    # --- Internal Methods ---

    def _reset_state(self) -> None:
        self._current = CognitiveState.initial(self._clock())
        self._smoothed_attention = self._config.initial_attention
        self._attention_history: List[float] = []
        self._state_history: List[CognitiveState] = []
        self._transitions: List[StateTransition] = []

    def _trend(self) -> float:
        if len(self._attention_history) < self._config.min_history:
            return 0.0
        return linear_trend(self._attention_history[-self._config.trend_window:]).slope

    def _record_transition(self, transition: StateTransition) -> None:
        self._transitions = self._trim(self._transitions + [transition], self._config.transition_history_cap)
        self._logger.session(
            "state_transition_recorded",
            {
                "sequence": transition.sequence,
                "from": transition.from_state.value,
                "to": transition.to_state.value,
                "confidence": round(transition.confidence, 3),
            },
        )

    @staticmethod
    def _trim(history: list, cap: int) -> list:
        if len(history) > cap:
            return history[-(cap // 2):]
        return history

    def _on_metrics_event(self, event: DomainEvent) -> None:
        self.update(event.payload.metrics, event.payload.stats)

    def _on_context_event(self, event: DomainEvent) -> None:
        self._last_context = event.payload
