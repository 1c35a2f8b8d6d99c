"""
Signal Processing Layer

Input: CognitiveSample (gaze stability, head stillness, blink rate, context)
Output: ProcessedMetrics, one per sample, plus rolling session statistics

Raw attention is computed by the attention scorer, then passed through a
median/mean blend over a fixed rolling buffer to suppress outliers.
Cognitive load, stress indicators and a quality score are derived
alongside. When the recent filtered trend is strongly up or down an
advisory is raised; the state classifier remains the authority on the
actual cognitive state.
"""
import math
import time
from collections import deque
from typing import Callable, List, Optional

from aura_engine.layers.attention_scorer import compute_attention, linear_trend, normalize_blink_rate
from aura_engine.services.event_bus import EventBus, Subscription
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.types.cognitive import (
    AdvisoryKind,
    AttentionAdvisory,
    CognitiveSample,
    MetricsUpdate,
    ProcessedMetrics,
    SessionStats,
    clamp,
)
from aura_engine.types.config import SignalProcessingConfig
from aura_engine.types.context import ContextSnapshot, DistractionRisk, NetworkQuality
from aura_engine.types.domain_events import DomainEvent, DomainEventType


class SignalProcessor:
    """
    Turns raw cognitive samples into filtered metrics and session aggregates.
    """

    def __init__(
        self,
        config: Optional[SignalProcessingConfig] = None,
        bus: Optional[EventBus] = None,
        logger: Optional[LoggerService] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the signal processor.

        Args:
            config: Buffer sizes, history caps and advisory thresholds.
            bus: Event bus for metrics/advisory publication. Optional for
                direct use.
            logger: Shared logger service.
            clock: Time source (unix seconds).
        """
        self._config = config or SignalProcessingConfig()
        self._bus = bus
        self._logger = logger or get_logger()
        self._clock = clock

        self._buffer: deque = deque(maxlen=self._config.buffer_size)
        self._metrics_history: List[ProcessedMetrics] = []
        self._sample_history: List[CognitiveSample] = []
        self._stats = SessionStats()
        self._last_context: Optional[ContextSnapshot] = None
        self._is_running: bool = False

    def configure(self, config: SignalProcessingConfig) -> None:
        """
        Update layer configuration. The filter buffer is resized, keeping
        its most recent values.
        """
        self._config = config
        self._buffer = deque(self._buffer, maxlen=config.buffer_size)
        self._logger.system(
            "signal_processing_config_updated",
            {
                "buffer_size": config.buffer_size,
                "history_cap": config.history_cap,
                "history_truncate_to": config.history_truncate_to,
            },
            level="DEBUG",
        )

    def start(self) -> None:
        self._is_running = True

    def stop(self) -> None:
        self._is_running = False

    def is_running(self) -> bool:
        return self._is_running

    def reset(self) -> None:
        """Clear buffers, histories and session statistics."""
        self._buffer.clear()
        self._metrics_history = []
        self._sample_history = []
        self._stats = SessionStats()
        self._last_context = None

    def subscribe(self, bus: EventBus) -> List[Subscription]:
        """Attach to the bus: raw samples in, context updates tracked."""
        self._bus = bus
        return [
            bus.subscribe(DomainEventType.SAMPLE_RAW, self._on_sample_event),
            bus.subscribe(DomainEventType.CONTEXT_UPDATED, self._on_context_event),
        ]

    # --- Processing ---

    def process_sample(self, sample: CognitiveSample) -> ProcessedMetrics:
        """
        Process one sample into metrics, update aggregates and publish.

        Samples without a context use the last context seen, or the
        degraded fallback snapshot.
        """
        context = self._resolve_context(sample)

        raw_attention = compute_attention(
            sample.gaze_stability,
            sample.head_stillness,
            normalize_blink_rate(sample.blink_rate),
            context,
            context.dbl.cognitive_load_indicator,
        )
        filtered = self.filter(raw_attention)

        metrics = ProcessedMetrics(
            timestamp=sample.timestamp or self._clock(),
            raw_attention=raw_attention,
            filtered_attention=clamp(filtered),
            cognitive_load=self.cognitive_load(sample, context),
            stress_indicators=tuple(self.stress_indicators(sample, context)),
            quality_score=self.quality_score(sample, context),
        )

        self._sample_history = self._append_bounded(self._sample_history, sample)
        self._metrics_history = self._append_bounded(self._metrics_history, metrics)
        self._stats = self._compute_session_stats()

        if self._bus is not None:
            self._bus.publish(DomainEvent(
                event_type=DomainEventType.METRICS_UPDATED,
                payload=MetricsUpdate(metrics=metrics, stats=self._stats),
                timestamp=metrics.timestamp,
            ))
            advisory = self._check_advisory(metrics.timestamp)
            if advisory is not None:
                self._bus.publish(DomainEvent(
                    event_type=DomainEventType.ATTENTION_ADVISORY,
                    payload=advisory,
                    timestamp=advisory.timestamp,
                ))

        return metrics

    def filter(self, raw_value: float) -> float:
        """Push into the rolling buffer and return 0.6*median + 0.4*mean."""
        self._buffer.append(raw_value)
        ordered = sorted(self._buffer)
        median = ordered[len(ordered) // 2]
        mean = sum(ordered) / len(ordered)
        return 0.6 * median + 0.4 * mean

    def cognitive_load(
        self,
        sample: CognitiveSample,
        context: Optional[ContextSnapshot] = None,
    ) -> float:
        context = context or self._resolve_context(sample)
        load = 0.0
        if sample.blink_rate > 20:
            load += 0.3
        if sample.gaze_stability < 0.5:
            load += 0.4
        load += 0.3 * context.dbl.cognitive_load_indicator
        if context.location.distraction_risk == DistractionRisk.HIGH:
            load += 0.2
        return clamp(load)

    def stress_indicators(
        self,
        sample: CognitiveSample,
        context: Optional[ContextSnapshot] = None,
    ) -> List[float]:
        context = context or self._resolve_context(sample)
        indicators: List[float] = []
        if sample.blink_rate > 22:
            indicators.append(0.8)
        if sample.gaze_stability < 0.3:
            indicators.append(0.7)
        if sample.head_stillness < 0.4:
            indicators.append(0.6)
        if context.dbl.stress_indicator > 0:
            indicators.append(clamp(context.dbl.stress_indicator))
        return indicators

    def quality_score(
        self,
        sample: CognitiveSample,
        context: Optional[ContextSnapshot] = None,
    ) -> float:
        context = context or self._resolve_context(sample)
        quality = 1.0 * sample.confidence
        if context.location.distraction_risk == DistractionRisk.HIGH:
            quality *= 0.7
        if context.device.battery_level < 0.2:
            quality *= 0.8
        if context.device.network_quality == NetworkQuality.POOR:
            quality *= 0.9
        return clamp(max(0.1, quality))

    # --- Accessors (copies only) ---

    def get_session_stats(self) -> SessionStats:
        return self._stats

    def get_metrics_history(self) -> List[ProcessedMetrics]:
        return list(self._metrics_history)

    def get_sample_history(self) -> List[CognitiveSample]:
        return list(self._sample_history)

    def get_buffer(self) -> List[float]:
        return list(self._buffer)

    def get_latest_metrics(self) -> Optional[ProcessedMetrics]:
        return self._metrics_history[-1] if self._metrics_history else None

    # --- Internal Methods ---

    def _on_sample_event(self, event: DomainEvent) -> None:
        if not self._is_running:
            return
        self.process_sample(event.payload)

    def _on_context_event(self, event: DomainEvent) -> None:
        self._last_context = event.payload

    def _resolve_context(self, sample: CognitiveSample) -> ContextSnapshot:
        if sample.context is not None:
            self._last_context = sample.context
            return sample.context
        if self._last_context is not None:
            return self._last_context
        return ContextSnapshot.fallback(sample.timestamp or self._clock())

    def _append_bounded(self, history: list, item) -> list:
        history.append(item)
        if len(history) > self._config.history_cap:
            dropped = len(history) - self._config.history_truncate_to
            history = history[-self._config.history_truncate_to:]
            self._logger.system(
                "signal_history_truncated",
                {"dropped": dropped, "kept": len(history)},
                level="DEBUG",
            )
        return history

    def _compute_session_stats(self) -> SessionStats:
        values = [m.filtered_attention for m in self._metrics_history]
        if not values:
            return SessionStats()

        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        return SessionStats(
            sample_count=len(values),
            average_attention=mean,
            peak_attention=max(values),
            low_attention=min(values),
            stability=clamp(1 - math.sqrt(variance)),
        )

    def _check_advisory(self, timestamp: float) -> Optional[AttentionAdvisory]:
        recent = [m.filtered_attention for m in self._metrics_history[-self._config.advisory_window:]]
        if len(recent) < self._config.advisory_min_samples:
            return None

        slope = linear_trend(recent).slope
        average = sum(recent) / len(recent)

        kind = None
        if slope < self._config.declining_slope and average < self._config.declining_average:
            kind = AdvisoryKind.DECLINING
        elif slope > self._config.peak_slope and average > self._config.peak_average:
            kind = AdvisoryKind.PEAK
        if kind is None:
            return None

        self._logger.system(
            "attention_advisory_raised",
            {"kind": kind.value, "slope": round(slope, 4), "average": round(average, 4)},
            level="DEBUG",
        )
        return AttentionAdvisory(timestamp=timestamp, kind=kind, slope=slope, average=average)
