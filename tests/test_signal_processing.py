"""
Tests for the SignalProcessor: filtering, derived metrics, bounded history
and trend advisories.
"""
from dataclasses import replace

import pytest

from aura_engine.layers.signal_processing import SignalProcessor
from aura_engine.types.cognitive import AdvisoryKind
from aura_engine.types.config import SignalProcessingConfig
from aura_engine.types.context import (
    DeviceState,
    DigitalBodyLanguage,
    DistractionRisk,
    EnvironmentType,
    LocationContext,
    NetworkQuality,
)
from aura_engine.types.domain_events import DomainEvent, DomainEventType

from conftest import MONDAY_10AM, make_sample, make_snapshot


@pytest.fixture
def processor(logger, clock):
    return SignalProcessor(logger=logger, clock=clock)


def collect(bus, event_type):
    received = []
    bus.subscribe(event_type, received.append)
    return received


class TestFilter:
    """Median/mean blend over the rolling buffer."""

    def test_constant_input_is_unchanged(self, processor):
        for _ in range(50):
            value = processor.filter(0.5)
        assert value == pytest.approx(0.5)

    def test_blend_of_median_and_mean(self, processor):
        processor.filter(0.0)
        processor.filter(0.0)
        # median 0.0, mean 1/3
        assert processor.filter(1.0) == pytest.approx(0.4 / 3)

    def test_outlier_is_suppressed(self, processor):
        for _ in range(4):
            processor.filter(0.5)
        assert processor.filter(1.0) == pytest.approx(0.6 * 0.5 + 0.4 * 0.6)

    def test_buffer_is_bounded(self, logger, clock):
        processor = SignalProcessor(SignalProcessingConfig(buffer_size=3), logger=logger, clock=clock)
        for value in (0.1, 0.2, 0.3, 0.4):
            processor.filter(value)
        assert processor.get_buffer() == [0.2, 0.3, 0.4]

    def test_configure_keeps_recent_values(self, processor):
        for value in (0.1, 0.2, 0.3, 0.4):
            processor.filter(value)
        processor.configure(SignalProcessingConfig(buffer_size=2))
        assert processor.get_buffer() == [0.3, 0.4]


class TestDerivedMetrics:
    """Cognitive load, stress indicators and quality."""

    def test_cognitive_load_for_strained_sample(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.4, head=0.8, blink=25)
        # blink 0.3 + unstable gaze 0.4 + 0.3 * interaction load 0.5
        assert processor.cognitive_load(sample) == pytest.approx(0.85)

    def test_cognitive_load_for_calm_sample(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=10)
        assert processor.cognitive_load(sample) == pytest.approx(0.15)

    def test_high_distraction_adds_load(self, processor):
        location = replace(LocationContext.fallback(), distraction_risk=DistractionRisk.HIGH)
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=10, context=make_snapshot(location=location))
        assert processor.cognitive_load(sample) == pytest.approx(0.35)

    def test_stress_indicators(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.2, head=0.3, blink=25)
        assert processor.stress_indicators(sample) == [0.8, 0.7, 0.6]

    def test_calm_sample_has_no_stress(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=12)
        assert processor.stress_indicators(sample) == []

    def test_interaction_stress_is_appended_when_positive(self, processor):
        dbl = replace(DigitalBodyLanguage.fallback(), stress_indicator=0.3)
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=12, context=make_snapshot(dbl=dbl))
        assert processor.stress_indicators(sample) == [pytest.approx(0.3)]

    def test_quality_uses_sample_confidence(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=12, confidence=0.8)
        assert processor.quality_score(sample) == pytest.approx(0.8)

    def test_quality_penalties(self, processor):
        context = make_snapshot(
            location=replace(LocationContext.fallback(), distraction_risk=DistractionRisk.HIGH),
            device=DeviceState(battery_level=0.1, is_charging=False, network_quality=NetworkQuality.POOR),
        )
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=12, confidence=0.8, context=context)
        assert processor.quality_score(sample) == pytest.approx(0.8 * 0.7 * 0.8 * 0.9)

    def test_quality_floor(self, processor):
        sample = make_sample(MONDAY_10AM, gaze=0.9, head=0.9, blink=12, confidence=0.05)
        assert processor.quality_score(sample) == pytest.approx(0.1)


class TestProcessSample:
    """End-to-end processing of individual samples."""

    def test_metrics_fields(self, processor):
        metrics = processor.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=22.5))
        assert metrics.timestamp == MONDAY_10AM
        assert metrics.raw_attention == pytest.approx(0.5)
        assert metrics.filtered_attention == pytest.approx(0.5)
        assert 0.0 <= metrics.cognitive_load <= 1.0
        assert processor.get_latest_metrics() == metrics

    def test_missing_timestamp_uses_clock(self, processor, clock):
        sample = make_sample(0.0, gaze=0.5, head=0.5, blink=15)
        assert processor.process_sample(sample).timestamp == clock()

    def test_last_context_is_reused(self, processor):
        library = make_snapshot(location=replace(LocationContext.fallback(), environment=EnvironmentType.LIBRARY))
        processor.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=22.5, context=library))
        metrics = processor.process_sample(make_sample(MONDAY_10AM + 1, gaze=0.5, head=0.5, blink=22.5, context=None))
        assert metrics.raw_attention == pytest.approx(0.6)

    def test_history_is_bounded(self, processor):
        for i in range(1001):
            processor.process_sample(make_sample(MONDAY_10AM + i, gaze=0.6, head=0.6, blink=15))
        assert len(processor.get_metrics_history()) == 500
        assert len(processor.get_sample_history()) == 500
        assert processor.get_session_stats().sample_count == 500

    def test_session_stats(self, processor):
        for i in range(5):
            processor.process_sample(make_sample(MONDAY_10AM + i, gaze=0.5, head=0.5, blink=22.5))
        stats = processor.get_session_stats()
        assert stats.sample_count == 5
        assert stats.average_attention == pytest.approx(0.5)
        assert stats.peak_attention == pytest.approx(0.5)
        assert stats.low_attention == pytest.approx(0.5)
        assert stats.stability == pytest.approx(1.0)

    def test_accessors_return_copies(self, processor):
        processor.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=15))
        processor.get_metrics_history().clear()
        assert len(processor.get_metrics_history()) == 1

    def test_reset(self, processor):
        processor.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=15))
        processor.reset()
        assert processor.get_metrics_history() == []
        assert processor.get_buffer() == []
        assert processor.get_session_stats().sample_count == 0


class TestBusIntegration:
    """Publication of metrics and trend advisories."""

    @pytest.fixture
    def passthrough(self, bus, logger, clock):
        # A one-element buffer makes filtered attention equal raw attention
        return SignalProcessor(SignalProcessingConfig(buffer_size=1), bus=bus, logger=logger, clock=clock)

    def test_metrics_published(self, passthrough, bus):
        updates = collect(bus, DomainEventType.METRICS_UPDATED)
        passthrough.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=15))
        assert len(updates) == 1
        assert updates[0].payload.stats.sample_count == 1

    def test_peak_advisory(self, passthrough, bus):
        advisories = collect(bus, DomainEventType.ATTENTION_ADVISORY)
        # head 1, blink 15: attention = 0.5 + 0.5 * gaze
        for i, gaze in enumerate((0.0, 0.24, 0.48, 0.72, 0.96)):
            passthrough.process_sample(make_sample(MONDAY_10AM + i, gaze=gaze, head=1.0, blink=15))
        assert len(advisories) == 1
        assert advisories[0].payload.kind == AdvisoryKind.PEAK
        assert advisories[0].payload.slope == pytest.approx(0.12)

    def test_declining_advisory(self, passthrough, bus):
        advisories = collect(bus, DomainEventType.ATTENTION_ADVISORY)
        # head 0, blink 30: attention = 0.5 * gaze
        for i, gaze in enumerate((1.0, 0.75, 0.5, 0.25, 0.0)):
            passthrough.process_sample(make_sample(MONDAY_10AM + i, gaze=gaze, head=0.0, blink=30))
        assert [a.payload.kind for a in advisories] == [AdvisoryKind.DECLINING]

    def test_steady_attention_raises_nothing(self, passthrough, bus):
        advisories = collect(bus, DomainEventType.ATTENTION_ADVISORY)
        for i in range(12):
            passthrough.process_sample(make_sample(MONDAY_10AM + i, gaze=0.7, head=0.7, blink=15))
        assert advisories == []

    def test_raw_samples_only_processed_while_running(self, bus, logger, clock):
        processor = SignalProcessor(logger=logger, clock=clock)
        processor.subscribe(bus)
        sample = make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=15)

        bus.publish(DomainEvent(DomainEventType.SAMPLE_RAW, payload=sample))
        assert processor.get_latest_metrics() is None

        processor.start()
        bus.publish(DomainEvent(DomainEventType.SAMPLE_RAW, payload=sample))
        assert processor.get_latest_metrics() is not None

    def test_context_updates_are_tracked(self, bus, logger, clock):
        processor = SignalProcessor(logger=logger, clock=clock)
        processor.subscribe(bus)
        library = make_snapshot(location=replace(LocationContext.fallback(), environment=EnvironmentType.LIBRARY))
        bus.publish(DomainEvent(DomainEventType.CONTEXT_UPDATED, payload=library))

        metrics = processor.process_sample(make_sample(MONDAY_10AM, gaze=0.5, head=0.5, blink=22.5, context=None))
        assert metrics.raw_attention == pytest.approx(0.6)
