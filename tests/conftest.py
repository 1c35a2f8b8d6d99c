"""
Shared fixtures for the engine test suite.
"""
from dataclasses import replace
from datetime import timezone

import pytest

from aura_engine.services.event_bus import EventBus
from aura_engine.services.logger_service import LoggerService
from aura_engine.services.sensors import (
    ContextProviders,
    SimulatedBatteryProvider,
    SimulatedLocationProvider,
    SimulatedNetworkProvider,
)
from aura_engine.services.storage import InMemoryPatternStore
from aura_engine.types.cognitive import CognitiveSample, ProcessedMetrics
from aura_engine.types.context import ContextSnapshot


# Monday 2024-01-01 10:00:00 UTC
MONDAY_10AM = 1704103200.0
# Monday 2024-01-01 13:00:00 UTC
MONDAY_1PM = MONDAY_10AM + 3 * 3600


class ManualClock:
    """Deterministic time source; call to read, ``advance`` to move forward."""

    def __init__(self, start: float = MONDAY_10AM):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_snapshot(timestamp: float = MONDAY_10AM, **overrides) -> ContextSnapshot:
    """Fallback snapshot with selected fields replaced."""
    return replace(ContextSnapshot.fallback(timestamp), **overrides)


def make_sample(timestamp: float, gaze: float, head: float, blink: float, **kwargs) -> CognitiveSample:
    kwargs.setdefault("context", ContextSnapshot.fallback(timestamp))
    return CognitiveSample(
        timestamp=timestamp,
        gaze_stability=gaze,
        head_stillness=head,
        blink_rate=blink,
        **kwargs,
    )


def make_metrics(
    timestamp: float,
    attention: float,
    load: float = 0.2,
    stress=(),
    quality: float = 0.8,
) -> ProcessedMetrics:
    return ProcessedMetrics(
        timestamp=timestamp,
        raw_attention=attention,
        filtered_attention=attention,
        cognitive_load=load,
        stress_indicators=tuple(stress),
        quality_score=quality,
    )


@pytest.fixture
def utc():
    return timezone.utc


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def logger():
    """Logger that keeps entries in memory without echoing to the console."""
    return LoggerService(session_level="DEBUG", system_level="DEBUG", echo=False)


@pytest.fixture
def bus(logger):
    return EventBus(logger=logger)


@pytest.fixture
def store():
    return InMemoryPatternStore()


@pytest.fixture
def providers():
    return ContextProviders(
        location=SimulatedLocationProvider(),
        network=SimulatedNetworkProvider(),
        battery=SimulatedBatteryProvider(),
    )
