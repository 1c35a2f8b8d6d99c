"""
Simulated Context Providers

Stub implementations of the provider adapters for testing and development
without platform sensors, plus a simulated sample source that streams
synthetic CognitiveSamples onto the bus the way a camera pipeline would.
"""
import asyncio
import math
import random
import time
from typing import Callable, Optional

from aura_engine.services.event_bus import EventBus
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.services.sensors.base import (
    BatteryProvider,
    BatteryReading,
    LocationProvider,
    LocationReading,
    NetworkProvider,
    NetworkReading,
    SensorUnavailableError,
)
from aura_engine.types.cognitive import CognitiveSample, clamp
from aura_engine.types.context import Coordinates, EnvironmentType
from aura_engine.types.domain_events import DomainEvent, DomainEventType


class SimulatedLocationProvider(LocationProvider):
    """
    Fixed or scripted position. ``available=False`` simulates a denied
    location permission; ``delay`` simulates a slow fix.
    """

    def __init__(
        self,
        coordinates: Optional[Coordinates] = None,
        environment_hint: Optional[EnvironmentType] = EnvironmentType.HOME,
        available: bool = True,
        delay: float = 0.0,
    ):
        self.coordinates = coordinates or Coordinates(latitude=59.9139, longitude=10.7522)
        self.environment_hint = environment_hint
        self.available = available
        self.delay = delay
        self.calls = 0

    async def get_location(self) -> LocationReading:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.available:
            raise SensorUnavailableError("location", "permission denied")
        return LocationReading(coordinates=self.coordinates, environment_hint=self.environment_hint)


class SimulatedNetworkProvider(NetworkProvider):
    def __init__(self, connection_type: str = "wifi", is_connected: bool = True, available: bool = True):
        self.connection_type = connection_type
        self.is_connected = is_connected
        self.available = available
        self.calls = 0

    async def get_network(self) -> NetworkReading:
        self.calls += 1
        if not self.available:
            raise SensorUnavailableError("network")
        return NetworkReading(
            is_connected=self.is_connected,
            connection_type=self.connection_type if self.is_connected else "none",
        )


class SimulatedBatteryProvider(BatteryProvider):
    def __init__(self, level: float = 0.8, is_charging: bool = False, available: bool = True):
        self.level = level
        self.is_charging = is_charging
        self.available = available

    async def get_battery(self) -> BatteryReading:
        if not self.available:
            raise SensorUnavailableError("battery", "no battery reported")
        return BatteryReading(level=clamp(self.level), is_charging=self.is_charging)


class SimulatedSampleSource:
    """
    Background task publishing synthetic CognitiveSamples on
    ``cognitive.sample.raw``.

    Attention drifts on a slow sine so a dev session walks through
    several cognitive states.
    """

    def __init__(
        self,
        bus: EventBus,
        interval_seconds: float = 2.0,
        period_seconds: float = 600.0,
        seed: Optional[int] = None,
        logger: Optional[LoggerService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._bus = bus
        self._interval = interval_seconds
        self._period = period_seconds
        self._random = random.Random(seed)
        self._logger = logger or get_logger()
        self._clock = clock

        self._streaming_task: Optional[asyncio.Task] = None
        self._start_time: float = 0.0
        self._published: int = 0

    def is_streaming(self) -> bool:
        return self._streaming_task is not None and not self._streaming_task.done()

    async def start_streaming(self) -> None:
        if self.is_streaming():
            self._logger.system("simulated_samples_already_streaming", {}, level="WARNING")
            return

        self._start_time = self._clock()
        self._streaming_task = asyncio.create_task(self._stream_samples())
        self._logger.system(
            "simulated_samples_streaming_started",
            {"interval_seconds": self._interval},
            level="INFO",
        )

    async def stop_streaming(self) -> None:
        if self._streaming_task:
            self._streaming_task.cancel()
            try:
                await self._streaming_task
            except asyncio.CancelledError:
                pass
            self._streaming_task = None
            self._logger.system(
                "simulated_samples_streaming_stopped",
                {"published": self._published},
                level="INFO",
            )

    def generate_sample(self, timestamp: float) -> CognitiveSample:
        """Synthetic sample; focus rises and falls over ``period_seconds``."""
        elapsed = timestamp - self._start_time
        focus = 0.5 + 0.4 * math.sin(2 * math.pi * elapsed / self._period)
        noise = 0.05

        return CognitiveSample(
            timestamp=timestamp,
            gaze_stability=clamp(focus + self._random.uniform(-noise, noise)),
            head_stillness=clamp(0.6 + 0.3 * focus + self._random.uniform(-noise, noise)),
            blink_rate=max(0.0, 26 - 12 * focus + self._random.uniform(-2, 2)),
            confidence=0.8,
        )

    async def _stream_samples(self) -> None:
        try:
            while True:
                sample = self.generate_sample(self._clock())
                self._bus.publish(DomainEvent(
                    event_type=DomainEventType.SAMPLE_RAW,
                    payload=sample,
                    timestamp=sample.timestamp,
                ))
                self._published += 1
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.system(
                "simulated_samples_streaming_error",
                {"error": str(e), "error_type": type(e).__name__},
                level="ERROR",
            )
            raise
