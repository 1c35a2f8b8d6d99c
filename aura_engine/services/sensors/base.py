"""
Base Context Provider Protocol

Defines the interfaces the ContextSensor uses to reach platform sensors
(position, network, battery). Adapters either return a reading or raise
SensorUnavailableError; the sensor turns any failure into the documented
fallback sub-result, so adapters never need their own fallbacks.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aura_engine.types.context import Coordinates, EnvironmentType


class SensorUnavailableError(Exception):
    """Permission denied, hardware absent, or the platform API failed."""

    def __init__(self, sensor: str, reason: str = "unavailable"):
        super().__init__(f"{sensor} sensor unavailable: {reason}")
        self.sensor = sensor
        self.reason = reason


@dataclass(frozen=True)
class LocationReading:
    coordinates: Coordinates
    environment_hint: Optional[EnvironmentType] = None


@dataclass(frozen=True)
class NetworkReading:
    is_connected: bool
    connection_type: str  # "wifi", "ethernet", "cellular", "other", "none"


@dataclass(frozen=True)
class BatteryReading:
    level: float  # 0-1
    is_charging: bool


class LocationProvider(ABC):
    """Source of the device position."""

    @abstractmethod
    async def get_location(self) -> LocationReading:
        """
        Read the current position.

        Raises:
            SensorUnavailableError: Permission denied or no position source.
        """
        pass


class NetworkProvider(ABC):
    """Source of connectivity state."""

    @abstractmethod
    async def get_network(self) -> NetworkReading:
        """
        Read the current connectivity state.

        Raises:
            SensorUnavailableError: If the state cannot be determined.
        """
        pass


class BatteryProvider(ABC):
    """Source of power state."""

    @abstractmethod
    async def get_battery(self) -> BatteryReading:
        """
        Read the current battery state.

        Raises:
            SensorUnavailableError: If the device reports no battery.
        """
        pass


@dataclass
class ContextProviders:
    """The three provider adapters one ContextSensor consumes."""
    location: LocationProvider
    network: NetworkProvider
    battery: BatteryProvider

    def describe(self) -> Dict[str, Any]:
        return {
            "location": type(self.location).__name__,
            "network": type(self.network).__name__,
            "battery": type(self.battery).__name__,
        }
