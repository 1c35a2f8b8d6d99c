"""
System Context Providers

Provider adapters backed by the host machine. Battery and network state
come from psutil; desktops have no position source, so location is a
statically configured point (or unavailable when none is configured).

psutil calls are blocking and run in a worker thread.
"""
import asyncio
from typing import Optional

import psutil

from aura_engine.services.sensors.base import (
    BatteryProvider,
    BatteryReading,
    LocationProvider,
    LocationReading,
    NetworkProvider,
    NetworkReading,
    SensorUnavailableError,
)
from aura_engine.types.context import Coordinates, EnvironmentType


_WIFI_PREFIXES = ("wl", "wlan", "wi-fi", "wifi", "airport")
_CELLULAR_PREFIXES = ("wwan", "ppp", "rmnet", "cellular")
_ETHERNET_PREFIXES = ("eth", "en", "ethernet")


def classify_interface(name: str) -> str:
    """Guess the link type from an interface name."""
    lowered = name.lower()
    if lowered.startswith(_WIFI_PREFIXES):
        return "wifi"
    if lowered.startswith(_CELLULAR_PREFIXES):
        return "cellular"
    if lowered.startswith(_ETHERNET_PREFIXES):
        return "ethernet"
    return "other"


class StaticLocationProvider(LocationProvider):
    """Position taken from configuration."""

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        environment_hint: Optional[str] = None,
    ):
        self._coordinates = (
            Coordinates(latitude=latitude, longitude=longitude)
            if latitude is not None and longitude is not None else None
        )
        self._hint = EnvironmentType(environment_hint) if environment_hint else None

    async def get_location(self) -> LocationReading:
        if self._coordinates is None:
            raise SensorUnavailableError("location", "no position configured")
        return LocationReading(coordinates=self._coordinates, environment_hint=self._hint)


class PsutilNetworkProvider(NetworkProvider):
    """Connectivity from the interfaces psutil reports as up."""

    async def get_network(self) -> NetworkReading:
        try:
            stats = await asyncio.to_thread(psutil.net_if_stats)
        except (OSError, psutil.Error) as e:
            raise SensorUnavailableError("network", str(e)) from e

        up = [
            name for name, st in stats.items()
            if st.isup and not name.lower().startswith("lo")
        ]
        if not up:
            return NetworkReading(is_connected=False, connection_type="none")

        types = {classify_interface(name) for name in up}
        # Prefer the best link when several are up
        for preferred in ("ethernet", "wifi", "cellular"):
            if preferred in types:
                return NetworkReading(is_connected=True, connection_type=preferred)
        return NetworkReading(is_connected=True, connection_type="other")


class PsutilBatteryProvider(BatteryProvider):
    """Battery from ``psutil.sensors_battery``."""

    async def get_battery(self) -> BatteryReading:
        try:
            battery = await asyncio.to_thread(psutil.sensors_battery)
        except (OSError, psutil.Error, AttributeError) as e:
            raise SensorUnavailableError("battery", str(e)) from e

        if battery is None:
            raise SensorUnavailableError("battery", "no battery reported")

        return BatteryReading(
            level=max(0.0, min(1.0, battery.percent / 100.0)),
            is_charging=bool(battery.power_plugged),
        )
