# Context provider adapters
from .base import (
    BatteryProvider,
    BatteryReading,
    ContextProviders,
    LocationProvider,
    LocationReading,
    NetworkProvider,
    NetworkReading,
    SensorUnavailableError,
)
from .factory import create_context_providers
from .simulated_adapter import (
    SimulatedBatteryProvider,
    SimulatedLocationProvider,
    SimulatedNetworkProvider,
    SimulatedSampleSource,
)

__all__ = [
    "BatteryProvider",
    "BatteryReading",
    "ContextProviders",
    "LocationProvider",
    "LocationReading",
    "NetworkProvider",
    "NetworkReading",
    "SensorUnavailableError",
    "create_context_providers",
    "SimulatedBatteryProvider",
    "SimulatedLocationProvider",
    "SimulatedNetworkProvider",
    "SimulatedSampleSource",
]
