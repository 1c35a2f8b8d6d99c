"""
Context Provider Factory

Creates the provider adapters named by the sensor configuration.
"""
from typing import Optional

from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.services.sensors.base import ContextProviders
from aura_engine.services.sensors.simulated_adapter import (
    SimulatedBatteryProvider,
    SimulatedLocationProvider,
    SimulatedNetworkProvider,
)
from aura_engine.services.sensors.system_adapter import (
    PsutilBatteryProvider,
    PsutilNetworkProvider,
    StaticLocationProvider,
)
from aura_engine.types.config import SensorConfig, SensorMode
from aura_engine.types.context import Coordinates, EnvironmentType


def create_context_providers(
    config: SensorConfig,
    logger: Optional[LoggerService] = None,
) -> ContextProviders:
    """
    Create provider adapters based on configuration.

    Raises:
        ValueError: If the sensor mode is invalid.
    """
    logger = logger or get_logger()
    mode = config.mode if isinstance(config.mode, SensorMode) else _parse_mode(config.mode, logger)

    logger.system(
        "context_provider_factory",
        {"mode": mode.value, "static_location": config.latitude is not None},
        level="DEBUG",
    )

    if mode == SensorMode.SIMULATED:
        coords = (
            Coordinates(config.latitude, config.longitude)
            if config.latitude is not None and config.longitude is not None else None
        )
        hint = EnvironmentType(config.environment_hint) if config.environment_hint else EnvironmentType.HOME
        providers = ContextProviders(
            location=SimulatedLocationProvider(coordinates=coords, environment_hint=hint),
            network=SimulatedNetworkProvider(),
            battery=SimulatedBatteryProvider(),
        )
    else:
        providers = ContextProviders(
            location=StaticLocationProvider(config.latitude, config.longitude, config.environment_hint),
            network=PsutilNetworkProvider(),
            battery=PsutilBatteryProvider(),
        )

    logger.system("context_providers_created", providers.describe(), level="INFO")
    return providers


def _parse_mode(value: str, logger: LoggerService) -> SensorMode:
    try:
        return SensorMode(str(value).lower())
    except ValueError:
        logger.system("context_provider_invalid_mode", {"mode": value}, level="ERROR")
        raise ValueError(
            f"Invalid sensor mode: {value}. Valid modes are: "
            + ", ".join(m.value for m in SensorMode)
        ) from None
