# Shared services
from .event_bus import EventBus, Subscription
from .logger_service import LoggerService, get_logger, initialize_logger

__all__ = [
    "EventBus",
    "Subscription",
    "LoggerService",
    "get_logger",
    "initialize_logger",
]
