# Core orchestration
from .runtime_controller import RuntimeController

__all__ = ["RuntimeController"]
