from .apps import EmailPayServer, build_service
from .flows import setup_event_bus

__all__ = [
    "EmailPayServer",
    "build_service",
    "setup_event_bus",
]
