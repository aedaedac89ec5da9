"""Signal-control engine integration.

This package provides:
- SignalServiceClient: JSON client for the signal-control REST service
- RestSignalEngine: signal engine adapter driven by the orchestrator
- load_signal_model: static control-unit/detector catalog from the data directory
"""

from .engine import RestSignalEngine
from .model import MODEL_FILE, load_signal_model
from .rest_client import SignalServiceClient

__all__ = [
    "RestSignalEngine",
    "SignalServiceClient",
    "load_signal_model",
    "MODEL_FILE",
]
