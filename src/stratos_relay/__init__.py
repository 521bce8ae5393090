"""
Stratos Relay package.

Relays Stratos chain events to the SDS indexing node HTTP API.
"""

from .config import RelayConfig
from .event_processor import EventBinding, EventProcessor, HandlerKind
from .forwarder import SdsForwarder
from .relayer import StratosRelay

__all__ = [
    "RelayConfig",
    "StratosRelay",
    "EventProcessor",
    "EventBinding",
    "HandlerKind",
    "SdsForwarder",
]
__version__ = "0.1.0"
