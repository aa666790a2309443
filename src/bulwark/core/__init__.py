"""
Core error-processing components: normalization, the event channel,
connectivity, correlation and the error event processor.
"""

from .connectivity import ConnectivityMonitor, ManualConnectivity
from .correlation import CorrelationContext, CorrelationIdManager
from .events import EventBus, PublishError
from .normalizer import is_network_fault, is_transient, normalize
from .processor import ErrorEventProcessor, ErrorQueueEntry, LogQueueEntry

__all__ = [
    "normalize",
    "is_transient",
    "is_network_fault",
    "EventBus",
    "PublishError",
    "ConnectivityMonitor",
    "ManualConnectivity",
    "CorrelationContext",
    "CorrelationIdManager",
    "ErrorEventProcessor",
    "ErrorQueueEntry",
    "LogQueueEntry",
]
