"""
Connectivity collaborators.

The host application reports connectivity changes; the processor and the
normalizer only ask whether the runtime is currently online.
"""

from typing import Protocol, runtime_checkable

from bulwark.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ConnectivityMonitor(Protocol):
    """Anything that can report the current connectivity state."""

    def is_online(self) -> bool:
        ...


class ManualConnectivity:
    """Connectivity state toggled explicitly by the host application."""

    def __init__(self, online: bool = True):
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self) -> None:
        if not self._online:
            logger.info("Connectivity restored")
        self._online = True

    def set_offline(self) -> None:
        if self._online:
            logger.warning("Connectivity lost")
        self._online = False
