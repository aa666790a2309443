"""
Process-wide publish/subscribe channel.

Carries error notifications to UI subscribers and recovery signals
(offline, session expired) to the connectivity and session collaborators.
"""

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from bulwark.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class PublishError(Exception):
    """Raised after delivery when one or more subscribers failed."""

    def __init__(self, event_name: str, failures: List[Tuple[EventHandler, BaseException]]):
        self.event_name = event_name
        self.failures = failures
        names = ", ".join(type(exc).__name__ for _, exc in failures)
        super().__init__(
            f"{len(failures)} subscriber(s) failed for event '{event_name}': {names}"
        )


class EventBus:
    """Named-topic observer list.

    Handlers may be plain callables or coroutine functions; they run in
    subscription order and each one is awaited before the next.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""
        self._subscribers[event_name].append(handler)
        logger.debug(f"Subscribed handler to '{event_name}'",
                     subscribers=len(self._subscribers[event_name]))

        def unsubscribe() -> None:
            handlers = self._subscribers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, event_name: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver ``payload`` to every subscriber of ``event_name``.

        Returns:
            Number of handlers invoked

        Raises:
            PublishError: When any handler raised; all handlers still ran
        """
        payload = dict(payload or {})
        handlers = list(self._subscribers.get(event_name, []))
        failures: List[Tuple[EventHandler, BaseException]] = []

        for handler in handlers:
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                failures.append((handler, e))

        if failures:
            raise PublishError(event_name, failures)
        return len(handlers)

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def clear(self, event_name: Optional[str] = None) -> None:
        """Remove subscribers for one event, or for all events."""
        if event_name is None:
            self._subscribers.clear()
        else:
            self._subscribers.pop(event_name, None)
