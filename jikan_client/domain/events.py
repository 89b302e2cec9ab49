import logging
from typing import Callable, List

from jikan_client.domain.protocols import DebugListener

logger = logging.getLogger("jikan_client.events")


class DebugEvents:
    """Publish-only debug channel. Listeners receive (scope, message)."""

    def __init__(self):
        self._listeners: List[DebugListener] = []

    def subscribe(self, listener: DebugListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def once(self, listener: DebugListener) -> Callable[[], None]:
        """Register a listener that is removed after its first event."""
        def wrapper(scope: str, message: str) -> None:
            unsubscribe()
            listener(scope, message)

        unsubscribe = self.subscribe(wrapper)
        return unsubscribe

    def emit(self, scope: str, message: str) -> None:
        logger.debug(f"[{scope}] {message}")
        for listener in list(self._listeners):
            try:
                listener(scope, message)
            except Exception as e:
                # A broken listener must not break the pipeline
                logger.error(f"Debug listener {listener!r} failed: {e}")
