"""Reference-counted registry of live feed subscribers."""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    """Counts active subscribers and owns the active/idle transition.

    ``on_idle`` runs on the 1 -> 0 transition while the registry lock is
    held, so a concurrent register cannot interleave with the reset.

    Usage:
        >>> registry = SubscriberRegistry(on_idle=state.reset)
        >>> registry.register()
        >>> registry.deregister()  # triggers state.reset()
    """

    def __init__(
        self,
        on_idle: Callable[[], None] | None = None,
        name: str = "live-feed",
    ):
        self.name = name
        self._on_idle = on_idle
        self._count = 0
        self._active = False
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    @property
    def is_active(self) -> bool:
        """True iff at least one subscriber is registered."""
        return self._active

    @property
    def generation(self) -> int:
        """Incremented on every 1 -> 0 transition."""
        return self._generation

    def register(self) -> int:
        """Add a subscriber.

        Returns:
            Subscriber count after registration
        """
        with self._lock:
            self._count += 1
            if self._count == 1:
                self._active = True
            logger.info(f"[{self.name}] New subscriber connected. Total subscribers: {self._count}")
            return self._count

    def deregister(self) -> int:
        """Remove a subscriber.

        A deregister with no registered subscribers is ignored, so the count
        never drops below zero and the reset never runs twice.

        Returns:
            Subscriber count after deregistration
        """
        with self._lock:
            if self._count == 0:
                logger.warning(f"[{self.name}] Deregister with no active subscribers ignored")
                return 0

            self._count -= 1
            logger.info(f"[{self.name}] Subscriber disconnected. Total subscribers: {self._count}")

            if self._count == 0:
                self._active = False
                self._generation += 1
                if self._on_idle:
                    self._on_idle()
                logger.info(f"[{self.name}] All subscribers disconnected. Stopping event generation.")
            return self._count
