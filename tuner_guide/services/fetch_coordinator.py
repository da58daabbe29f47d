"""
Fetch Coordination

Tracks which services have a program fetch in flight so that concurrent
callers never issue a second request for the same service.
"""
import logging
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


logger = logging.getLogger(__name__)


class FetchCoordinator:
    """
    Per-key in-flight guard for program fetches.

    All callers run on one event loop, so checking and claiming a key with no
    await in between is atomic. A claim is always released when its block
    exits, including on cancellation.
    """

    def __init__(self):
        self._in_flight: set[Hashable] = set()

    @contextmanager
    def claim(self, key: Hashable) -> Iterator[bool]:
        """
        Mark a key as in flight for the duration of the block.

        Yields:
            True if the key was claimed, False if another fetch already holds it
        """
        if key in self._in_flight:
            logger.debug("Fetch already in progress for %s, skipping", key)
            yield False
            return

        self._in_flight.add(key)
        try:
            yield True
        finally:
            self._in_flight.discard(key)

    def is_fetching(self, key: Hashable) -> bool:
        """Check if a fetch for this key is currently in progress."""
        return key in self._in_flight
