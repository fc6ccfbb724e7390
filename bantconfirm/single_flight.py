# Filename: bantconfirm/single_flight.py

import threading
from contextlib import contextmanager
from typing import List, Set, Tuple

from bantconfirm.errors import ConflictError


class SingleFlight:
    """
    Process-local registry of user actions currently being processed.

    - Keys are (actor, action) pairs, e.g. ("user-42", "enquiry.confirm").
    - A key is held for the duration of the request and always released.
    - A second request for a held key is rejected, not queued.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: Set[Tuple[str, str]] = set()

    def acquire(self, actor: str, action: str) -> bool:
        key = (str(actor), action)
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, actor: str, action: str) -> None:
        with self._lock:
            self._keys.discard((str(actor), action))

    def snapshot(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._keys)

    @contextmanager
    def guard(self, actor: str, action: str):
        if not self.acquire(actor, action):
            raise ConflictError("This action is already in progress. Please wait for it to finish.")
        try:
            yield
        finally:
            self.release(actor, action)


# Global, process-local singleton
IN_FLIGHT = SingleFlight()
