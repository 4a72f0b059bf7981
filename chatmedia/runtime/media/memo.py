"""Relay memo -- remembers URLs that only loaded through a relay."""

from __future__ import annotations

import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)

DEFAULT_MEMO_SIZE = 512


class RelayMemo:
    """Bounded LRU of normalized URLs whose direct attempt failed.

    A delivery created for a remembered URL skips the direct attempt and
    goes straight to the relay.  Shared between instances, so it is the
    only piece of cross-instance state and is off unless configured.
    """

    def __init__(self, max_size: int = DEFAULT_MEMO_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._entries: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def prefers_relay(self, url: str) -> bool:
        if url not in self._entries:
            return False
        self._entries.move_to_end(url)
        return True

    def remember(self, url: str) -> None:
        self._entries[url] = None
        self._entries.move_to_end(url)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("[memo] evicted %s", evicted)

    def forget(self, url: str) -> None:
        self._entries.pop(url, None)

    def clear(self) -> None:
        self._entries.clear()
