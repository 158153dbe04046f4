import threading
from typing import Dict, Iterable, Set


class ConnectionRegistry:
    """Maps an authenticated user id to its live channel.

    Last connection wins: registering a second channel for the same user
    makes it the one reported for that user. Superseded channels stay
    addressable by transport key until they close. A channel only needs
    ``key``, ``identity`` and ``is_open``.
    """

    def __init__(self):
        self._by_identity: Dict[int, object] = {}
        self._by_key: Dict[str, object] = {}
        self._lock = threading.Lock()

    def register(self, identity, channel) -> None:
        with self._lock:
            self._by_identity[identity] = channel
            self._by_key[channel.key] = channel

    def unregister(self, identity, channel=None) -> bool:
        """Drop the user's channel.

        When ``channel`` is given the user entry is only removed if that
        channel is still the current one, so a stale socket closing cannot
        evict its replacement. Returns True if the user entry was removed.
        """
        with self._lock:
            if channel is not None:
                self._by_key.pop(channel.key, None)
            current = self._by_identity.get(identity)
            if current is None or (channel is not None and current is not channel):
                return False
            self._by_key.pop(current.key, None)
            del self._by_identity[identity]
            return True

    def channel_for(self, identity):
        return self._by_identity.get(identity)

    def channel_for_key(self, key):
        return self._by_key.get(key)

    def is_reachable(self, identity) -> bool:
        channel = self._by_identity.get(identity)
        return bool(channel is not None and channel.is_open)

    def reachable_subset(self, identities: Iterable) -> Set:
        return {i for i in identities if self.is_reachable(i)}

    def __len__(self):
        return len(self._by_identity)
