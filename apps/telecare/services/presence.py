"""In-memory presence registry: user identity -> live connection handles.

One instance is owned per server process (see `telecare.core.dependencies`).
Every method runs to completion without awaiting, so on a single event loop
no lock is needed. Running several workers requires moving this state to a
shared store keyed by user id.
"""

from __future__ import annotations

from collections.abc import Hashable


class PresenceRegistry:
    """Tracks which live connections belong to which user identity."""

    def __init__(self) -> None:
        self._groups: dict[str, set[Hashable]] = {}
        self._owners: dict[Hashable, str] = {}

    def register(self, user_id: str, connection: Hashable) -> None:
        current = self._owners.get(connection)
        if current == user_id:
            return
        if current is not None:
            # A connection belongs to exactly one identity.
            self._discard(current, connection)
        self._owners[connection] = user_id
        self._groups.setdefault(user_id, set()).add(connection)

    def unregister(self, connection: Hashable) -> str | None:
        user_id = self._owners.pop(connection, None)
        if user_id is not None:
            self._discard(user_id, connection)
        return user_id

    def is_online(self, user_id: str) -> bool:
        return bool(self._groups.get(user_id))

    def connections_for(self, user_id: str) -> list[Hashable]:
        return list(self._groups.get(user_id, ()))

    def online_user_ids(self) -> list[str]:
        return sorted(self._groups)

    def clear(self) -> None:
        self._groups.clear()
        self._owners.clear()

    def __len__(self) -> int:
        return len(self._owners)

    def _discard(self, user_id: str, connection: Hashable) -> None:
        group = self._groups.get(user_id)
        if group is None:
            return
        group.discard(connection)
        if not group:
            self._groups.pop(user_id, None)


__all__ = ["PresenceRegistry"]
