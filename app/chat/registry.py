"""Directory of online users for real-time chat."""

import logging
from typing import Dict, List, Optional

from app.core import messages
from .connection import Connection


logger = logging.getLogger("app.chat.registry")


class ConnectionRegistry:
    """Maps each online user identity to its single live connection.

    All methods except ``close_all`` are synchronous, so mutations are
    serialized by the event loop without locking.
    """

    def __init__(self):
        # identity -> Connection
        self._connections: Dict[int, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, identity: int) -> bool:
        return identity in self._connections

    def register(self, identity: int, connection: Connection) -> Optional[Connection]:
        """
        Insert or replace the entry for ``identity``.

        Returns:
            The superseded connection, if a different one was registered
        """
        previous = self._connections.get(identity)
        self._connections[identity] = connection

        logger.info(
            "User registered: user_id=%s, replaced=%s, online_users=%d",
            identity,
            previous is not None and previous is not connection,
            len(self._connections),
        )

        if previous is connection:
            return None
        return previous

    def unregister(self, identity: Optional[int], connection: Optional[Connection] = None) -> bool:
        """
        Remove the entry for ``identity`` if present.

        When ``connection`` is given, the entry is only removed if it still
        points at that connection, so a superseded socket closing late never
        evicts its replacement.
        """
        if identity is None:
            return False
        current = self._connections.get(identity)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False

        del self._connections[identity]
        logger.info(
            "User unregistered: user_id=%s, online_users=%d",
            identity,
            len(self._connections),
        )
        return True

    def lookup(self, identity: int) -> Optional[Connection]:
        """Get the live connection for ``identity``, or None if offline."""
        connection = self._connections.get(identity)
        if connection is not None and connection.is_closed:
            return None
        return connection

    def online_users(self) -> List[int]:
        return list(self._connections)

    async def close_all(self, code: int = 1001) -> None:
        """Close every registered connection and empty the registry."""
        connections = list(self._connections.values())
        self._connections.clear()
        for connection in connections:
            await connection.close(code=code, reason=messages.SERVER_SHUTTING_DOWN)
        if connections:
            logger.info("Closed %d chat connections", len(connections))
