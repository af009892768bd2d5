"""Per-socket connection state for the chat server."""

import enum
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState


logger = logging.getLogger("app.chat.connection")


class ConnectionState(str, enum.Enum):
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class Connection:
    """A live client socket and the identity bound to it.

    The identity is set once by ``authenticate`` and never changes afterwards.
    Sends on a closed connection are dropped.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.state = ConnectionState.PENDING
        self._identity: Optional[int] = None

    def __repr__(self) -> str:
        return f"<Connection identity={self._identity} state={self.state.value}>"

    @property
    def identity(self) -> Optional[int]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def authenticate(self, identity: int) -> None:
        if self.state is not ConnectionState.PENDING:
            raise RuntimeError(f"Cannot authenticate a connection in state {self.state.value}")
        self._identity = identity
        self.state = ConnectionState.AUTHENTICATED

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """
        Send a JSON event to the client.

        Returns:
            True if the frame was written, False if the connection is closed
            or the transport failed (the connection is then marked closed)
        """
        if self.is_closed:
            return False
        try:
            await self.websocket.send_json(event)
            return True
        except RuntimeError as e:
            logger.warning("Failed to send WebSocket event to user %s: %s", self._identity, e)
        except Exception as e:
            logger.error(
                "Unexpected error sending WebSocket event to user %s: %s",
                self._identity, e, exc_info=True
            )
        self.mark_closed()
        return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the underlying socket. Safe to call more than once."""
        self.mark_closed()
        # A failed send marks the connection closed but leaves the socket open
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            logger.debug("WebSocket already closed for user %s: %s", self._identity, e)
        except Exception as e:
            logger.warning("Failed to close WebSocket for user %s: %s", self._identity, e)
