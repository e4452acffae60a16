"""
Terminal Transport
Thin async wrapper over the websocket connection to the execution endpoint.

The ConnectionManager only talks to the Transport interface, so tests can
inject an in-memory transport through a TransportFactory.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidURI, WebSocketException

from appforge.core.exceptions import ConnectionFailedError, TransportClosedError
from appforge.core.logging_config import logger


class Transport(ABC):
    """Bidirectional text-frame channel"""

    @abstractmethod
    async def send(self, message: str) -> None:
        """Write one frame; raises TransportClosedError when closed"""

    @abstractmethod
    async def recv(self) -> Union[str, bytes]:
        """Read one frame; raises TransportClosedError when closed"""

    @abstractmethod
    async def close(self) -> None:
        pass


TransportFactory = Callable[[str], Awaitable[Transport]]


class WebSocketTransport(Transport):

    def __init__(self, websocket):
        self._ws = websocket

    async def send(self, message: str) -> None:
        try:
            await self._ws.send(message)
        except ConnectionClosed as e:
            raise TransportClosedError(f"Websocket closed while sending: {e}") from e

    async def recv(self) -> Union[str, bytes]:
        try:
            return await self._ws.recv()
        except ConnectionClosed as e:
            raise TransportClosedError(f"Websocket closed: {e}") from e

    async def close(self) -> None:
        await self._ws.close()


async def connect_websocket(url: str) -> Transport:
    """Default TransportFactory: open a websocket to the terminal server"""
    try:
        ws = await websockets.connect(
            url,
            ping_interval=30,
            ping_timeout=10,
            close_timeout=5
        )
    except InvalidURI as e:
        logger.error(f"[Transport] Invalid terminal URI: {url}")
        raise ConnectionFailedError(url, reason=f"invalid URI: {e}") from e
    except (OSError, WebSocketException) as e:
        raise ConnectionFailedError(url, reason=f"{type(e).__name__}: {e}") from e

    return WebSocketTransport(ws)
