"""
WebSocket transport for one kernel channels connection.
Owns the socket and its single reader task; never reconnects.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..core.exceptions import KernelConnectionError, NotConnectedError
from ..core.logging import LoggerMixin


Frame = Union[str, bytes]
FrameHandler = Callable[[Frame], None]
CloseHandler = Callable[[str], None]
Connector = Callable[..., Awaitable[Any]]


class TransportState(str, Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    OPEN = 'open'
    CLOSED = 'closed'


class KernelTransport(LoggerMixin):
    """One WebSocket connection to a kernel's channels endpoint."""

    def __init__(self, ws_url: str, headers: Optional[Dict[str, str]] = None,
                 connector: Optional[Connector] = None, open_timeout: Optional[float] = 10):
        self.ws_url = ws_url
        self.headers = headers or {}
        self.open_timeout = open_timeout
        self._connector = connector or connect

        self.state = TransportState.IDLE
        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._on_frame: Optional[FrameHandler] = None
        self._on_close: Optional[CloseHandler] = None
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return self.state is TransportState.OPEN

    async def connect(self, on_frame: FrameHandler, on_close: Optional[CloseHandler] = None) -> None:
        """Open the socket and start delivering frames to ``on_frame``.

        Raises:
            KernelConnectionError: if the handshake does not complete.
        """
        if self.state is not TransportState.IDLE:
            raise KernelConnectionError("Transport can only be connected once", {
                "state": self.state.value
            })

        self._on_frame = on_frame
        self._on_close = on_close
        self.state = TransportState.CONNECTING

        self.log_debug("🔌 [Transport] Connecting to WebSocket", {
            "ws_url": self.ws_url,
            "has_headers": bool(self.headers)
        })

        try:
            self._ws = await self._connector(
                self.ws_url,
                additional_headers=self.headers,
                open_timeout=self.open_timeout,
                ping_interval=30,
                ping_timeout=10,
                close_timeout=10,
                max_size=None
            )
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
            self.state = TransportState.CLOSED
            self.log_error("❌ [Transport] Connection failed", {
                "ws_url": self.ws_url,
                "error": str(e),
                "error_type": type(e).__name__
            })
            raise KernelConnectionError("WebSocket handshake failed", {
                "ws_url": self.ws_url,
                "error": str(e)
            }) from e

        if self.state is not TransportState.CONNECTING:
            # close() ran while the handshake was in flight
            await self._ws.close()
            raise KernelConnectionError("Transport closed during handshake", {"ws_url": self.ws_url})

        self.state = TransportState.OPEN
        self._reader_task = asyncio.create_task(self._recv_loop())
        self.log_info("✅ [Transport] Connected", {"ws_url": self.ws_url})

    async def send(self, frame: Frame) -> None:
        """Send one frame.

        Raises:
            NotConnectedError: before ``connect()`` completes or after ``close()``.
        """
        if self.state is not TransportState.OPEN or self._ws is None:
            raise NotConnectedError("Transport is not connected", {"state": self.state.value})
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise NotConnectedError("Connection closed while sending", {"error": str(e)}) from e

    async def close(self) -> None:
        """Close the socket and stop the reader. Safe to call repeatedly."""
        already_closed = self.state is TransportState.CLOSED
        self.state = TransportState.CLOSED

        task = self._reader_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

        self._notify_close("transport closed")
        if not already_closed:
            self.log_debug("🔌 [Transport] Closed", {"ws_url": self.ws_url})

    async def _recv_loop(self) -> None:
        """Read frames until the socket closes or the task is cancelled."""
        reason = "connection closed"
        try:
            while True:
                frame = await self._ws.recv()
                try:
                    self._on_frame(frame)
                except Exception as e:
                    # One bad frame must not take the connection down.
                    self.log_error("❌ [Transport] Frame handler error", {
                        "error": str(e),
                        "error_type": type(e).__name__
                    })
        except ConnectionClosed as e:
            reason = f"connection closed (code {e.rcvd.code if e.rcvd else 'none'})"
            self.log_warning("🔌 [Transport] Connection closed by peer", {
                "ws_url": self.ws_url,
                "reason": reason
            })
        except asyncio.CancelledError:
            reason = "transport closed"
            raise
        finally:
            self.state = TransportState.CLOSED
            self._notify_close(reason)

    def _notify_close(self, reason: str) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        if self._on_close is not None:
            self._on_close(reason)
