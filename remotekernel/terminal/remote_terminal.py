"""
Remote terminal over the Jupyter terminals WebSocket.

Frames are JSON arrays: ``["stdin", data]`` and ``["set_size", rows, cols]``
go out, ``["stdout", data]`` and ``["disconnect", ...]`` come in.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..core.logging import LoggerMixin
from ..kernel.transport import Connector


NORMAL_CLOSE_CODES = (1000, 1005)


class TerminalState(str, Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    OPEN = 'open'
    CLOSED = 'closed'


@dataclass(frozen=True)
class TerminalDimensions:
    rows: int
    columns: int


class RemoteTerminal(LoggerMixin):
    """A pseudo terminal bridged to a shell on the Jupyter server."""

    def __init__(self, ws_url: str, token: str = '',
                 on_output: Optional[Callable[[str], None]] = None,
                 on_close: Optional[Callable[[int], None]] = None,
                 connector: Optional[Connector] = None, open_timeout: Optional[float] = 10):
        self.ws_url = ws_url
        self.token = token
        self.open_timeout = open_timeout
        self._on_output = on_output
        self._on_close = on_close
        self._connector = connector or connect

        self.state = TerminalState.IDLE
        self.dimensions: Optional[TerminalDimensions] = None
        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._close_fired = False

    async def open(self, initial_dimensions: Optional[TerminalDimensions] = None) -> None:
        """Connect; cached dimensions are sent as soon as the socket opens."""
        if initial_dimensions is not None:
            self.dimensions = initial_dimensions
        await self._connect()

    async def close(self) -> None:
        """Close the terminal connection. Safe to call repeatedly."""
        if self.state is TerminalState.OPEN:
            self._write('\r\n*** Terminal connection closed ***\r\n')

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

        self.state = TerminalState.CLOSED
        self._fire_close(0)

    async def handle_input(self, data: str) -> None:
        if self.state is TerminalState.OPEN:
            await self._send(['stdin', data])

    async def set_dimensions(self, dimensions: TerminalDimensions) -> None:
        self.dimensions = dimensions
        if self.state is TerminalState.OPEN:
            await self._send(['set_size', dimensions.rows, dimensions.columns])

    async def _connect(self) -> None:
        self.state = TerminalState.CONNECTING
        headers = {'Authorization': f'token {self.token}'} if self.token else {}

        try:
            self._ws = await self._connector(
                self.ws_url,
                additional_headers=headers,
                open_timeout=self.open_timeout
            )
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
            self.state = TerminalState.CLOSED
            self.log_error("❌ [Terminal] Connection failed", {
                "ws_url": self.ws_url,
                "error": str(e),
                "error_type": type(e).__name__
            })
            self._write(f'\r\n*** Unable to connect to terminal: {e} ***\r\n')
            self._fire_close(1)
            return

        self.state = TerminalState.OPEN
        self._write('\r\n*** Connected to remote terminal ***\r\n\r\n')
        if self.dimensions is not None:
            await self.set_dimensions(self.dimensions)

        self._reader_task = asyncio.create_task(self._recv_loop())

    async def _recv_loop(self) -> None:
        try:
            while True:
                raw = await self._ws.recv()
                if not self._handle_message(raw):
                    await self._ws.close()
                    break
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else 1006
            reason = e.rcvd.reason if e.rcvd is not None else ''
            suffix = f': {reason}' if reason else ''
            self._write(f'\r\n*** Terminal connection closed (code {code}{suffix}) ***\r\n')
            if code not in NORMAL_CLOSE_CODES:
                self._write(
                    'Hint: the terminal may have failed to start because the remote working '
                    'directory does not exist, permissions are missing, or the server is misconfigured.\r\n'
                )
        finally:
            self.state = TerminalState.CLOSED
            self._fire_close(0)

    def _handle_message(self, raw) -> bool:
        """Handle one inbound frame. Returns False once the server disconnects."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            self.log_debug("🔇 [Terminal] Ignoring non-JSON frame")
            return True

        if not isinstance(message, list) or not message:
            return True

        kind = message[0]
        if kind == 'stdout' and len(message) > 1 and isinstance(message[1], str):
            self._write(message[1])
        elif kind == 'disconnect':
            self._write('\r\n*** Terminal disconnected ***\r\n')
            return False
        return True

    async def _send(self, message: list) -> None:
        try:
            await self._ws.send(json.dumps(message))
        except ConnectionClosed as e:
            self.log_warning("⚠️ [Terminal] Send on closed connection dropped", {"error": str(e)})

    def _write(self, text: str) -> None:
        # Nothing reaches the consumer after its close signal
        if self._on_output is not None and not self._close_fired:
            self._on_output(text)

    def _fire_close(self, code: int) -> None:
        if self._close_fired:
            return
        self._close_fired = True
        if self._on_close is not None:
            self._on_close(code)
