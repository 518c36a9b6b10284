"""
Kernel session: the public face of one kernel connection.

A session composes a ``KernelTransport``, an ``ExecutionTracker`` and the
message codec. ``execute_code`` suspends until the kernel has reported the
request idle and sent its reply; every output event for that request reaches
the sink before it returns.
"""

import asyncio
import posixpath
from typing import Optional

from ..core.config import ClientConfig, KernelEndpoint
from ..core.exceptions import (
    ExecutionAbortedError,
    ExecutionError,
    ExecutionTimeoutError,
    MalformedFrameError,
    NotConnectedError,
    RemoteKernelError,
    SessionClosedError,
)
from ..core.jupyter_message_factory import ExecutionRequest, JupyterMessageFactory, new_msg_id
from ..core.logging import LoggerMixin, debug_log
from .output_router import OutputEvent, OutputSink
from .tracker import ExecutionOutcome, ExecutionTracker, OutcomeStatus
from .transport import Connector, Frame, KernelTransport


def _discard(event: OutputEvent) -> None:
    pass


class KernelSession(LoggerMixin):
    """A connected kernel that runs code and streams back its output."""

    def __init__(self, endpoint: KernelEndpoint, session_id: Optional[str] = None,
                 transport: Optional[KernelTransport] = None, connector: Optional[Connector] = None,
                 open_timeout: Optional[float] = 10, execution_timeout: Optional[float] = None):
        self.endpoint = endpoint
        self.session_id = session_id or new_msg_id()
        self.execution_timeout = execution_timeout

        self._transport = transport or KernelTransport(
            endpoint.channel_url(self.session_id),
            endpoint.headers(),
            connector=connector,
            open_timeout=open_timeout
        )
        self._tracker = ExecutionTracker()
        self._disposed = False

    @classmethod
    def from_config(cls, config: ClientConfig, kernel_id: str,
                    connector: Optional[Connector] = None) -> 'KernelSession':
        return cls(
            config.endpoint(kernel_id),
            connector=connector,
            open_timeout=config.open_timeout,
            execution_timeout=config.execution_timeout
        )

    @property
    def kernel_id(self) -> str:
        return self.endpoint.kernel_id

    @property
    def closed(self) -> bool:
        """True once disposed or once the connection has gone away."""
        return self._disposed or self._tracker.closed

    @property
    def pending_count(self) -> int:
        return len(self._tracker)

    async def connect(self) -> None:
        """Open the channels connection.

        Raises:
            KernelConnectionError: if the handshake fails. The session is
                unusable afterwards; create a new one to retry.
        """
        if self._disposed:
            raise SessionClosedError("Session has been disposed", {"kernel_id": self.kernel_id})
        await self._transport.connect(self._handle_frame, self._handle_disconnect)

    async def execute_code(self, code: str, sink: Optional[OutputSink] = None,
                           timeout: Optional[float] = None) -> ExecutionOutcome:
        """Run ``code`` and wait for the kernel to finish it.

        Output events are passed to ``sink`` in arrival order. Returns the
        ``ok`` outcome.

        Raises:
            SessionClosedError: the session was disposed.
            NotConnectedError: the connection is not open.
            ExecutionError: the kernel reported an error for this code.
            ExecutionAbortedError: the connection dropped or the session was
                disposed while waiting.
            ExecutionTimeoutError: ``timeout`` (or the session default) elapsed.
        """
        if self._disposed:
            raise SessionClosedError("Session has been disposed", {"kernel_id": self.kernel_id})
        if not self._transport.is_open:
            raise NotConnectedError("Session is not connected", {"kernel_id": self.kernel_id})

        request = ExecutionRequest(code=code, session_id=self.session_id)
        correlation_id = request.correlation_id
        future = self._tracker.register(correlation_id, sink or _discard)

        try:
            await self._transport.send(JupyterMessageFactory.encode(request))
        except NotConnectedError:
            self._tracker.abort(correlation_id, "send failed")
            raise

        self.log_debug("📤 [Session] Execute request sent", {
            "kernel_id": self.kernel_id,
            "correlation_id": correlation_id,
            "code_length": len(code)
        })

        if timeout is None:
            timeout = self.execution_timeout
        try:
            outcome = await asyncio.wait_for(asyncio.shield(future), timeout)
        except asyncio.TimeoutError:
            self._tracker.abort(correlation_id, "timed out")
            raise ExecutionTimeoutError("Execution timed out", details={
                "correlation_id": correlation_id,
                "timeout": timeout
            })
        except asyncio.CancelledError:
            self._tracker.abort(correlation_id, "caller cancelled")
            raise

        return self._raise_for_outcome(correlation_id, outcome)

    async def dispose(self) -> None:
        """Abort pending executions and close the connection. Idempotent."""
        if self._disposed:
            return
        self._disposed = True

        # Closing the tracker first means no sink is called from here on.
        self._tracker.close("session disposed")
        await self._transport.close()

        self.log_info("🧹 [Session] Session disposed", {"kernel_id": self.kernel_id})

    def _raise_for_outcome(self, correlation_id: str, outcome: ExecutionOutcome) -> ExecutionOutcome:
        if outcome.status is OutcomeStatus.OK:
            return outcome

        if outcome.status is OutcomeStatus.FAILED:
            details = {"correlation_id": correlation_id}
            if outcome.error is not None:
                details.update({"name": outcome.error.name, "message": outcome.error.message})
                message = f"{outcome.error.name}: {outcome.error.message}"
            else:
                message = outcome.reason or "Execution failed"
            raise ExecutionError(message, outcome=outcome, details=details)

        raise ExecutionAbortedError(
            f"Execution aborted: {outcome.reason}",
            outcome=outcome,
            details={"correlation_id": correlation_id}
        )

    def _handle_frame(self, frame: Frame) -> None:
        try:
            envelope = JupyterMessageFactory.decode(frame)
        except MalformedFrameError as e:
            self.log_warning("⚠️ [Session] Malformed frame dropped", {
                "kernel_id": self.kernel_id,
                "error": str(e)
            })
            return
        self._tracker.dispatch(envelope)

    def _handle_disconnect(self, reason: str) -> None:
        if not self._tracker.closed:
            self.log_warning("🔌 [Session] Kernel connection lost", {
                "kernel_id": self.kernel_id,
                "reason": reason,
                "pending": len(self._tracker)
            })
        self._tracker.close(reason)


CWD_BOOTSTRAP_TEMPLATE = """\
import os
import sys
try:
    _rk_target = {target!r}
    if _rk_target != '':
        if os.path.exists(_rk_target):
            os.chdir(_rk_target)
        else:
            _rk_home = os.path.expanduser('~/' + _rk_target)
            if os.path.exists(_rk_home):
                os.chdir(_rk_home)
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
except Exception:
    pass
"""


def working_directory_bootstrap(document_path: Optional[str], language: str) -> Optional[str]:
    """Code that moves the kernel into the document's folder, if applicable."""
    if not document_path or language.lower() != 'python':
        return None
    folder = posixpath.dirname(document_path.lstrip('/'))
    if not folder:
        return None
    return CWD_BOOTSTRAP_TEMPLATE.format(target=folder)


async def run_bootstrap(session: KernelSession, document_path: Optional[str], language: str) -> bool:
    """Best-effort working directory fix-up. Never raises a session error.

    Returns True when the bootstrap code ran and finished cleanly.
    """
    code = working_directory_bootstrap(document_path, language)
    if code is None:
        return False
    try:
        await session.execute_code(code, _discard)
    except RemoteKernelError as e:
        debug_log("⚠️ [Bootstrap] Working directory fix-up failed", {
            "kernel_id": session.kernel_id,
            "document_path": document_path,
            "error": str(e)
        }, "DEBUG")
        return False
    return True
