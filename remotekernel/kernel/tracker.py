"""
Execution tracking for a single kernel connection.

Every execute request is registered under its correlation id (the request's
``msg_id``). Inbound messages are matched on their parent id; output messages
go to the execution's sink. The outcome settles once both the iopub ``idle``
status and the shell ``execute_reply`` have arrived, in either order.

``dispatch`` is synchronous and is only ever called from the connection's one
reader task, which keeps per-execution ordering equal to frame order.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..core.exceptions import DuplicateCorrelationError, SessionClosedError
from ..core.jupyter_message_factory import Envelope
from ..core.logging import LoggerMixin
from .output_router import ErrorOutput, OutputEvent, OutputRouter, OutputSink


class OutcomeStatus(str, Enum):
    OK = 'ok'
    FAILED = 'failed'
    ABORTED = 'aborted'


@dataclass(frozen=True)
class ExecutionOutcome:
    """Terminal state of one execution."""

    status: OutcomeStatus
    error: Optional[ErrorOutput] = None
    reason: Optional[str] = None
    execution_count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @classmethod
    def aborted(cls, reason: str) -> 'ExecutionOutcome':
        return cls(OutcomeStatus.ABORTED, reason=reason)


class _PendingExecution:
    __slots__ = ('sink', 'future', 'error', 'failure_reason', 'execution_count',
                 'idle_seen', 'reply_seen')

    def __init__(self, sink: OutputSink, future: asyncio.Future):
        self.sink = sink
        self.future = future
        self.error: Optional[ErrorOutput] = None
        self.failure_reason: Optional[str] = None
        self.execution_count: Optional[int] = None
        self.idle_seen = False
        self.reply_seen = False

    def outcome(self) -> ExecutionOutcome:
        if self.error is not None or self.failure_reason is not None:
            return ExecutionOutcome(
                OutcomeStatus.FAILED,
                error=self.error,
                reason=self.failure_reason,
                execution_count=self.execution_count
            )
        return ExecutionOutcome(OutcomeStatus.OK, execution_count=self.execution_count)


class ExecutionTracker(LoggerMixin):
    """Correlates inbound kernel messages with in-flight executions."""

    def __init__(self, router: OutputRouter = None):
        self._router = router or OutputRouter()
        self._pending: Dict[str, _PendingExecution] = {}
        self._closed = False

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, correlation_id: str) -> bool:
        return correlation_id in self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def register(self, correlation_id: str, sink: OutputSink) -> asyncio.Future:
        """Start tracking an execution and return the future of its outcome."""
        if self._closed:
            raise SessionClosedError("Tracker is closed", {"correlation_id": correlation_id})
        if correlation_id in self._pending:
            raise DuplicateCorrelationError(
                "Correlation id is already in flight",
                {"correlation_id": correlation_id}
            )

        future = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = _PendingExecution(sink, future)

        self.log_debug("📝 [Tracker] Execution registered", {
            "correlation_id": correlation_id,
            "pending": len(self._pending)
        })
        return future

    def dispatch(self, envelope: Envelope) -> None:
        """Route one decoded message to the execution it belongs to."""
        parent_id = envelope.parent_id
        entry = self._pending.get(parent_id) if parent_id else None
        if entry is None:
            # Late traffic for a finished execution, or kernel-wide messages.
            self.log_debug("🔇 [Tracker] Untracked message dropped", {
                "msg_type": envelope.kind,
                "parent_id": parent_id
            })
            return

        kind = envelope.kind
        content = envelope.content

        if kind == 'status':
            if content.get('execution_state') == 'idle':
                entry.idle_seen = True
                self._settle_if_finished(parent_id, entry)
            return

        if kind == 'execute_reply':
            self._record_reply(entry, content)
            entry.reply_seen = True
            self._settle_if_finished(parent_id, entry)
            return

        event = self._router.route(envelope)
        if event is None:
            return
        if isinstance(event, ErrorOutput) and entry.error is None:
            entry.error = event
        self._deliver(parent_id, entry, event)

    def abort(self, correlation_id: str, reason: str) -> bool:
        """Resolve one execution as aborted. Returns False if it was not pending."""
        entry = self._pending.get(correlation_id)
        if entry is None:
            return False
        self._settle(correlation_id, ExecutionOutcome.aborted(reason))
        return True

    def fail_all(self, reason: str) -> int:
        """Resolve every pending execution as aborted and clear the map."""
        entries = list(self._pending.values())
        self._pending.clear()

        aborted = 0
        for entry in entries:
            if not entry.future.done():
                entry.future.set_result(ExecutionOutcome.aborted(reason))
                aborted += 1

        if entries:
            self.log_warning("🛑 [Tracker] Pending executions aborted", {
                "reason": reason,
                "aborted": aborted
            })
        return aborted

    def close(self, reason: str) -> int:
        """Refuse new registrations and abort what is still pending."""
        self._closed = True
        return self.fail_all(reason)

    def _record_reply(self, entry: _PendingExecution, content: dict) -> None:
        count = content.get('execution_count')
        if isinstance(count, int):
            entry.execution_count = count

        status = content.get('status')
        if status == 'error':
            entry.failure_reason = entry.failure_reason or 'kernel reported an error'
            if entry.error is None and content.get('ename'):
                entry.error = ErrorOutput(
                    name=str(content.get('ename', '')),
                    message=str(content.get('evalue', '')),
                    traceback='\n'.join(str(line) for line in content.get('traceback') or [])
                )
        elif status == 'aborted':
            entry.failure_reason = 'execution aborted by the kernel'

    def _settle_if_finished(self, correlation_id: str, entry: _PendingExecution) -> None:
        # iopub and shell are not ordered relative to each other
        if entry.idle_seen and entry.reply_seen:
            self._settle(correlation_id, entry.outcome())

    def _deliver(self, correlation_id: str, entry: _PendingExecution, event: OutputEvent) -> None:
        try:
            entry.sink(event)
        except Exception as e:
            self.log_error("❌ [Tracker] Output sink raised", {
                "correlation_id": correlation_id,
                "event": type(event).__name__,
                "error": str(e),
                "error_type": type(e).__name__
            })

    def _settle(self, correlation_id: str, outcome: ExecutionOutcome) -> None:
        entry = self._pending.pop(correlation_id, None)
        if entry is None or entry.future.done():
            return
        entry.future.set_result(outcome)

        self.log_debug("✅ [Tracker] Execution settled", {
            "correlation_id": correlation_id,
            "status": outcome.status.value,
            "pending": len(self._pending)
        })
