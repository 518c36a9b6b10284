"""
Cell execution controller.

Runs batches of notebook cells against the remote kernel of their document,
collecting each cell's output the way a notebook front end would show it.
"""

import datetime
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..core.exceptions import (
    ExecutionAbortedError,
    ExecutionError,
    KernelConnectionError,
    KernelsApiError,
    NotConnectedError,
    SessionClosedError,
)
from ..core.logging import LoggerMixin
from .kernels_api import KernelSpec
from .output_router import ClearOutput, OutputEvent
from .registry import SessionRegistry
from .session import KernelSession


@dataclass
class CellExecution:
    """Result of running one cell. ``success`` is None when it never ran."""

    index: int
    source: str
    execution_order: Optional[int] = None
    outputs: List[OutputEvent] = field(default_factory=list)
    success: Optional[bool] = None
    error: Optional[str] = None
    started_at: Optional[datetime.datetime] = None
    ended_at: Optional[datetime.datetime] = None

    def handle_output(self, event: OutputEvent) -> None:
        if isinstance(event, ClearOutput):
            self.outputs.clear()
        else:
            self.outputs.append(event)


class KernelController(LoggerMixin):
    """Executes cells for documents bound to one kernel spec."""

    def __init__(self, kernel_spec: KernelSpec, registry: SessionRegistry):
        self.kernel_spec = kernel_spec
        self.registry = registry
        self.execution_order = 0

    async def execute_cells(self, document_key: str, cells: Sequence[str],
                            document_path: Optional[str] = None) -> List[CellExecution]:
        """Run ``cells`` in order on the document's kernel."""
        results = [CellExecution(index=i, source=source) for i, source in enumerate(cells)]

        try:
            session = await self.registry.acquire(document_key, self.kernel_spec, document_path)
        except (KernelConnectionError, KernelsApiError) as e:
            self.log_error("❌ [Controller] Failed to start kernel", {
                "document_key": document_key,
                "kernel_spec": self.kernel_spec.name,
                "error": str(e)
            })
            for result in results:
                result.error = f"Failed to start kernel: {e}"
            return results

        for result in results:
            await self._execute_cell(session, result)
        return results

    async def _execute_cell(self, session: KernelSession, result: CellExecution) -> None:
        self.execution_order += 1
        result.execution_order = self.execution_order
        result.started_at = datetime.datetime.now()
        result.outputs.clear()

        try:
            await session.execute_code(result.source, result.handle_output)
            result.success = True
        except (ExecutionError, ExecutionAbortedError, NotConnectedError, SessionClosedError) as e:
            result.success = False
            result.error = str(e)
        finally:
            result.ended_at = datetime.datetime.now()

    async def dispose(self) -> None:
        await self.registry.dispose()
