"""
Session registry: at most one live kernel session per document.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from ..core.config import ClientConfig
from ..core.logging import LoggerMixin
from .kernels_api import KernelsApi, KernelSpec
from .session import KernelSession, run_bootstrap
from .transport import Connector


SessionFactory = Callable[[], Awaitable[KernelSession]]


class SessionRegistry(LoggerMixin):
    """Maps document identity to its kernel session.

    Creation is shared: callers asking for the same key while a session is
    still starting await the same creation task.
    """

    def __init__(self, config: ClientConfig, kernels_api: Optional[KernelsApi] = None,
                 connector: Optional[Connector] = None):
        self.config = config
        self.kernels_api = kernels_api or KernelsApi(config)
        self._connector = connector
        self._sessions: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, document_key: str) -> bool:
        return document_key in self._sessions

    def get(self, document_key: str) -> Optional[KernelSession]:
        """Return the established, still-open session for a key, if any."""
        task = self._sessions.get(document_key)
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return None
        session = task.result()
        return None if session.closed else session

    async def get_or_create(self, document_key: str, factory: SessionFactory) -> KernelSession:
        """Return the session for ``document_key``, creating it with ``factory`` once."""
        task = self._sessions.get(document_key)
        stale = None
        if task is not None and task.done() and self._is_stale(task):
            stale, task = task, None

        if task is None:
            task = asyncio.ensure_future(factory())
            self._sessions[document_key] = task
            self.log_debug("🆕 [Registry] Creating session", {"document_key": document_key})

        if stale is not None:
            # Replacement is installed before the old session is torn down.
            await self._dispose_task(stale)

        try:
            return await asyncio.shield(task)
        except BaseException:
            # A failed or cancelled creation must not be handed out again.
            if task.done():
                self._forget(document_key, task)
            raise

    async def acquire(self, document_key: str, kernel_spec: KernelSpec,
                      document_path: Optional[str] = None) -> KernelSession:
        """Get or start the session for a document."""
        return await self.get_or_create(
            document_key,
            lambda: self._start_session(kernel_spec, document_path)
        )

    async def release(self, document_key: str) -> None:
        """Dispose and forget the session for one document."""
        task = self._sessions.pop(document_key, None)
        if task is not None:
            await self._dispose_task(task)

    async def dispose(self) -> None:
        """Dispose every session."""
        tasks = list(self._sessions.values())
        self._sessions.clear()
        for task in tasks:
            await self._dispose_task(task)

        if tasks:
            self.log_info("🧹 [Registry] All sessions disposed", {"count": len(tasks)})

    async def _start_session(self, kernel_spec: KernelSpec, document_path: Optional[str]) -> KernelSession:
        kernel = await asyncio.to_thread(self.kernels_api.start_kernel, kernel_spec.name, document_path)

        session = KernelSession.from_config(self.config, kernel['id'], connector=self._connector)
        try:
            await session.connect()
            await run_bootstrap(session, document_path, kernel_spec.language)
        except BaseException:
            await session.dispose()
            raise
        return session

    @staticmethod
    def _is_stale(task: asyncio.Task) -> bool:
        if task.cancelled() or task.exception() is not None:
            return True
        return task.result().closed

    def _forget(self, document_key: str, task: asyncio.Task) -> None:
        if self._sessions.get(document_key) is task:
            del self._sessions[document_key]

    async def _dispose_task(self, task: asyncio.Task) -> None:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.log_debug("⚠️ [Registry] Session creation failed during dispose", {"error": str(e)})
            return

        if task.cancelled() or task.exception() is not None:
            return
        await task.result().dispose()
