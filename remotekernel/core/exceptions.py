"""
Custom exception classes for the remote kernel client.
"""


class RemoteKernelError(Exception):
    """Base exception for the remote kernel client."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{super().__str__()} - {self.details}"
        return super().__str__()


class KernelConnectionError(RemoteKernelError):
    """Raised when the WebSocket handshake or transport fails."""
    pass


class NotConnectedError(RemoteKernelError):
    """Raised when sending on a transport that is not open."""
    pass


class MalformedFrameError(RemoteKernelError):
    """Raised when an inbound frame does not have the expected shape."""
    pass


class DuplicateCorrelationError(RemoteKernelError):
    """Raised when a correlation id is registered twice."""
    pass


class SessionClosedError(RemoteKernelError):
    """Raised when a disposed session is used."""
    pass


class ExecutionError(RemoteKernelError):
    """Raised when the kernel reports an error for one execution."""

    def __init__(self, message: str, outcome=None, details: dict = None):
        super().__init__(message, details)
        self.outcome = outcome


class ExecutionAbortedError(RemoteKernelError):
    """Raised when an execution is aborted by disconnect or disposal."""

    def __init__(self, message: str, outcome=None, details: dict = None):
        super().__init__(message, details)
        self.outcome = outcome


class ExecutionTimeoutError(ExecutionAbortedError):
    """Raised when an execution exceeds the configured timeout."""
    pass


class KernelsApiError(RemoteKernelError):
    """Raised when a kernels REST call fails."""
    pass
