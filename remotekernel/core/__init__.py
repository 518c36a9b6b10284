"""
Core module for the remote kernel client.
Contains configuration, logging, errors and the message codec.
"""

from .config import ClientConfig, KernelEndpoint
from .logging import setup_logging, debug_log
from .exceptions import (
    RemoteKernelError,
    KernelConnectionError,
    NotConnectedError,
    MalformedFrameError,
    DuplicateCorrelationError,
    SessionClosedError,
    ExecutionError,
    ExecutionAbortedError,
    ExecutionTimeoutError,
    KernelsApiError,
)
from .jupyter_message_factory import JupyterMessageFactory, ExecutionRequest, Envelope

__all__ = [
    'ClientConfig',
    'KernelEndpoint',
    'setup_logging',
    'debug_log',
    'RemoteKernelError',
    'KernelConnectionError',
    'NotConnectedError',
    'MalformedFrameError',
    'DuplicateCorrelationError',
    'SessionClosedError',
    'ExecutionError',
    'ExecutionAbortedError',
    'ExecutionTimeoutError',
    'KernelsApiError',
    'JupyterMessageFactory',
    'ExecutionRequest',
    'Envelope',
]
