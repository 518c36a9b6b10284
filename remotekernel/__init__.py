"""
remotekernel: drive code execution on a remote Jupyter kernel over WebSockets,
and attach a text terminal to the server's shell.
"""

from .core import ClientConfig, KernelEndpoint, setup_logging
from .kernel import (
    ClearOutput,
    ErrorOutput,
    ExecutionOutcome,
    KernelController,
    KernelSession,
    KernelsApi,
    KernelSpec,
    OutcomeStatus,
    RichResult,
    SessionRegistry,
    StreamOutput,
)
from .terminal import RemoteTerminal, TerminalDimensions

__version__ = '0.1.0'

__all__ = [
    'ClientConfig',
    'KernelEndpoint',
    'setup_logging',
    'ClearOutput',
    'ErrorOutput',
    'ExecutionOutcome',
    'KernelController',
    'KernelSession',
    'KernelsApi',
    'KernelSpec',
    'OutcomeStatus',
    'RichResult',
    'SessionRegistry',
    'StreamOutput',
    'RemoteTerminal',
    'TerminalDimensions',
]
