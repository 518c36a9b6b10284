"""
Kernel module for the remote kernel client.
Handles the channels connection, execution tracking and session lifecycle.
"""

from .output_router import ClearOutput, ErrorOutput, OutputRouter, RichResult, StreamOutput
from .tracker import ExecutionOutcome, ExecutionTracker, OutcomeStatus
from .transport import KernelTransport, TransportState
from .session import KernelSession, run_bootstrap, working_directory_bootstrap
from .kernels_api import KernelsApi, KernelSpec
from .registry import SessionRegistry
from .controller import CellExecution, KernelController

__all__ = [
    'ClearOutput',
    'ErrorOutput',
    'OutputRouter',
    'RichResult',
    'StreamOutput',
    'ExecutionOutcome',
    'ExecutionTracker',
    'OutcomeStatus',
    'KernelTransport',
    'TransportState',
    'KernelSession',
    'run_bootstrap',
    'working_directory_bootstrap',
    'KernelsApi',
    'KernelSpec',
    'SessionRegistry',
    'CellExecution',
    'KernelController',
]
