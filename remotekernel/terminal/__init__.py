"""
Terminal module for the remote kernel client.
Bridges a local pseudo terminal to a Jupyter server shell.
"""

from .remote_terminal import RemoteTerminal, TerminalDimensions, TerminalState

__all__ = [
    'RemoteTerminal',
    'TerminalDimensions',
    'TerminalState'
]
