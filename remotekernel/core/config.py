"""
Configuration management for the remote kernel client.
"""
import os
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote


def _to_ws_base(http_url: str) -> str:
    """Swap an http(s) scheme for its WebSocket equivalent."""
    base = http_url.rstrip('/')
    if base.startswith('https://'):
        return 'wss://' + base[len('https://'):]
    if base.startswith('http://'):
        return 'ws://' + base[len('http://'):]
    return base


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


@dataclass(frozen=True)
class KernelEndpoint:
    """Where a kernel lives and how to authenticate against it."""

    base_url: str
    kernel_id: str
    auth_token: str = ''

    def channel_url(self, session_id: str) -> str:
        """Get the WebSocket channels URL for this kernel."""
        return (
            f"{_to_ws_base(self.base_url)}/api/kernels/{quote(self.kernel_id)}"
            f"/channels?session_id={quote(session_id)}"
        )

    def headers(self) -> Dict[str, str]:
        if not self.auth_token:
            return {}
        return {'Authorization': f'token {self.auth_token}'}


@dataclass
class ClientConfig:
    """Client configuration settings.

    Values passed to the constructor take precedence over the environment.
    """

    jupyter_url: Optional[str] = None
    jupyter_token: Optional[str] = None
    log_level: Optional[str] = None

    # None means executions may stay pending until the session is disposed
    execution_timeout: Optional[float] = None
    open_timeout: Optional[float] = None
    request_timeout: Optional[float] = None

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        if self.jupyter_url is None:
            self.jupyter_url = os.environ.get('JUPYTER_URL', 'http://localhost:8888')
        if self.jupyter_token is None:
            self.jupyter_token = os.environ.get('JUPYTER_TOKEN', '')
        if self.log_level is None:
            self.log_level = os.environ.get('REMOTEKERNEL_LOG_LEVEL', 'INFO')
        if self.execution_timeout is None:
            self.execution_timeout = _optional_float(os.environ.get('REMOTEKERNEL_EXECUTION_TIMEOUT'))
        if self.open_timeout is None:
            self.open_timeout = float(os.environ.get('REMOTEKERNEL_OPEN_TIMEOUT', 10))
        if self.request_timeout is None:
            self.request_timeout = float(os.environ.get('REMOTEKERNEL_REQUEST_TIMEOUT', 30))

        self.jupyter_url = self.jupyter_url.rstrip('/')

    def get_jupyter_headers(self) -> dict:
        """Get headers for Jupyter API and WebSocket requests."""
        if not self.jupyter_token:
            return {}
        return {'Authorization': f'token {self.jupyter_token}'}

    def get_jupyter_token(self) -> str:
        """Get Jupyter authentication token."""
        return self.jupyter_token

    def endpoint(self, kernel_id: str) -> KernelEndpoint:
        """Build the endpoint for a kernel on the configured server."""
        return KernelEndpoint(self.jupyter_url, kernel_id, self.jupyter_token)

    def get_terminal_ws_url(self, terminal_name: str) -> str:
        """Get WebSocket URL for a Jupyter terminal."""
        return f"{_to_ws_base(self.jupyter_url)}/terminals/websocket/{quote(terminal_name)}"

    def __str__(self) -> str:
        """String representation of configuration."""
        return (
            f"ClientConfig(jupyter_url={self.jupyter_url}, "
            f"has_token={bool(self.jupyter_token)}, execution_timeout={self.execution_timeout})"
        )
