"""
Jupyter message factory for creating and parsing Jupyter protocol frames.

Outgoing requests are built as plain dicts and serialized to JSON text frames;
incoming frames are parsed into ``Envelope`` objects. Parsing is pure: a frame
that does not look like a Jupyter message raises ``MalformedFrameError`` and
nothing else happens.
"""

import datetime
import json
import uuid
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Union

from .exceptions import MalformedFrameError


PROTOCOL_VERSION = '5.3'


def new_msg_id() -> str:
    """Generate a fresh correlation id."""
    return uuid.uuid4().hex


@dataclass
class ExecutionRequest:
    """One call to execute code, identified by its correlation id."""

    code: str
    session_id: str
    correlation_id: str = field(default_factory=new_msg_id)
    silent: bool = False
    store_history: bool = True


@dataclass
class Envelope:
    """Decoded structural form of one inbound frame."""

    kind: str
    parent_id: Optional[str]
    content: Dict[str, Any]
    msg_id: Optional[str] = None
    channel: Optional[str] = None


class JupyterMessageFactory:
    """Factory for creating and decoding Jupyter protocol messages."""

    @staticmethod
    def create_kernel_request(msg_type: str, content: Dict[str, Any], session_id: str,
                              msg_id: Optional[str] = None, channel: str = 'shell',
                              username: str = 'remotekernel') -> Dict[str, Any]:
        """Create a generic kernel request message."""
        return {
            'header': {
                'msg_id': msg_id or new_msg_id(),
                'msg_type': msg_type,
                'username': username,
                'session': session_id,
                'date': datetime.datetime.now(datetime.timezone.utc).isoformat(),
                'version': PROTOCOL_VERSION
            },
            'parent_header': {},
            'metadata': {},
            'content': content,
            'buffers': [],
            'channel': channel
        }

    @staticmethod
    def create_execute_request(request: ExecutionRequest) -> Dict[str, Any]:
        """Create an execute_request message for ``request``."""
        return JupyterMessageFactory.create_kernel_request(
            'execute_request',
            {
                'code': request.code,
                'silent': request.silent,
                'store_history': request.store_history,
                'user_expressions': {},
                'allow_stdin': False,
                'stop_on_error': True
            },
            session_id=request.session_id,
            msg_id=request.correlation_id
        )

    @staticmethod
    def encode(request: ExecutionRequest) -> str:
        """Serialize an execution request into a JSON text frame."""
        return json.dumps(JupyterMessageFactory.create_execute_request(request))

    @staticmethod
    def decode(frame: Union[str, bytes]) -> Envelope:
        """Parse an inbound frame into an Envelope.

        Raises:
            MalformedFrameError: if the frame is not a JSON object carrying a
                header with a string ``msg_type``, a dict ``content`` and a
                dict (possibly empty) ``parent_header``.
        """
        if isinstance(frame, (bytes, bytearray)):
            try:
                frame = frame.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedFrameError("Frame is not UTF-8 text", {"error": str(e)}) from e

        try:
            msg = json.loads(frame)
        except (TypeError, ValueError) as e:
            raise MalformedFrameError("Frame is not valid JSON", {"error": str(e)}) from e

        if not isinstance(msg, dict):
            raise MalformedFrameError("Frame is not a JSON object", {"type": type(msg).__name__})

        header = msg.get('header')
        if not isinstance(header, dict) or not isinstance(header.get('msg_type'), str):
            raise MalformedFrameError("Frame has no msg_type header")

        parent_header = msg.get('parent_header') or {}
        if not isinstance(parent_header, dict):
            raise MalformedFrameError("Frame parent_header is not an object")

        content = msg.get('content', {})
        if not isinstance(content, dict):
            raise MalformedFrameError("Frame content is not an object", {"msg_type": header['msg_type']})

        parent_id = parent_header.get('msg_id')
        return Envelope(
            kind=header['msg_type'],
            parent_id=parent_id if isinstance(parent_id, str) else None,
            content=content,
            msg_id=header.get('msg_id'),
            channel=msg.get('channel')
        )

