"""Shared fakes for the WebSocket layer."""

import asyncio
import json
import uuid

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from remotekernel.core.config import KernelEndpoint


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.sent = []
        self.outbox = asyncio.Queue()
        self.incoming = asyncio.Queue()
        self.closed = False
        self.close_calls = 0

    async def send(self, frame):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(frame)
        self.outbox.put_nowait(frame)

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True
        self.close_calls += 1

    def feed(self, *frames):
        for frame in frames:
            self.incoming.put_nowait(frame)

    def drop(self, close=None):
        """Simulate the peer going away."""
        self.incoming.put_nowait(ConnectionClosedError(close, None))

    async def next_sent(self, timeout=1.0):
        return await asyncio.wait_for(self.outbox.get(), timeout)


class FakeConnector:
    """Callable matching ``websockets.asyncio.client.connect``."""

    def __init__(self):
        self.calls = []
        self.sockets = []
        self.error = None

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def socket(self):
        return self.sockets[-1]


def kernel_msg(msg_type, parent_id, content=None, channel='iopub'):
    """Build an inbound kernel frame as the server would send it."""
    return json.dumps({
        'header': {'msg_id': uuid.uuid4().hex, 'msg_type': msg_type, 'session': 'kernel'},
        'parent_header': {'msg_id': parent_id} if parent_id else {},
        'metadata': {},
        'content': content or {},
        'channel': channel,
    })


def idle(parent_id):
    return kernel_msg('status', parent_id, {'execution_state': 'idle'})


def reply(parent_id, status='ok', execution_count=None):
    content = {'status': status}
    if execution_count is not None:
        content['execution_count'] = execution_count
    return kernel_msg('execute_reply', parent_id, content, channel='shell')


def done(parent_id, status='ok'):
    """The shell reply and the idle status that together finish an execution."""
    return reply(parent_id, status), idle(parent_id)


def busy(parent_id):
    return kernel_msg('status', parent_id, {'execution_state': 'busy'})


def stream(parent_id, text, name='stdout'):
    return kernel_msg('stream', parent_id, {'name': name, 'text': text})


async def wait_until(predicate, timeout=1.0):
    """Yield to the loop until ``predicate()`` holds."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def endpoint():
    return KernelEndpoint('http://jupyter.test:8888', 'kernel-1', 'secret')
