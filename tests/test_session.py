import asyncio
import json

import pytest

from remotekernel.core.exceptions import (
    ExecutionAbortedError,
    ExecutionError,
    ExecutionTimeoutError,
    KernelConnectionError,
    NotConnectedError,
    SessionClosedError,
)
from remotekernel.kernel.output_router import ErrorOutput, RichResult, StreamOutput
from remotekernel.kernel.session import KernelSession, run_bootstrap, working_directory_bootstrap
from remotekernel.kernel.tracker import OutcomeStatus

from conftest import busy, done, idle, kernel_msg, stream, wait_until


async def connected_session(endpoint, connector, **kwargs):
    session = KernelSession(endpoint, connector=connector, **kwargs)
    await session.connect()
    return session


async def start_execution(session, connector, code, sink):
    """Begin an execution and return its task and correlation id."""
    task = asyncio.create_task(session.execute_code(code, sink))
    request = json.loads(await connector.socket.next_sent())
    return task, request['header']['msg_id']


@pytest.mark.asyncio
async def test_channel_url_and_auth(endpoint, connector):
    session = await connected_session(endpoint, connector)

    url, kwargs = connector.calls[0]
    assert url == f'ws://jupyter.test:8888/api/kernels/kernel-1/channels?session_id={session.session_id}'
    assert kwargs['additional_headers'] == {'Authorization': 'token secret'}
    await session.dispose()


@pytest.mark.asyncio
async def test_normal_execution(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events = []

    task, msg_id = await start_execution(session, connector, '1+1', events.append)
    connector.socket.feed(
        busy(msg_id),
        kernel_msg('execute_input', msg_id, {'code': '1+1'}),
        kernel_msg('execute_result', msg_id, {'data': {'text/plain': '2'}, 'metadata': {}, 'execution_count': 1}),
        *done(msg_id),
    )
    outcome = await asyncio.wait_for(task, 1)

    assert outcome.status is OutcomeStatus.OK
    assert len(events) == 1
    assert isinstance(events[0], RichResult)
    assert events[0].value('text/plain') == '2'
    await session.dispose()


@pytest.mark.asyncio
async def test_streamed_output(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events = []

    task, msg_id = await start_execution(session, connector, 'print("a"); print("b")', events.append)
    connector.socket.feed(stream(msg_id, 'a'), stream(msg_id, 'b'), *done(msg_id))
    outcome = await asyncio.wait_for(task, 1)

    assert events == [StreamOutput('stdout', 'a'), StreamOutput('stdout', 'b')]
    assert outcome.ok
    await session.dispose()


@pytest.mark.asyncio
async def test_kernel_error(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events = []

    task, msg_id = await start_execution(session, connector, 'raise ValueError("bad")', events.append)
    connector.socket.feed(
        kernel_msg('error', msg_id, {'ename': 'ValueError', 'evalue': 'bad', 'traceback': ['l1', 'l2']}),
        *done(msg_id, 'error'),
    )

    with pytest.raises(ExecutionError) as excinfo:
        await asyncio.wait_for(task, 1)

    expected = ErrorOutput(name='ValueError', message='bad', traceback='l1\nl2')
    assert events == [expected]
    assert excinfo.value.outcome.status is OutcomeStatus.FAILED
    assert excinfo.value.outcome.error == expected
    await session.dispose()


@pytest.mark.asyncio
async def test_disconnect_mid_flight_aborts(endpoint, connector):
    session = await connected_session(endpoint, connector)

    task, _ = await start_execution(session, connector, 'import time; time.sleep(60)', lambda event: None)
    connector.socket.drop()

    with pytest.raises(ExecutionAbortedError) as excinfo:
        await asyncio.wait_for(task, 1)

    assert excinfo.value.outcome.status is OutcomeStatus.ABORTED
    assert session.closed
    with pytest.raises(NotConnectedError):
        await session.execute_code('1')
    await session.dispose()


@pytest.mark.asyncio
async def test_concurrent_executions_keep_their_own_output(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events_a, events_b = [], []

    task_a, id_a = await start_execution(session, connector, 'a', events_a.append)
    task_b, id_b = await start_execution(session, connector, 'b', events_b.append)
    connector.socket.feed(
        stream(id_b, 'b1'),
        stream(id_a, 'a1'),
        stream(id_b, 'b2'),
        stream(id_a, 'a2'),
        *done(id_a),
        stream(id_b, 'b3'),
        *done(id_b),
    )
    await asyncio.wait_for(asyncio.gather(task_a, task_b), 1)

    assert [e.text for e in events_a] == ['a1', 'a2']
    assert [e.text for e in events_b] == ['b1', 'b2', 'b3']
    await session.dispose()


@pytest.mark.asyncio
async def test_dispose_aborts_pending_and_silences_sinks(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events = []
    ws = connector.socket

    task_a, id_a = await start_execution(session, connector, 'a', events.append)
    task_b, id_b = await start_execution(session, connector, 'b', events.append)
    ws.feed(stream(id_a, 'before'))
    await wait_until(lambda: len(events) == 1)

    await session.dispose()
    ws.feed(stream(id_a, 'after'), stream(id_b, 'after'), idle(id_a))
    await asyncio.sleep(0)

    for task in (task_a, task_b):
        with pytest.raises(ExecutionAbortedError):
            await asyncio.wait_for(task, 1)
    assert [e.text for e in events] == ['before']
    assert ws.closed
    assert session.pending_count == 0


@pytest.mark.asyncio
async def test_execute_after_dispose_fails_fast(endpoint, connector):
    session = await connected_session(endpoint, connector)
    await session.dispose()
    await session.dispose()

    with pytest.raises(SessionClosedError):
        await session.execute_code('1')
    with pytest.raises(SessionClosedError):
        await session.connect()


@pytest.mark.asyncio
async def test_execute_before_connect_fails(endpoint, connector):
    session = KernelSession(endpoint, connector=connector)

    with pytest.raises(NotConnectedError):
        await session.execute_code('1')


@pytest.mark.asyncio
async def test_connect_failure_is_a_connection_error(endpoint, connector):
    connector.error = OSError("refused")
    session = KernelSession(endpoint, connector=connector)

    with pytest.raises(KernelConnectionError):
        await session.connect()


@pytest.mark.asyncio
async def test_malformed_frames_are_skipped(endpoint, connector):
    session = await connected_session(endpoint, connector)
    events = []

    task, msg_id = await start_execution(session, connector, 'x', events.append)
    connector.socket.feed('{broken', '[]', stream(msg_id, 'ok'), *done(msg_id))
    outcome = await asyncio.wait_for(task, 1)

    assert outcome.ok
    assert events == [StreamOutput('stdout', 'ok')]
    await session.dispose()


@pytest.mark.asyncio
async def test_execution_timeout(endpoint, connector):
    session = await connected_session(endpoint, connector, execution_timeout=0.05)

    with pytest.raises(ExecutionTimeoutError):
        await session.execute_code('while True: pass')

    assert session.pending_count == 0
    assert not session.closed
    await session.dispose()


def test_bootstrap_only_for_python_documents_in_a_folder():
    assert working_directory_bootstrap('notebook.ipynb', 'python') is None
    assert working_directory_bootstrap('work/nb.ipynb', 'R') is None
    assert working_directory_bootstrap(None, 'python') is None

    code = working_directory_bootstrap("/proj/it's here/nb.ipynb", 'Python')
    assert repr("proj/it's here") in code
    assert 'except Exception:\n    pass' in code
    compile(code, '<bootstrap>', 'exec')


@pytest.mark.asyncio
async def test_bootstrap_failure_is_swallowed(endpoint, connector):
    session = await connected_session(endpoint, connector)

    task = asyncio.create_task(run_bootstrap(session, 'work/nb.ipynb', 'python'))
    request = json.loads(await connector.socket.next_sent())
    msg_id = request['header']['msg_id']
    assert "os.chdir" in request['content']['code']

    connector.socket.feed(
        kernel_msg('error', msg_id, {'ename': 'OSError', 'evalue': 'nope', 'traceback': []}),
        *done(msg_id, 'error'),
    )

    assert await asyncio.wait_for(task, 1) is False
    assert not session.closed
    await session.dispose()


@pytest.mark.asyncio
async def test_bootstrap_on_dead_session_is_swallowed(endpoint, connector):
    session = await connected_session(endpoint, connector)
    await session.dispose()

    assert await run_bootstrap(session, 'work/nb.ipynb', 'python') is False
