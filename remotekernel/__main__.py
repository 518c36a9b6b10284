"""
Main entry point for the remotekernel module.
Run with: python -m remotekernel --kernel-id ID "print('hi')"
"""
import argparse
import asyncio
import sys

from .core import ClientConfig, setup_logging
from .core.exceptions import ExecutionAbortedError, ExecutionError, KernelConnectionError
from .kernel import ErrorOutput, KernelSession, RichResult, StreamOutput


def print_event(event) -> None:
    """Write one output event to the console."""
    if isinstance(event, StreamOutput):
        stream = sys.stderr if event.channel == 'stderr' else sys.stdout
        stream.write(event.text)
        stream.flush()
    elif isinstance(event, RichResult):
        if 'text/plain' in event.mime_bundle:
            print(event.value('text/plain'))
    elif isinstance(event, ErrorOutput):
        print(event.traceback or f"{event.name}: {event.message}", file=sys.stderr)


async def main(argv=None, connector=None) -> int:
    parser = argparse.ArgumentParser(prog='remotekernel', description=__doc__.strip().splitlines()[0])
    parser.add_argument('--kernel-id', required=True, help='id of a running kernel')
    parser.add_argument('--url', help='Jupyter server URL (default: $JUPYTER_URL)')
    parser.add_argument('--token', help='API token (default: $JUPYTER_TOKEN)')
    parser.add_argument('code', nargs='+', help='code to execute, one argument per request')
    args = parser.parse_args(argv)

    config = ClientConfig(jupyter_url=args.url, jupyter_token=args.token)
    setup_logging(config.log_level)

    session = KernelSession.from_config(config, args.kernel_id, connector=connector)
    try:
        await session.connect()
    except KernelConnectionError as e:
        print(f"Failed to connect to kernel: {e}", file=sys.stderr)
        return 2

    try:
        for code in args.code:
            try:
                await session.execute_code(code, print_event)
            except (ExecutionError, ExecutionAbortedError):
                return 1
    finally:
        await session.dispose()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
