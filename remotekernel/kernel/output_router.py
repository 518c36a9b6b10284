"""
Output routing for kernel iopub messages.

Turns a decoded ``Envelope`` into at most one ``OutputEvent`` for the sink of
the execution that produced it.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional, Union

from ..core.jupyter_message_factory import Envelope


STREAM_CHANNELS = ('stdout', 'stderr')


@dataclass(frozen=True)
class ClearOutput:
    """Clear everything previously shown for the execution."""

    wait: bool = False


@dataclass(frozen=True)
class StreamOutput:
    channel: str
    text: str


@dataclass(frozen=True)
class RichResult:
    """A MIME bundle, every value already encoded to bytes.

    ``structured`` names the MIME types whose values were JSON-like objects
    and were serialized to JSON text rather than taken as raw text.
    """

    mime_bundle: Dict[str, bytes]
    structured: FrozenSet[str] = field(default_factory=frozenset)
    metadata: Dict[str, Any] = field(default_factory=dict)
    execution_count: Optional[int] = None

    def value(self, mime_type: str) -> Any:
        """Decode one entry back to the value the kernel sent."""
        text = self.mime_bundle[mime_type].decode('utf-8')
        if mime_type in self.structured:
            return json.loads(text)
        return text


@dataclass(frozen=True)
class ErrorOutput:
    name: str
    message: str
    traceback: str


OutputEvent = Union[ClearOutput, StreamOutput, RichResult, ErrorOutput]
OutputSink = Callable[[OutputEvent], None]


def encode_mime_value(value: Any) -> bytes:
    """Encode one MIME bundle value.

    Text is taken as-is; anything else is serialized to JSON.
    """
    if isinstance(value, str):
        return value.encode('utf-8')
    return json.dumps(value, ensure_ascii=False, separators=(',', ':')).encode('utf-8')


class OutputRouter:
    """Maps iopub message kinds to output events."""

    @staticmethod
    def route(envelope: Envelope) -> Optional[OutputEvent]:
        """Return the event for ``envelope``, or None when it produces none."""
        kind = envelope.kind
        content = envelope.content

        if kind == 'clear_output':
            return ClearOutput(wait=bool(content.get('wait', False)))

        if kind == 'stream':
            channel = content.get('name')
            if channel not in STREAM_CHANNELS:
                return None
            return StreamOutput(channel=channel, text=str(content.get('text', '')))

        if kind in ('execute_result', 'display_data'):
            return OutputRouter._rich_result(content)

        if kind == 'error':
            traceback = content.get('traceback') or []
            return ErrorOutput(
                name=str(content.get('ename', '')),
                message=str(content.get('evalue', '')),
                traceback='\n'.join(str(line) for line in traceback)
            )

        return None

    @staticmethod
    def _rich_result(content: Dict[str, Any]) -> Optional[RichResult]:
        data = content.get('data')
        if not isinstance(data, dict) or not data:
            return None

        bundle = {}
        structured = set()
        for mime_type, value in data.items():
            bundle[mime_type] = encode_mime_value(value)
            if not isinstance(value, str):
                structured.add(mime_type)

        metadata = content.get('metadata')
        return RichResult(
            mime_bundle=bundle,
            structured=frozenset(structured),
            metadata=metadata if isinstance(metadata, dict) else {},
            execution_count=content.get('execution_count')
        )
