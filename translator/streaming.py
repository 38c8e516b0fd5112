"""Translate Anthropic streaming events to OpenAI chat.completion.chunk objects."""

import logging
import time
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from .anthropic_to_openai import generate_completion_id, map_finish_reason, translate_usage

logger = logging.getLogger(__name__)


@dataclass
class StreamState:
    """Per-stream translation state. One instance per streaming exchange."""
    response_id: str = field(default_factory=generate_completion_id)
    created: int = field(default_factory=lambda: int(time.time()))
    tool_call_index: int = 0
    current_tool_call_id: Optional[str] = None
    current_tool_call_index: Optional[int] = None
    upstream_usage: Dict[str, Any] = field(default_factory=dict)
    usage: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


def translate_stream_event(
    event: Dict[str, Any],
    requested_model: str,
    state: StreamState
) -> List[Dict[str, Any]]:
    """
    Translate one Anthropic SSE event into zero or more OpenAI chunks.

    Anthropic format:
        event: content_block_delta
        data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hi"}}

    OpenAI format:
        data: {"object":"chat.completion.chunk","choices":[{"delta":{"content":"Hi"}}]}

    Args:
        event: Parsed Anthropic event payload
        requested_model: Model name from the original OpenAI request
        state: Stream state, mutated in place

    Returns:
        OpenAI chunk dicts, in emission order
    """
    chunks: List[Dict[str, Any]] = []
    event_type = event.get('type')

    if event_type == 'message_start':
        message = event.get('message') or {}
        if message.get('usage'):
            state.upstream_usage.update(message['usage'])
        chunks.append(_chunk(state, requested_model, {'role': 'assistant', 'content': ''}))

    elif event_type == 'content_block_start':
        block = event.get('content_block') or {}
        if block.get('type') == 'tool_use':
            index = state.tool_call_index
            state.tool_call_index += 1
            state.current_tool_call_id = block.get('id')
            state.current_tool_call_index = index

            chunks.append(_chunk(state, requested_model, {
                'tool_calls': [{
                    'index': index,
                    'id': block.get('id'),
                    'type': 'function',
                    'function': {
                        'name': block.get('name', ''),
                        'arguments': ''
                    }
                }]
            }))

    elif event_type == 'content_block_delta':
        chunks.extend(_translate_delta(event.get('delta') or {}, requested_model, state))

    elif event_type == 'content_block_stop':
        state.current_tool_call_id = None
        state.current_tool_call_index = None

    elif event_type == 'message_delta':
        delta = event.get('delta') or {}
        if delta.get('stop_reason'):
            chunks.append(_chunk(
                state, requested_model, {},
                finish_reason=map_finish_reason(delta['stop_reason'])
            ))

        if event.get('usage'):
            state.upstream_usage.update(event['usage'])
            state.usage = translate_usage(state.upstream_usage)
            # Usage travels alone, never on a content-bearing chunk
            chunks.append({
                'id': state.response_id,
                'object': 'chat.completion.chunk',
                'created': state.created,
                'model': requested_model,
                'choices': [],
                'usage': state.usage
            })

    elif event_type == 'error':
        state.error = event.get('error') or {}
        logger.error(f"Upstream stream error: {state.error}")

    elif event_type in ('message_stop', 'ping'):
        pass

    else:
        logger.debug(f"Ignoring unknown stream event type: {event_type}")

    return chunks


def _translate_delta(
    delta: Dict[str, Any],
    requested_model: str,
    state: StreamState
) -> List[Dict[str, Any]]:
    """Translate a content_block_delta payload."""
    delta_type = delta.get('type')

    if delta_type == 'text_delta':
        if delta.get('text'):
            return [_chunk(state, requested_model, {'content': delta['text']})]

    elif delta_type == 'thinking_delta':
        if delta.get('thinking'):
            return [_chunk(state, requested_model, {'reasoning_content': delta['thinking']})]

    elif delta_type == 'input_json_delta':
        partial_json = delta.get('partial_json')
        if not partial_json:
            return []
        if state.current_tool_call_index is None:
            logger.warning("Dropping tool argument fragment with no open tool call")
            return []
        return [_chunk(state, requested_model, {
            'tool_calls': [{
                'index': state.current_tool_call_index,
                'function': {'arguments': partial_json}
            }]
        })]

    elif delta_type == 'signature_delta':
        pass

    else:
        logger.warning(f"Ignoring unknown content delta type: {delta_type}")

    return []


def _chunk(
    state: StreamState,
    requested_model: str,
    delta: Dict[str, Any],
    finish_reason: Optional[str] = None
) -> Dict[str, Any]:
    """Build a single-choice chat.completion.chunk."""
    return {
        'id': state.response_id,
        'object': 'chat.completion.chunk',
        'created': state.created,
        'model': requested_model,
        'choices': [{
            'index': 0,
            'delta': delta,
            'logprobs': None,
            'finish_reason': finish_reason
        }]
    }


class StreamTranslator:
    """
    Translates an Anthropic event stream into OpenAI chunks for one exchange.

    Holds the exchange's StreamState; create a new instance per stream.
    """

    def __init__(self, requested_model: str):
        self.requested_model = requested_model
        self.state = StreamState()

    def translate_event(self, event: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Translate one parsed Anthropic event."""
        return translate_stream_event(event, self.requested_model, self.state)

    def get_usage(self) -> Dict[str, int]:
        """Get the last usage totals seen on this stream."""
        if self.state.usage:
            return self.state.usage
        return translate_usage(self.state.upstream_usage)
