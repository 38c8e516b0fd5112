"""API translation layer between OpenAI and Anthropic formats."""

from .openai_to_anthropic import translate_request
from .anthropic_to_openai import translate_response
from .streaming import StreamState, StreamTranslator, translate_stream_event
from .errors import format_error, translate_upstream_error

__all__ = [
    'translate_request',
    'translate_response',
    'StreamState',
    'StreamTranslator',
    'translate_stream_event',
    'format_error',
    'translate_upstream_error',
]
