"""Translate Anthropic API responses to OpenAI format."""

import json
import logging
import secrets
import time
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

FINISH_REASON_MAP = {
    'end_turn': 'stop',
    'stop_sequence': 'stop',
    'max_tokens': 'length',
    'tool_use': 'tool_calls',
}

# Known block types with no OpenAI counterpart
IGNORED_BLOCK_TYPES = ('redacted_thinking',)


def generate_completion_id() -> str:
    """Generate an OpenAI-style completion id."""
    return f"chatcmpl-{secrets.token_hex(12)}"


def translate_response(
    anthropic_response: Dict[str, Any],
    requested_model: Optional[str] = None
) -> Dict[str, Any]:
    """
    Translate an Anthropic /v1/messages response to OpenAI /v1/chat/completions format.

    Args:
        anthropic_response: The Anthropic API response body
        requested_model: The model name from the original OpenAI request

    Returns:
        OpenAI-compatible response body
    """
    message = _translate_content(anthropic_response.get('content'))
    finish_reason = map_finish_reason(anthropic_response.get('stop_reason'))
    usage = translate_usage(anthropic_response.get('usage'))

    openai_response = {
        'id': generate_completion_id(),
        'object': 'chat.completion',
        'created': int(time.time()),
        'model': requested_model or anthropic_response.get('model'),
        'choices': [
            {
                'index': 0,
                'message': message,
                'logprobs': None,
                'finish_reason': finish_reason
            }
        ],
        'usage': usage,
        'system_fingerprint': None
    }

    logger.debug(f"Translated response: finish_reason={finish_reason}, tokens={usage['total_tokens']}")

    return openai_response


def _translate_content(content: Any) -> Dict[str, Any]:
    """Fold Anthropic content blocks into a single OpenAI assistant message."""
    if not isinstance(content, list):
        return {'role': 'assistant', 'content': ''}

    text_parts: List[str] = []
    thinking_parts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []

    for block in content:
        if not isinstance(block, dict):
            continue

        block_type = block.get('type')
        if block_type == 'text':
            text_parts.append(block.get('text') or '')
        elif block_type == 'thinking':
            thinking_parts.append(block.get('thinking') or '')
        elif block_type == 'tool_use':
            tool_calls.append({
                'id': block.get('id'),
                'type': 'function',
                'function': {
                    'name': block.get('name', ''),
                    'arguments': json.dumps(block.get('input') or {})
                }
            })
        elif block_type in IGNORED_BLOCK_TYPES:
            continue
        else:
            logger.warning(f"Ignoring unknown content block type: {block_type}")

    text = ''.join(text_parts)
    message = {'role': 'assistant'}

    # No text alongside tool calls is null, not ""
    message['content'] = None if tool_calls and not text else text

    if tool_calls:
        message['tool_calls'] = tool_calls

    thinking = ''.join(thinking_parts)
    if thinking:
        message['reasoning_content'] = thinking

    return message


def map_finish_reason(stop_reason: Optional[str]) -> str:
    """Translate Anthropic stop_reason to OpenAI finish_reason."""
    return FINISH_REASON_MAP.get(stop_reason, 'stop')


def translate_usage(usage: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Translate Anthropic token usage to OpenAI usage."""
    usage = usage or {}
    prompt_tokens = usage.get('input_tokens') or 0
    completion_tokens = usage.get('output_tokens') or 0

    openai_usage = {
        'prompt_tokens': prompt_tokens,
        'completion_tokens': completion_tokens,
        'total_tokens': prompt_tokens + completion_tokens
    }

    if usage.get('cache_read_input_tokens') or usage.get('cache_creation_input_tokens'):
        openai_usage['prompt_tokens_details'] = {
            'cached_tokens': usage.get('cache_read_input_tokens') or 0
        }

    return openai_usage


def translate_models_list(anthropic_models: Dict[str, Any], created: Optional[int] = None) -> Dict[str, Any]:
    """Reshape an upstream models listing into the OpenAI list format."""
    if created is None:
        created = int(time.time())

    data = []
    for model in anthropic_models.get('data') or []:
        if not isinstance(model, dict) or not model.get('id'):
            continue
        data.append({
            'id': model['id'],
            'object': 'model',
            'created': created,
            'owned_by': 'antigravity'
        })

    return {'object': 'list', 'data': data}
