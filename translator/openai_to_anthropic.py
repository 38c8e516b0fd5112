"""Translate OpenAI Chat Completions requests to Anthropic Messages format."""

import json
import re
import logging
import uuid
from typing import Dict, Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gpt-4'
DEFAULT_MAX_TOKENS = 4096
THINKING_MODEL_MARKER = 'thinking'
MAX_THINKING_BUDGET = 16000

EMPTY_INPUT_SCHEMA = {'type': 'object', 'properties': {}}

_DATA_URI_RE = re.compile(r'^data:([^;]+);base64,(.+)$', re.DOTALL)


def translate_request(openai_request: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate an OpenAI /v1/chat/completions request to Anthropic /v1/messages format.

    Unsupported OpenAI parameters (penalties, n, seed, logprobs, user, ...)
    are dropped. The model name is forwarded unchanged.

    Args:
        openai_request: The OpenAI API request body (already validated)

    Returns:
        Anthropic-compatible request body
    """
    model = openai_request.get('model') or DEFAULT_MODEL
    system, messages = _translate_messages(openai_request.get('messages') or [])

    max_tokens = (
        openai_request.get('max_completion_tokens') or
        openai_request.get('max_tokens') or
        DEFAULT_MAX_TOKENS
    )

    anthropic_request = {
        'model': model,
        'messages': messages,
        'max_tokens': max_tokens,
        'stream': bool(openai_request.get('stream', False)),
    }

    if system is not None:
        anthropic_request['system'] = system

    # Anthropic only accepts 0..1
    temperature = openai_request.get('temperature')
    if temperature is not None:
        anthropic_request['temperature'] = max(0, min(1, temperature))

    top_p = openai_request.get('top_p')
    if top_p is not None:
        anthropic_request['top_p'] = top_p

    tools = openai_request.get('tools')
    if tools is None:
        # Legacy `functions` request field
        tools = openai_request.get('functions')
    anthropic_tools = _translate_tools(tools)
    if anthropic_tools:
        anthropic_request['tools'] = anthropic_tools

    tool_choice = openai_request.get('tool_choice')
    if tool_choice is None:
        tool_choice = openai_request.get('function_call')
    anthropic_tool_choice = normalize_tool_choice(tool_choice)
    if anthropic_tool_choice:
        anthropic_request['tool_choice'] = anthropic_tool_choice

    stop = openai_request.get('stop')
    if stop:
        anthropic_request['stop_sequences'] = stop if isinstance(stop, list) else [stop]

    if THINKING_MODEL_MARKER in model:
        anthropic_request['thinking'] = {
            'type': 'enabled',
            'budget_tokens': min(MAX_THINKING_BUDGET, int(max_tokens * 0.5))
        }

    logger.debug(f"Translated request: model={model} | msgs={len(messages)} | "
                 f"system={system is not None} | tools={len(anthropic_tools)}")

    return anthropic_request


def _translate_messages(openai_messages: List[Dict[str, Any]]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Split OpenAI messages into an Anthropic system prompt and message list.

    Returns:
        Tuple of (system prompt or None, Anthropic messages)
    """
    system: Optional[str] = None
    messages: List[Dict[str, Any]] = []

    for msg in openai_messages:
        role = msg.get('role')

        if role == 'system':
            text = _system_text(msg.get('content'))
            system = text if system is None else f"{system}\n\n{text}"
        elif role == 'user':
            messages.append({'role': 'user', 'content': _translate_user_content(msg.get('content'))})
        elif role == 'assistant':
            messages.append({'role': 'assistant', 'content': _translate_assistant_content(msg)})
        elif role == 'tool':
            _append_tool_result(messages, msg.get('tool_call_id', ''), msg.get('content'))
        elif role == 'function':
            # Legacy function role has no call id; the function name stands in for it
            _append_tool_result(messages, msg.get('name', ''), msg.get('content'))
        else:
            logger.warning(f"Skipping message with unknown role: {role}")

    if not messages:
        logger.warning("No user/assistant messages after translation, adding empty user turn")
        messages.append({'role': 'user', 'content': ''})

    return system, messages


def _system_text(content: Any) -> str:
    """Flatten system message content into a string."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        return '\n'.join(
            part.get('text', '') for part in content
            if isinstance(part, dict) and part.get('type') == 'text'
        )

    return '' if content is None else str(content)


def _translate_user_content(content: Any) -> Any:
    """Translate user content (string or content parts)."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        blocks = []
        for part in content:
            if not isinstance(part, dict):
                continue

            if part.get('type') == 'text':
                blocks.append({'type': 'text', 'text': part.get('text', '')})
            elif part.get('type') == 'image_url':
                blocks.append(_translate_image(part.get('image_url')))
            else:
                # Unknown part types pass through
                blocks.append(part)
        return blocks

    return '' if content is None else content


def _translate_image(image_url: Any) -> Dict[str, Any]:
    """Translate an OpenAI image_url part into an Anthropic image block."""
    if isinstance(image_url, dict):
        url = image_url.get('url', '')
    else:
        url = image_url or ''

    match = _DATA_URI_RE.match(url)
    if match:
        return {
            'type': 'image',
            'source': {
                'type': 'base64',
                'media_type': match.group(1),
                'data': match.group(2)
            }
        }

    return {
        'type': 'image',
        'source': {
            'type': 'url',
            'url': url
        }
    }


def _translate_assistant_content(msg: Dict[str, Any]) -> Any:
    """
    Translate an assistant message into Anthropic content.

    Text parts are merged into one text block, tool_calls and the legacy
    function_call become tool_use blocks. A lone text block collapses to a
    plain string.
    """
    content = msg.get('content')
    blocks: List[Dict[str, Any]] = []

    if isinstance(content, str):
        text = content
    elif isinstance(content, list):
        text = ''.join(
            part.get('text', '') for part in content
            if isinstance(part, dict) and part.get('type') == 'text'
        )
    else:
        text = ''

    if text:
        blocks.append({'type': 'text', 'text': text})

    for tc in msg.get('tool_calls') or []:
        if not isinstance(tc, dict):
            continue
        func = tc.get('function') or {}
        blocks.append({
            'type': 'tool_use',
            'id': tc.get('id') or f'toolu_{uuid.uuid4().hex[:24]}',
            'name': func.get('name', ''),
            'input': _parse_arguments(func.get('arguments'))
        })

    function_call = msg.get('function_call')
    if isinstance(function_call, dict):
        blocks.append({
            'type': 'tool_use',
            'id': f'toolu_{uuid.uuid4().hex[:24]}',
            'name': function_call.get('name', ''),
            'input': _parse_arguments(function_call.get('arguments'))
        })

    if len(blocks) == 1 and blocks[0]['type'] == 'text':
        return blocks[0]['text']

    return blocks if blocks else ''


def _parse_arguments(arguments: Any) -> Dict[str, Any]:
    """Parse a tool call arguments string into a dict, wrapping junk under 'raw'."""
    if isinstance(arguments, dict):
        return arguments

    if not arguments:
        return {}

    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to parse tool arguments: {e}")
        return {'raw': arguments}

    if not isinstance(parsed, dict):
        return {'raw': arguments}

    return parsed


def _append_tool_result(messages: List[Dict[str, Any]], tool_use_id: str, content: Any):
    """Attach a tool_result to the trailing user message, or start a new one."""
    tool_result = {
        'type': 'tool_result',
        'tool_use_id': tool_use_id,
        'content': content if isinstance(content, str) else json.dumps(content)
    }

    last = messages[-1] if messages else None
    if last is not None and last['role'] == 'user':
        if isinstance(last['content'], list):
            last['content'].append(tool_result)
        elif last['content']:
            last['content'] = [{'type': 'text', 'text': str(last['content'])}, tool_result]
        else:
            last['content'] = [tool_result]
        return

    # tool_result is only valid inside a user turn
    messages.append({'role': 'user', 'content': [tool_result]})


def _translate_tools(openai_tools: Any) -> List[Dict[str, Any]]:
    """Translate OpenAI tools (or legacy functions) to Anthropic tools."""
    if not isinstance(openai_tools, list):
        return []

    anthropic_tools = []
    for tool in openai_tools:
        normalized = normalize_tool(tool)
        if normalized is None:
            logger.warning(f"Dropping tool definition without a name: {tool}")
            continue
        anthropic_tools.append(normalized)

    return anthropic_tools


def normalize_tool(tool: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize one tool definition to the Anthropic shape.

    Accepts {"type": "function", "function": {...}} and the bare legacy
    {"name", "description", "parameters"} shape.
    """
    if not isinstance(tool, dict):
        return None

    if tool.get('type') == 'function' and isinstance(tool.get('function'), dict):
        func = tool['function']
    else:
        func = tool

    name = func.get('name')
    if not name:
        return None

    return {
        'name': name,
        'description': func.get('description') or '',
        'input_schema': func.get('parameters') or func.get('input_schema') or dict(EMPTY_INPUT_SCHEMA)
    }


def normalize_tool_choice(tool_choice: Any) -> Optional[Dict[str, Any]]:
    """Translate OpenAI tool_choice (or legacy function_call) to Anthropic format."""
    if not tool_choice:
        return None

    if isinstance(tool_choice, str):
        mapping = {
            'none': 'none',
            'auto': 'auto',
            'required': 'any',
        }
        return {'type': mapping.get(tool_choice, 'auto')}

    if isinstance(tool_choice, dict):
        if tool_choice.get('type') == 'function':
            name = (tool_choice.get('function') or {}).get('name')
        else:
            # Legacy function_call: {"name": "..."}
            name = tool_choice.get('name')
        if name:
            return {'type': 'tool', 'name': name}

    return {'type': 'auto'}
