"""Render failures in the OpenAI error envelope."""

import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


def format_error(
    message: Any,
    error_type: str = 'invalid_request_error',
    status: int = 400
) -> Dict[str, Any]:
    """
    Build an OpenAI-compatible error body.

    Args:
        message: Human readable error message
        error_type: OpenAI error type tag
        status: HTTP status the caller intends to send (not part of the body)

    Returns:
        OpenAI error envelope
    """
    if not isinstance(message, str):
        message = str(message)

    return {
        'error': {
            'message': message,
            'type': error_type or 'api_error',
            'param': None,
            'code': None
        }
    }


def translate_upstream_error(
    error_response: Any,
    status_code: int = 500
) -> Dict[str, Any]:
    """
    Translate an Anthropic error body into an OpenAI error envelope.

    Handles the Anthropic shape ({"type": "error", "error": {...}}), a bare
    string error, and loose {"message"/"detail"} bodies from proxies.
    """
    logger.debug(f"Translating upstream error ({status_code}): {error_response}")

    fallback_message = f'Upstream error: {status_code}'

    if not isinstance(error_response, dict):
        return format_error(error_response or fallback_message, 'api_error', status_code)

    error_info = error_response.get('error')
    if isinstance(error_info, str):
        return format_error(error_info, 'api_error', status_code)

    if not isinstance(error_info, dict):
        error_info = {}

    message = (
        error_info.get('message') or
        error_response.get('message') or
        error_response.get('detail') or
        fallback_message
    )
    error_type = error_info.get('type') or 'api_error'

    return format_error(message, error_type, status_code)
