"""OpenAI API handler - translates to the Anthropic upstream."""

import json
import time
import logging
import secrets
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests
from flask import Blueprint, request, jsonify, Response, stream_with_context, g, current_app

from translator import translate_request, translate_response, StreamTranslator
from translator.anthropic_to_openai import translate_models_list
from translator.errors import format_error, translate_upstream_error
from .sse import SSEDecoder, SSEEvent

logger = logging.getLogger(__name__)

proxy_bp = Blueprint('proxy', __name__)

ANTHROPIC_VERSION = '2023-06-01'
DONE_FRAME = b'data: [DONE]\n\n'
GATED_PREFIXES = ('/v1', '/adapter')
ALL_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']

SSE_HEADERS = {
    'Cache-Control': 'no-cache',
    'X-Accel-Buffering': 'no',
    'Connection': 'keep-alive'
}


def get_config():
    """Get config from Flask app context."""
    return current_app.config['ADAPTER_CONFIG']


def get_log_manager():
    """Get log manager from Flask app context."""
    return current_app.config['LOG_MANAGER']


def get_models_cache():
    """Get models cache from Flask app context."""
    return current_app.config['MODELS_CACHE']


def error_response(message: str, error_type: str = 'invalid_request_error', status: int = 400):
    """Build a (body, status) pair with an OpenAI error envelope."""
    body = format_error(message, error_type, status)
    g.log_response = body
    return jsonify(body), status


@proxy_bp.before_app_request
def verify_api_key():
    """Require the adapter API key on /v1 and /adapter routes when one is configured."""
    if not request.path.startswith(GATED_PREFIXES) or request.method == 'OPTIONS':
        return None

    config = get_config()
    if not config.is_auth_enabled():
        return None

    provided = ''
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        provided = auth_header[7:]
    elif request.headers.get('x-api-key'):
        provided = request.headers['x-api-key']

    if not provided or not secrets.compare_digest(provided.encode('utf-8'), str(config.api_key).encode('utf-8')):
        masked = f"***{provided[-3:]}" if provided else 'none'
        logger.warning(f"Unauthorized request from {request.remote_addr}, invalid API key (provided: {masked})")
        return error_response('Invalid or missing API key', 'authentication_error', 401)

    return None


def _validate_chat_request(body: Any) -> Optional[str]:
    """Return an error message if the request is malformed, else None."""
    if not isinstance(body, dict):
        return 'Request body must be a JSON object'

    messages = body.get('messages')
    if not isinstance(messages, list) or not messages:
        return 'messages is required and must be a non-empty array'

    for i, msg in enumerate(messages):
        if not isinstance(msg, dict) or not isinstance(msg.get('role'), str):
            return f'messages[{i}] must be an object with a string role'

    if body.get('model') is not None and not isinstance(body['model'], str):
        return 'model must be a string'

    for key in ('max_tokens', 'max_completion_tokens'):
        value = body.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
            return f'{key} must be a positive integer'

    for key in ('temperature', 'top_p'):
        value = body.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            return f'{key} must be a number'

    return None


@proxy_bp.route('/v1/chat/completions', methods=['POST'])
def chat_completions():
    """
    Handle OpenAI /v1/chat/completions requests.

    Translates to Anthropic format, forwards to the upstream /v1/messages,
    translates the response (or event stream) back to OpenAI format.
    """
    start_time = time.time()
    config = get_config()
    log_manager = get_log_manager()

    openai_request = request.get_json(silent=True)
    g.log_request = openai_request

    error = _validate_chat_request(openai_request)
    if error:
        return error_response(error, 'invalid_request_error', 400)

    is_streaming = bool(openai_request.get('stream', False))

    try:
        anthropic_request = translate_request(openai_request)
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Translation error: {e}")
        return error_response(f'Translation error: {e}', 'invalid_request_error', 400)

    requested_model = anthropic_request['model']
    logger.info(f"-> {requested_model} | msgs={len(openai_request['messages'])} | stream={is_streaming}")

    target_url = f"{config.upstream_url}/v1/messages"
    headers = _upstream_headers(config)

    try:
        if is_streaming:
            return _handle_streaming(
                target_url, anthropic_request, headers, requested_model,
                openai_request, start_time, config, log_manager
            )
        return _handle_non_streaming(target_url, anthropic_request, headers, requested_model, config)
    except requests.exceptions.Timeout:
        return error_response('Upstream request timed out', 'timeout_error', 504)
    except requests.exceptions.ConnectionError as e:
        return error_response(f'Connection error: {e}', 'api_error', 502)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return error_response(f'Internal error: {e}', 'api_error', 500)


def _upstream_headers(config) -> Dict[str, str]:
    """Headers for calls to the Anthropic-compatible upstream."""
    return {
        'Content-Type': 'application/json',
        'Authorization': f'Bearer {config.upstream_api_key}',
        'anthropic-version': ANTHROPIC_VERSION,
    }


def _read_error_body(response: requests.Response) -> Any:
    """Best-effort parse of an upstream error body."""
    try:
        return response.json()
    except ValueError:
        return {'error': {'message': response.text or f'Upstream error: {response.status_code}'}}


def _handle_non_streaming(target_url, anthropic_request, headers, requested_model, config):
    """Handle non-streaming request/response."""
    response = requests.post(
        target_url,
        json=anthropic_request,
        headers=headers,
        timeout=config.request_timeout
    )

    if not response.ok:
        openai_error = translate_upstream_error(_read_error_body(response), response.status_code)
        g.log_response = openai_error
        return jsonify(openai_error), response.status_code

    try:
        anthropic_response = response.json()
    except ValueError as e:
        return error_response(f'Invalid JSON from upstream: {e}', 'api_error', 502)

    if not isinstance(anthropic_response, dict):
        return error_response('Invalid response from upstream', 'api_error', 502)

    # Some upstreams report errors with a 200 status
    if anthropic_response.get('type') == 'error':
        openai_error = translate_upstream_error(anthropic_response, 400)
        g.log_response = openai_error
        return jsonify(openai_error), 400

    openai_response = translate_response(anthropic_response, requested_model)
    usage = openai_response['usage']
    g.log_response = openai_response
    g.usage = usage

    logger.info(f"<- finish_reason={openai_response['choices'][0]['finish_reason']} | "
                f"tokens={usage['prompt_tokens']}+{usage['completion_tokens']}")

    return jsonify(openai_response), 200


def _handle_streaming(target_url, anthropic_request, headers, requested_model,
                      openai_request, start_time, config, log_manager):
    """Handle streaming request/response."""
    response = requests.post(
        target_url,
        json=anthropic_request,
        headers=headers,
        timeout=config.request_timeout,
        stream=True
    )

    if not response.ok:
        error_data = _read_error_body(response)
        response.close()
        openai_error = translate_upstream_error(error_data, response.status_code)
        g.log_response = openai_error
        return jsonify(openai_error), response.status_code

    # Some upstreams answer a stream request with a plain JSON body
    if 'application/json' in response.headers.get('Content-Type', ''):
        body = _read_error_body(response)
        response.close()
        if isinstance(body, dict) and body.get('type') == 'error':
            openai_error = translate_upstream_error(body, 400)
            status = 400
        else:
            openai_error = format_error('Upstream did not return an event stream', 'api_error', 502)
            status = 502
        g.log_response = openai_error
        return jsonify(openai_error), status

    translator = StreamTranslator(requested_model)

    def generate():
        status = 200
        try:
            yield from _stream_frames(response, translator)
            if translator.state.error is not None:
                status = 502
            yield DONE_FRAME
        except GeneratorExit:
            status = 499
            logger.warning("Client disconnected during stream")
        except Exception as e:
            status = 500
            logger.exception(f"Streaming error: {e}")
            yield _sse_frame(format_error(str(e), 'api_error', 500))
            yield DONE_FRAME
        finally:
            response.close()

            duration_ms = int((time.time() - start_time) * 1000)
            usage = translator.get_usage()
            log_manager.log_api_call('POST', '/v1/chat/completions', status, duration_ms,
                                     openai_request, {'streaming': True, 'error': translator.state.error},
                                     prompt_tokens=usage.get('prompt_tokens', 0),
                                     completion_tokens=usage.get('completion_tokens', 0))

            logger.info(f"<- stream ended ({status}) | tokens={usage.get('prompt_tokens', 0)}+"
                        f"{usage.get('completion_tokens', 0)}")

    return Response(
        stream_with_context(generate()),
        content_type='text/event-stream',
        headers=SSE_HEADERS
    ), 200


def _stream_frames(response: requests.Response, translator: StreamTranslator) -> Iterator[bytes]:
    """Decode the upstream event stream and yield OpenAI SSE frames until it finishes."""
    decoder = SSEDecoder()

    for raw in response.iter_content(chunk_size=None):
        for sse_event in decoder.feed(raw):
            frames, finished = _frames_for_event(sse_event, translator)
            yield from frames
            if finished:
                return

    for sse_event in decoder.flush():
        frames, finished = _frames_for_event(sse_event, translator)
        yield from frames
        if finished:
            return


def _frames_for_event(sse_event: SSEEvent, translator: StreamTranslator) -> Tuple[List[bytes], bool]:
    """
    Translate one upstream SSE frame.

    Returns:
        Tuple of (OpenAI frames to send, whether the stream is finished)
    """
    data = sse_event.data.strip()
    if not data or data == '[DONE]':
        return [], False

    try:
        event = json.loads(data)
    except ValueError as e:
        logger.debug(f"Skipping unparseable stream frame: {e}, data: {data[:200]}")
        return [], False

    if not isinstance(event, dict):
        return [], False

    frames = [_sse_frame(chunk) for chunk in translator.translate_event(event)]
    event_type = event.get('type')

    if event_type == 'error':
        frames.append(_sse_frame(translate_upstream_error(event, 500)))
        return frames, True

    return frames, event_type == 'message_stop'


def _sse_frame(payload: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode('utf-8')


@proxy_bp.route('/v1/models', methods=['GET'])
def list_models():
    """List upstream models in OpenAI format (cached)."""
    config = get_config()
    cache = get_models_cache()

    cached = cache.get()
    if cached is not None:
        logger.debug("Returning cached models list")
        return jsonify(cached)

    try:
        response = requests.get(
            f"{config.upstream_url}/v1/models",
            headers={
                'Authorization': f'Bearer {config.upstream_api_key}',
                'Accept': 'application/json'
            },
            timeout=config.request_timeout
        )
        if not response.ok:
            return error_response(f'Upstream error: {response.status_code}', 'api_error', 500)
        models = translate_models_list(response.json())
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Error listing models: {e}")
        return error_response(str(e), 'api_error', 500)

    cache.set(models)
    return jsonify(models)


@proxy_bp.route('/v1/embeddings', methods=['POST'])
def embeddings():
    """Embeddings are not supported."""
    return error_response(
        'Embeddings are not supported by this adapter. Use a dedicated embeddings API.',
        'not_implemented', 501
    )


@proxy_bp.route('/v1/completions', methods=['POST'])
def completions():
    """Legacy completions are not supported."""
    return error_response(
        'Legacy completions API is not supported. Use /v1/chat/completions instead.',
        'not_implemented', 501
    )


@proxy_bp.route('/v1/fine_tuning', methods=ALL_METHODS)
@proxy_bp.route('/v1/fine_tuning/<path:subpath>', methods=ALL_METHODS)
@proxy_bp.route('/v1/fine-tunes', methods=ALL_METHODS)
@proxy_bp.route('/v1/fine-tunes/<path:subpath>', methods=ALL_METHODS)
@proxy_bp.route('/v1/assistants', methods=ALL_METHODS)
@proxy_bp.route('/v1/assistants/<path:subpath>', methods=ALL_METHODS)
@proxy_bp.route('/v1/files', methods=ALL_METHODS)
@proxy_bp.route('/v1/files/<path:subpath>', methods=ALL_METHODS)
def unsupported_api(subpath=None):
    """Fine-tuning, assistants and files APIs are not supported."""
    api_name = request.path.split('/')[2]
    return error_response(
        f'The {api_name} API is not supported by this adapter.',
        'not_implemented', 501
    )
