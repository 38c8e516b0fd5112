"""Transparent reverse proxy for non-API routes (upstream WebUI etc)."""

import logging

import requests
from flask import Blueprint, request, jsonify, Response, stream_with_context, current_app

from translator.errors import format_error

logger = logging.getLogger(__name__)

passthrough_bp = Blueprint('passthrough', __name__)

ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

# Never forwarded in either direction
HOP_BY_HOP_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade', 'host',
    'content-length', 'content-encoding',
}


def _filter_headers(headers) -> list:
    return [(k, v) for k, v in headers.items() if k.lower() not in HOP_BY_HOP_HEADERS]


@passthrough_bp.route('/', defaults={'path': ''}, methods=ALL_METHODS)
@passthrough_bp.route('/<path:path>', methods=ALL_METHODS)
def forward(path):
    """Forward any unmatched route to the upstream, streaming the reply back."""
    config = current_app.config['ADAPTER_CONFIG']

    target_url = f"{config.upstream_url}/{path}"
    if request.query_string:
        target_url += '?' + request.query_string.decode('latin-1')

    logger.debug(f"Forwarding {request.method} {request.path} to upstream")

    try:
        upstream = requests.request(
            request.method,
            target_url,
            headers=dict(_filter_headers(request.headers)),
            data=request.get_data(),
            stream=True,
            allow_redirects=False,
            timeout=config.request_timeout
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Proxy error: {e}")
        return jsonify(format_error('Upstream proxy unreachable', 'proxy_error', 502)), 502

    def generate():
        try:
            yield from upstream.iter_content(chunk_size=8192)
        finally:
            upstream.close()

    return Response(
        stream_with_context(generate()),
        status=upstream.status_code,
        headers=_filter_headers(upstream.headers)
    )
