"""Pytest configuration and fixtures."""

import json
import sys
from pathlib import Path
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

# Flat layout: make the repository root importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config
from app import create_app

ENV_VARS = (
    'PORT', 'UPSTREAM_URL', 'ANTHROPIC_BASE_URL', 'API_KEY', 'UPSTREAM_API_KEY',
    'ANTHROPIC_AUTH_TOKEN', 'REQUEST_TIMEOUT', 'MODELS_CACHE_TTL', 'DEBUG', 'AUTO_START_PROXY',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of Config."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    return Config(overrides={'upstream_url': 'http://upstream.test'}, config_paths=[])


@pytest.fixture
def app(config):
    app = create_app(config)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def make_response(status_code: int = 200, json_body=None, text: str = '', chunks: List[bytes] = None):
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text or (json.dumps(json_body) if json_body is not None else '')
    if json_body is not None:
        response.json.return_value = json_body
    else:
        response.json.side_effect = ValueError('No JSON object could be decoded')
    response.iter_content.return_value = iter(chunks or [])
    response.headers = {'Content-Type': 'text/event-stream' if chunks is not None else 'application/json'}
    return response


def sse(event: Dict) -> bytes:
    """Encode an Anthropic event as an SSE frame."""
    return f"event: {event['type']}\ndata: {json.dumps(event)}\n\n".encode('utf-8')


def parse_openai_stream(body: bytes) -> List:
    """Split an OpenAI SSE body into decoded payloads ('[DONE]' kept as a string)."""
    payloads = []
    for frame in body.decode('utf-8').split('\n\n'):
        frame = frame.strip()
        if not frame:
            continue
        assert frame.startswith('data: ')
        data = frame[len('data: '):]
        payloads.append(data if data == '[DONE]' else json.loads(data))
    return payloads
