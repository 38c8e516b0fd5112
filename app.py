#!/usr/bin/env python3
"""Antigravity OpenAI Adapter - OpenAI-compatible API over an Anthropic Messages upstream."""

import sys
import time
import signal
import logging
import argparse
from typing import Optional

from flask import Flask, request, g
from flask_cors import CORS
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

from config import Config, APP_NAME, APP_VERSION
from logger_manager import LoggerManager
from handlers import proxy_bp, dashboard_bp, passthrough_bp, UpstreamProcessManager, ModelsCache


def create_app(config: Optional[Config] = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)

    config = config or Config()
    app.config['ADAPTER_CONFIG'] = config

    log_manager = LoggerManager()
    app.config['LOG_MANAGER'] = log_manager

    app.config['MODELS_CACHE'] = ModelsCache(config.models_cache_ttl)
    app.config['UPSTREAM_PROCESS'] = UpstreamProcessManager(config.upstream_url, config.auto_start_proxy)

    # Timer must run before the API key gate so rejected calls are logged too
    _register_request_logging(app, log_manager)

    # Catch-all passthrough goes last
    app.register_blueprint(proxy_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(passthrough_bp)

    log_manager.log_server_event('info', 'Adapter started', {
        'port': config.port,
        'upstream': config.upstream_url,
        'auth': config.is_auth_enabled(),
        'autoStartProxy': config.auto_start_proxy,
    })

    return app


def _register_request_logging(app: Flask, log_manager: LoggerManager):
    """Record every request in the log manager (streams record themselves on completion)."""

    @app.before_request
    def start_timer():
        g.start_time = time.time()

    @app.after_request
    def log_request(response):
        if request.method == 'OPTIONS' or request.path.startswith('/adapter/'):
            return response
        if response.mimetype == 'text/event-stream' and request.path == '/v1/chat/completions':
            return response

        duration_ms = int((time.time() - g.get('start_time', time.time())) * 1000)
        usage = g.get('usage') or {}
        log_manager.log_api_call(
            request.method, request.path, response.status_code, duration_ms,
            g.get('log_request'), g.get('log_response'),
            prompt_tokens=usage.get('prompt_tokens', 0),
            completion_tokens=usage.get('completion_tokens', 0)
        )
        return response


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='OpenAI-compatible API adapter for an Anthropic Messages upstream.',
        epilog=(
            'Environment: PORT, UPSTREAM_URL, ANTHROPIC_BASE_URL, API_KEY, UPSTREAM_API_KEY, '
            'ANTHROPIC_AUTH_TOKEN, REQUEST_TIMEOUT, MODELS_CACHE_TTL, DEBUG=true, AUTO_START_PROXY=true'
        )
    )
    subparsers = parser.add_subparsers(dest='command')

    start = subparsers.add_parser('start', help='Start the adapter server')
    start.add_argument('--port', type=int, help='Port to listen on (default: 8081)')
    start.add_argument('--upstream', help='Upstream Anthropic-compatible proxy URL (default: http://localhost:8080)')
    start.add_argument('--debug', action='store_true', help='Enable debug logging')
    start.add_argument('--auto-start-proxy', action='store_true',
                       help='Spawn the upstream proxy when it runs on localhost')

    return parser


def _handle_sigterm(signum, frame):
    """Turn SIGTERM into a normal interpreter exit so cleanup runs."""
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != 'start':
        parser.print_help()
        return 0

    config = Config(overrides={
        'port': args.port,
        'upstream_url': args.upstream,
        'debug': True if args.debug else None,
        'auto_start_proxy': True if args.auto_start_proxy else None,
    })

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    app = create_app(config)
    process_manager = app.config['UPSTREAM_PROCESS']

    # Print startup banner
    print()
    print("=" * 60)
    print(f"  Antigravity OpenAI Adapter v{APP_VERSION}")
    print("=" * 60)
    print()
    print(f"  OpenAI API: http://localhost:{config.port}/v1")
    print(f"  Upstream:   {config.upstream_url}")
    print()
    print("  Endpoints:")
    print("    POST /v1/chat/completions  (Chat Completions)")
    print("    GET  /v1/models            (List Models)")
    print("    GET  /health               (Health Check)")
    print()
    print(f"  API key:    {'Required' if config.is_auth_enabled() else 'Not required'}")
    print(f"  Debug:      {'Enabled' if config.debug else 'Disabled'}")
    print()
    print("=" * 60)
    print()

    signal.signal(signal.SIGTERM, _handle_sigterm)
    process_manager.start()

    try:
        app.run(
            host='0.0.0.0',
            port=config.port,
            debug=False,
            threaded=True
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except OSError as e:
        logger.error(f"Server error: {e}")
        return 1
    finally:
        process_manager.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())
