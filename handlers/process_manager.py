"""Supervision of a locally spawned upstream proxy process."""

import os
import shutil
import subprocess
import logging
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

UPSTREAM_PACKAGE = 'antigravity-claude-proxy@latest'
LOCAL_HOSTS = ('localhost', '127.0.0.1')


class UpstreamProcessManager:
    """Starts and stops the upstream Anthropic-compatible proxy."""

    def __init__(self, upstream_url: str, enabled: bool = False, command: Optional[List[str]] = None):
        self.upstream_url = upstream_url
        self.enabled = enabled
        parsed = urlparse(upstream_url)
        self.host = parsed.hostname or ''
        try:
            self.port = parsed.port or 8080
        except ValueError:
            self.port = 8080
        self.command = command or ['npx', UPSTREAM_PACKAGE, 'start', f'--port={self.port}']
        self.process: Optional[subprocess.Popen] = None
        self.last_error: Optional[str] = None

    def should_start(self) -> bool:
        """Auto-start only when enabled and the upstream is on this machine."""
        if not self.enabled:
            return False
        if self.host not in LOCAL_HOSTS:
            logger.info("Upstream is not localhost, skipping auto-start of proxy")
            return False
        return True

    def start(self) -> bool:
        """
        Spawn the upstream proxy if configured to.

        Returns:
            True if a process was started
        """
        if not self.should_start():
            return False

        if self.is_running():
            return True

        if not shutil.which(self.command[0]):
            self.last_error = f"{self.command[0]} not found. Please install Node.js first: https://nodejs.org/"
            logger.error(f"Failed to start upstream proxy: {self.last_error}")
            return False

        env = os.environ.copy()
        env['PORT'] = str(self.port)

        logger.info(f"Starting upstream proxy: {' '.join(self.command)}")

        try:
            self.process = subprocess.Popen(self.command, env=env)
        except OSError as e:
            self.last_error = str(e)
            logger.error(f"Failed to start upstream proxy: {e}")
            self.process = None
            return False

        self.last_error = None
        logger.info(f"Upstream proxy started (pid={self.process.pid}, port={self.port})")
        return True

    def stop(self, timeout: float = 5.0):
        """Terminate the spawned proxy, killing it if it does not exit in time."""
        if self.process is None:
            return

        if self.process.poll() is None:
            logger.info(f"Stopping upstream proxy (pid={self.process.pid})")
            self.process.terminate()
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Upstream proxy did not exit, killing it")
                self.process.kill()
                self.process.wait()

        self.process = None

    def is_running(self) -> bool:
        """Check if the spawned proxy is still alive."""
        if self.process is None:
            return False

        returncode = self.process.poll()
        if returncode and self.last_error is None:
            self.last_error = f"exited with code {returncode}"
            logger.error(f"Upstream proxy exited with code {returncode}")
        return returncode is None

    def status(self) -> dict:
        """Get process status (for /health and /adapter/status)."""
        return {
            'managed': self.enabled,
            'running': self.is_running(),
            'pid': self.process.pid if self.process is not None else None,
            'command': ' '.join(self.command),
            'last_error': self.last_error,
        }
