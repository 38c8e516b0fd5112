"""Tests for upstream proxy process supervision."""

import subprocess
from unittest.mock import MagicMock, patch

from handlers.process_manager import UpstreamProcessManager


def _fake_process(pid=4321, returncode=None):
    process = MagicMock()
    process.pid = pid
    process.poll.return_value = returncode
    return process


class TestUpstreamProcessManager:

    def test_default_command_uses_upstream_port(self):
        manager = UpstreamProcessManager('http://localhost:9090', enabled=True)

        assert manager.port == 9090
        assert manager.command == ['npx', 'antigravity-claude-proxy@latest', 'start', '--port=9090']

    def test_disabled_does_not_start(self):
        manager = UpstreamProcessManager('http://localhost:8080', enabled=False)

        with patch('handlers.process_manager.subprocess.Popen') as mock_popen:
            assert manager.start() is False

        mock_popen.assert_not_called()

    def test_remote_upstream_does_not_start(self):
        manager = UpstreamProcessManager('http://proxy.example.com:8080', enabled=True)

        assert manager.should_start() is False

    def test_missing_executable(self):
        manager = UpstreamProcessManager('http://127.0.0.1:8080', enabled=True)

        with patch('handlers.process_manager.shutil.which', return_value=None), \
                patch('handlers.process_manager.subprocess.Popen') as mock_popen:
            assert manager.start() is False

        mock_popen.assert_not_called()
        assert 'not found' in manager.last_error

    def test_start_and_stop(self):
        manager = UpstreamProcessManager('http://localhost:8080', enabled=True)
        process = _fake_process()

        with patch('handlers.process_manager.shutil.which', return_value='/usr/bin/npx'), \
                patch('handlers.process_manager.subprocess.Popen', return_value=process) as mock_popen:
            assert manager.start() is True

        assert mock_popen.call_args.kwargs['env']['PORT'] == '8080'
        assert manager.is_running()
        assert manager.status()['pid'] == 4321

        manager.stop()

        process.terminate.assert_called_once()
        process.wait.assert_called_once_with(timeout=5.0)
        assert manager.process is None
        assert manager.status()['running'] is False

    def test_stop_kills_when_terminate_times_out(self):
        manager = UpstreamProcessManager('http://localhost:8080', enabled=True)
        process = _fake_process()
        process.wait.side_effect = [subprocess.TimeoutExpired('npx', 5.0), 0]
        manager.process = process

        manager.stop()

        process.kill.assert_called_once()
        assert manager.process is None

    def test_popen_failure(self):
        manager = UpstreamProcessManager('http://localhost:8080', enabled=True)

        with patch('handlers.process_manager.shutil.which', return_value='/usr/bin/npx'), \
                patch('handlers.process_manager.subprocess.Popen', side_effect=OSError('denied')):
            assert manager.start() is False

        assert manager.last_error == 'denied'
        assert manager.process is None

    def test_exit_code_is_recorded(self):
        manager = UpstreamProcessManager('http://localhost:8080', enabled=True)
        manager.process = _fake_process(returncode=1)

        assert manager.is_running() is False
        assert manager.status()['last_error'] == 'exited with code 1'
