"""Request/response logging and usage tracking for the adapter."""

import copy
import time
import logging
import threading
from typing import Any, Dict, List, Optional
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_LOGGED_TEXT = 500


@dataclass
class UsageStats:
    """Track token usage statistics."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_latency_ms: int = 0
    session_start: float = field(default_factory=time.time)

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return (self.successful_requests / self.total_requests) * 100

    @property
    def avg_latency_ms(self) -> float:
        if self.successful_requests == 0:
            return 0.0
        return self.total_latency_ms / self.successful_requests

    @property
    def session_duration_seconds(self) -> float:
        return time.time() - self.session_start

    def to_dict(self) -> dict:
        return {
            'total_requests': self.total_requests,
            'successful_requests': self.successful_requests,
            'failed_requests': self.failed_requests,
            'success_rate': round(self.success_rate, 1),
            'total_prompt_tokens': self.total_prompt_tokens,
            'total_completion_tokens': self.total_completion_tokens,
            'total_tokens': self.total_prompt_tokens + self.total_completion_tokens,
            'avg_latency_ms': round(self.avg_latency_ms, 0),
            'session_duration_seconds': round(self.session_duration_seconds, 0),
        }


class LoggerManager:
    """Manages API call logging and usage statistics."""

    def __init__(self, max_logs: int = 100):
        self.max_logs = max_logs
        self.api_calls: deque = deque(maxlen=max_logs)
        self.server_events: deque = deque(maxlen=max_logs)
        self.usage = UsageStats()
        self._lock = threading.Lock()

    def log_api_call(
        self,
        method: str,
        path: str,
        status: int,
        duration_ms: int,
        request_data: Optional[Dict] = None,
        response_data: Optional[Dict] = None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0
    ):
        """Log an API call with optional request/response data."""
        entry = {
            'timestamp': time.time(),
            'method': method,
            'path': path,
            'status': status,
            'duration_ms': duration_ms,
            'request': self._sanitize_for_log(request_data),
            'response': self._sanitize_for_log(response_data),
            'prompt_tokens': prompt_tokens,
            'completion_tokens': completion_tokens,
        }

        with self._lock:
            self.api_calls.appendleft(entry)

            self.usage.total_requests += 1
            if status < 400:
                self.usage.successful_requests += 1
                self.usage.total_latency_ms += duration_ms
                self.usage.total_prompt_tokens += prompt_tokens
                self.usage.total_completion_tokens += completion_tokens
            else:
                self.usage.failed_requests += 1

        token_info = ""
        if prompt_tokens or completion_tokens:
            token_info = f" | tokens: {prompt_tokens}+{completion_tokens}"
        summary = f"[{method}] {path} {status} ({duration_ms}ms){token_info}"

        if status >= 500:
            logger.error(summary)
        elif status >= 400:
            logger.warning(summary)
        else:
            logger.info(summary)

    def log_server_event(self, level: str, message: str, data: Optional[Dict] = None):
        """Log a server event."""
        entry = {
            'timestamp': time.time(),
            'level': level,
            'message': message,
            'data': data,
        }

        with self._lock:
            self.server_events.appendleft(entry)

        log_func = getattr(logger, level.lower(), logger.info)
        log_func(message)

    def get_api_calls(self, limit: int = 50) -> List[Dict]:
        """Get recent API calls."""
        with self._lock:
            return list(self.api_calls)[:limit]

    def get_server_events(self, limit: int = 50) -> List[Dict]:
        """Get recent server events."""
        with self._lock:
            return list(self.server_events)[:limit]

    def get_usage_stats(self) -> Dict:
        """Get current usage statistics."""
        with self._lock:
            return self.usage.to_dict()

    def clear_logs(self):
        """Clear all logs (but preserve usage stats)."""
        with self._lock:
            self.api_calls.clear()
            self.server_events.clear()
        logger.info("Logs cleared")

    def reset_usage(self):
        """Reset usage statistics."""
        with self._lock:
            self.usage = UsageStats()
        logger.info("Usage statistics reset")

    def _sanitize_for_log(self, data: Optional[Dict]) -> Optional[Dict]:
        """Sanitize data for logging (truncate large content)."""
        if not isinstance(data, dict):
            return data

        sanitized = copy.deepcopy(data)

        # OpenAI request messages
        for msg in sanitized.get('messages') or []:
            if isinstance(msg, dict):
                msg['content'] = _truncate_content(msg.get('content'))

        # OpenAI response choices
        for choice in sanitized.get('choices') or []:
            message = choice.get('message') if isinstance(choice, dict) else None
            if isinstance(message, dict):
                message['content'] = _truncate_content(message.get('content'))
                if 'reasoning_content' in message:
                    message['reasoning_content'] = _truncate_content(message['reasoning_content'])

        return sanitized


def _truncate_content(content: Any) -> Any:
    """Truncate long text in string or content-part form."""
    if isinstance(content, str) and len(content) > MAX_LOGGED_TEXT:
        return content[:MAX_LOGGED_TEXT] + '... [truncated]'

    if isinstance(content, list):
        for part in content:
            if not isinstance(part, dict):
                continue
            if isinstance(part.get('text'), str) and len(part['text']) > MAX_LOGGED_TEXT:
                part['text'] = part['text'][:MAX_LOGGED_TEXT] + '... [truncated]'
            image_url = part.get('image_url')
            if isinstance(image_url, dict) and len(image_url.get('url') or '') > MAX_LOGGED_TEXT:
                image_url['url'] = image_url['url'][:64] + '... [truncated]'

    return content
