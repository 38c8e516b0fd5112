"""Request handlers for the OpenAI adapter."""

from .proxy_handler import proxy_bp
from .dashboard_api import dashboard_bp
from .passthrough import passthrough_bp
from .process_manager import UpstreamProcessManager
from .models_cache import ModelsCache

__all__ = ['proxy_bp', 'dashboard_bp', 'passthrough_bp', 'UpstreamProcessManager', 'ModelsCache']
