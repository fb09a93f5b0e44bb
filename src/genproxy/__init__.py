"""genproxy - synchronous proxy for asynchronous image-generation APIs."""

__version__ = "0.1.0"

from genproxy.core.config import GenProxyConfig, config
from genproxy.core.proxy import GenerationProxy

__all__ = [
    "GenProxyConfig",
    "GenerationProxy",
    "config",
]
