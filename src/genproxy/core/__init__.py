"""Core functionality for the generation proxy.

- **GenProxyConfig / config**: configuration via Pydantic Settings
  (``GENPROXY_`` environment variables and ``.env``)
- **PredictionClient**: async HTTP client for the upstream prediction API
- **PredictionPoller**: bounded fixed-delay polling state machine
- **GenerationProxy**: validate, submit, poll, normalize
- **errors**: failure taxonomy and upstream error classification

Architecture Overview
---------------------
1. **Configuration Layer** (config.py)
2. **Upstream Layer** (upstream.py): wire calls and the ``Prediction`` model
3. **Polling Layer** (poller.py): waits for a terminal state within budget
4. **Proxy Layer** (proxy.py): request defaults and result normalization

The HTTP surface lives in :mod:`genproxy.api`.
"""

from genproxy.core.config import GenProxyConfig, config
from genproxy.core.models import GenerationRequest, GenerationResult
from genproxy.core.poller import JobState, PredictionPoller
from genproxy.core.proxy import GenerationDefaults, GenerationProxy
from genproxy.core.upstream import Prediction, PredictionClient, PredictionStatus

__all__ = [
    "GenProxyConfig",
    "GenerationDefaults",
    "GenerationProxy",
    "GenerationRequest",
    "GenerationResult",
    "JobState",
    "Prediction",
    "PredictionClient",
    "PredictionPoller",
    "PredictionStatus",
    "config",
]
