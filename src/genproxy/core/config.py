"""Runtime settings for the genproxy service.

The proxy itself is stateless; what it needs to know is where the upstream
prediction API lives, how long to wait on a job, which defaults to fill into
a request, and how to bind the HTTP server.  All of that lives on
:class:`GenProxyConfig`.

Sources
-------
Each field can be set with a ``GENPROXY_``-prefixed variable (matched
case-insensitively).  A variable in the process environment beats the same
variable in a local ``.env`` file, and both beat the field default::

    GENPROXY_UPSTREAM_BASE_URL=http://localhost:9000
    GENPROXY_MAX_POLL_ATTEMPTS=10
    GENPROXY_OUTPUT_FORMAT=png

The app reads the module-level :data:`config`, built at import time.  Tests
and scripts that need other values construct their own instance::

    from genproxy.core.config import GenProxyConfig

    cfg = GenProxyConfig(max_poll_attempts=5, _env_file=None)

Credentials
-----------
There is no API key setting.  Every caller supplies their own
upstream credential in the request body and it is never stored here.

Polling Budget
--------------
``poll_interval_seconds`` x ``max_poll_attempts`` is the wall-clock budget
a single request may spend waiting on the upstream job (1s x 30 by default),
exposed as :attr:`GenProxyConfig.poll_budget_seconds`.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_VERSION = "5a5dd543d3b53c4bc7fd7ebdd933d839fbda221dbc4b7b122b9c2b7a7c3cf84d"


class GenProxyConfig(BaseSettings):
    """Main configuration for the genproxy service.

    Values are loaded from environment variables with the GENPROXY_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Upstream Settings:
        upstream_base_url : str
            Base URL of the prediction API (no trailing slash needed)
        default_model_version : str
            Model revision submitted when the request names none
        request_timeout_seconds : float
            Transport timeout applied to every upstream HTTP call

    Polling Settings:
        poll_interval_seconds : float
            Delay before each status poll
        max_poll_attempts : int
            Number of polls before the job is reported as timed out

    Generation Defaults:
        default_width, default_height : int
            Image dimensions used when the request omits them
        max_seed : int
            Exclusive upper bound for randomly drawn seeds
        output_format, output_quality, num_inference_steps, go_fast,
        megapixels, disable_safety_checker
            Fixed rendering parameters sent with every prediction

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : str
            uvicorn log level
        cors_allow_origins : list[str]
            Origins allowed by the CORS middleware

    Examples
    --------
        >>> custom_config = GenProxyConfig(
        ...     max_poll_attempts=5,
        ...     poll_interval_seconds=0.5,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENPROXY_",
        case_sensitive=False,
    )

    # Upstream settings
    upstream_base_url: str = Field(
        default="https://api.replicate.com",
        description="Base URL of the upstream prediction API",
    )
    default_model_version: str = Field(
        default=DEFAULT_MODEL_VERSION,
        description="Model version submitted when the request does not name one",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Transport timeout for each upstream HTTP call",
        gt=0,
    )

    # Polling settings
    poll_interval_seconds: float = Field(
        default=1.0,
        description="Seconds to wait before each status poll",
        ge=0,
    )
    max_poll_attempts: int = Field(
        default=30,
        description="Status polls before the job is reported as timed out",
        ge=1,
        le=600,
    )

    # Default generation settings
    default_width: int = Field(default=1024, ge=64, le=2048)
    default_height: int = Field(default=1024, ge=64, le=2048)
    max_seed: int = Field(
        default=1_000_000,
        description="Exclusive upper bound for random seeds",
        ge=1,
    )

    # Fixed rendering parameters sent with every prediction
    output_format: Literal["webp", "jpg", "png"] = Field(default="webp")
    output_quality: int = Field(default=80, ge=0, le=100)
    num_inference_steps: int = Field(default=28, ge=1, le=50)
    go_fast: bool = Field(default=True)
    megapixels: Literal["1", "0.25"] = Field(default="1")
    disable_safety_checker: bool = Field(default=False)

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["critical", "error", "warning", "info", "debug"] = Field(
        default="info",
        description="uvicorn log level",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the proxy from a browser",
    )

    @property
    def poll_budget_seconds(self) -> float:
        """Approximate wall-clock time spent polling before a timeout."""
        return self.poll_interval_seconds * self.max_poll_attempts


# Read by genproxy.api.main at import time.
config = GenProxyConfig()
