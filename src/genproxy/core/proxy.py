"""The generation proxy: one synchronous call in, one normalized answer out.

:class:`GenerationProxy` hides the upstream service's asynchronous protocol
from the caller.  For each request it:

1. Rejects a missing API key or empty prompt without touching the network.
2. Assembles the model input, applying a default for every optional field.
3. Submits exactly one prediction (never retried, never deduplicated).
4. Hands the prediction to :class:`~genproxy.core.poller.PredictionPoller`.
5. Normalizes the finished prediction's output into
   :class:`~genproxy.core.models.GenerationResult` objects.

Failures surface as :class:`~genproxy.core.errors.ProxyError` subclasses.
Nothing is returned for a failed or timed-out job: the request either yields
every result or raises.

Usage
-----
::

    async with httpx.AsyncClient(timeout=config.request_timeout_seconds) as http:
        proxy = GenerationProxy.from_config(config, http)
        results = await proxy.generate(GenerationRequest(prompt="...", apiKey="..."))
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

from genproxy.core.config import GenProxyConfig
from genproxy.core.errors import (
    MISSING_PROMPT_MESSAGE,
    InvalidRequestError,
    MissingCredentialError,
    mask_secret,
)
from genproxy.core.models import GenerationRequest, GenerationResult
from genproxy.core.poller import PredictionPoller, SleepFn
from genproxy.core.upstream import Prediction, PredictionClient

logger = logging.getLogger(__name__)


@dataclass
class GenerationDefaults:
    """Values applied to a request before it is submitted upstream."""

    model_version: str
    width: int = 1024
    height: int = 1024
    num_outputs: int = 1
    aspect_ratio: str = "1:1"
    lora_scale: float = 1
    max_seed: int = 1_000_000
    fixed_input: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: GenProxyConfig) -> GenerationDefaults:
        return cls(
            model_version=cfg.default_model_version,
            width=cfg.default_width,
            height=cfg.default_height,
            max_seed=cfg.max_seed,
            fixed_input={
                "output_format": cfg.output_format,
                "output_quality": cfg.output_quality,
                "num_inference_steps": cfg.num_inference_steps,
                "go_fast": cfg.go_fast,
                "megapixels": cfg.megapixels,
                "disable_safety_checker": cfg.disable_safety_checker,
            },
        )


class GenerationProxy:
    """Submit a generation request upstream and wait for its results.

    Args:
        client: Upstream prediction client.
        poller: Poller that drives a submitted prediction to completion.
        defaults: Defaults applied to optional request fields.
        rng: Random source for seeds; injectable for deterministic tests.
    """

    def __init__(
        self,
        client: PredictionClient,
        poller: PredictionPoller,
        defaults: GenerationDefaults,
        rng: random.Random | None = None,
    ):
        self.client = client
        self.poller = poller
        self.defaults = defaults
        self.rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        cfg: GenProxyConfig,
        http: httpx.AsyncClient,
        *,
        sleep: SleepFn | None = None,
        rng: random.Random | None = None,
    ) -> GenerationProxy:
        """Build a proxy wired to *http* using settings from *cfg*."""
        client = PredictionClient(http, cfg.upstream_base_url)
        poller_kwargs: dict[str, Any] = {
            "interval": cfg.poll_interval_seconds,
            "max_attempts": cfg.max_poll_attempts,
        }
        if sleep is not None:
            poller_kwargs["sleep"] = sleep
        return cls(
            client,
            PredictionPoller(client, **poller_kwargs),
            GenerationDefaults.from_config(cfg),
            rng=rng,
        )

    @staticmethod
    def validate(request: GenerationRequest) -> str:
        """Check the fields that must be present before any upstream call.

        The key is stripped of surrounding whitespace, which commonly sneaks in
        when it is pasted.  What remains must be printable ASCII so it can
        travel in an ``Authorization`` header.

        Returns:
            The stripped API key.

        Raises:
            MissingCredentialError: No usable API key was supplied.
            InvalidRequestError: The prompt is missing or blank.
        """
        api_key = (request.api_key or "").strip()
        if not api_key or not (api_key.isascii() and api_key.isprintable()):
            raise MissingCredentialError()
        if not request.prompt or not request.prompt.strip():
            raise InvalidRequestError(MISSING_PROMPT_MESSAGE)
        return api_key

    def build_input(self, request: GenerationRequest) -> dict[str, Any]:
        """Assemble the upstream model input with every default resolved."""
        d = self.defaults
        seed = request.seed if request.seed is not None else self.rng.randrange(d.max_seed)
        model_input: dict[str, Any] = {
            "prompt": request.prompt,
            "negative_prompt": request.negative_prompt or "",
            "width": request.width or d.width,
            "height": request.height or d.height,
            "seed": seed,
            "num_outputs": request.num_outputs or d.num_outputs,
            "lora_weights": request.lora_weights or "",
            "lora_scale": request.lora_scale if request.lora_scale is not None else d.lora_scale,
            "aspect_ratio": request.aspect_ratio or d.aspect_ratio,
        }
        model_input.update(d.fixed_input)
        return model_input

    @staticmethod
    def normalize(
        prediction: Prediction,
        model_input: dict[str, Any],
        model_label: str | None,
    ) -> list[GenerationResult]:
        """Turn a succeeded prediction into an ordered list of results.

        A missing or malformed ``output`` yields an empty list.
        """
        output = prediction.parsed_output()
        if output is None:
            logger.warning("Prediction %s succeeded without usable output", prediction.id)
            return []

        return [
            GenerationResult(
                url=url,
                seed=model_input["seed"],
                prompt=model_input["prompt"],
                negative_prompt=model_input["negative_prompt"],
                width=model_input["width"],
                height=model_input["height"],
                model=model_label,
            )
            for url in output.urls
        ]

    async def generate(self, request: GenerationRequest) -> list[GenerationResult]:
        """Run one request end to end.

        Raises:
            ProxyError: Any classified failure (validation, credential,
                submission, job failure, cancellation, timeout).
            httpx.HTTPError: The submission call failed at the transport level.
        """
        api_key = self.validate(request)
        model_input = self.build_input(request)
        version = request.model_version or self.defaults.model_version

        logger.info(
            "Generating %d output(s) with version %s (key=%s). Prompt: %s",
            model_input["num_outputs"],
            version,
            mask_secret(api_key),
            model_input["prompt"],
        )

        prediction = await self.client.create_prediction(api_key, version, model_input)
        finished = await self.poller.wait(api_key, prediction)
        results = self.normalize(finished, model_input, request.model)

        logger.info("Prediction %s produced %d result(s)", prediction.id, len(results))
        return results
