"""HTTP client for the upstream prediction API.

The upstream service runs inference asynchronously.  A prediction is created
with ``POST /v1/predictions`` and its progress is read back with
``GET /v1/predictions/{id}``.  This module wraps both calls and the
``Prediction`` payload they return; it knows nothing about polling policy
or user-facing messages beyond handing rejection details to
:func:`~genproxy.core.errors.classify_upstream_error`.

Output Shapes
-------------
A finished prediction's ``output`` is either a single URL string or a list
of URL strings, depending on the model.  :func:`parse_output` resolves the
raw JSON value into :class:`SingleOutput` or :class:`ManyOutput` once, and
both expose the same ``urls`` tuple so callers never branch on shape.

Credentials
-----------
The caller's API key is passed per call and only ever placed in the
``Authorization`` header.  It is never stored on the client and is masked
in every log line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

import httpx
from pydantic import BaseModel, ConfigDict

from genproxy.core.errors import (
    UpstreamSubmissionError,
    classify_upstream_error,
    mask_secret,
)

logger = logging.getLogger(__name__)

PREDICTIONS_PATH = "/v1/predictions"


class PredictionStatus(str, Enum):
    """Lifecycle states reported by the upstream service."""

    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset(
    {PredictionStatus.SUCCEEDED, PredictionStatus.FAILED, PredictionStatus.CANCELED}
)


@dataclass(frozen=True)
class SingleOutput:
    """A prediction that produced exactly one artifact URL."""

    url: str

    @property
    def urls(self) -> tuple[str, ...]:
        return (self.url,)


@dataclass(frozen=True)
class ManyOutput:
    """A prediction that produced an ordered list of artifact URLs."""

    urls: tuple[str, ...]


PredictionOutput = Union[SingleOutput, ManyOutput]


def parse_output(raw: Any) -> PredictionOutput | None:
    """Resolve a raw ``output`` value into a tagged output shape.

    Args:
        raw: The ``output`` field exactly as decoded from JSON.

    Returns:
        :class:`SingleOutput` for a non-empty string, :class:`ManyOutput` for
        a list (non-string and empty entries dropped, order kept), or
        ``None`` for anything else.
    """
    if isinstance(raw, str):
        return SingleOutput(raw) if raw else None
    if isinstance(raw, list):
        return ManyOutput(tuple(item for item in raw if isinstance(item, str) and item))
    return None


class Prediction(BaseModel):
    """One upstream job as reported by the create and get endpoints.

    Only the fields the proxy reads are declared; anything else the service
    sends is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    output: Any = None
    error: Any = None

    @property
    def state(self) -> PredictionStatus | None:
        """The status as a :class:`PredictionStatus`, or ``None`` if unknown."""
        try:
            return PredictionStatus(self.status)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATUSES

    @property
    def error_message(self) -> str | None:
        """Upstream error text as a string, when there is any."""
        if self.error in (None, ""):
            return None
        return self.error if isinstance(self.error, str) else str(self.error)

    def parsed_output(self) -> PredictionOutput | None:
        return parse_output(self.output)


def _error_detail(response: httpx.Response) -> str | None:
    """Pull the human-readable detail out of an upstream error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None

    if isinstance(body, dict):
        for key in ("detail", "error", "title"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return None
    if isinstance(body, str):
        return body or None
    return None


class PredictionClient:
    """Thin async wrapper over the upstream predictions endpoints.

    The underlying :class:`httpx.AsyncClient` is owned by the caller (the
    FastAPI lifespan in production, a ``MockTransport`` client in tests) so
    that its transport timeout and connection handling are configured in
    one place.

    Args:
        http: The shared async HTTP client.
        base_url: Root URL of the upstream API, e.g.
            ``https://api.replicate.com``.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Token {api_key}",
            "Content-Type": "application/json",
        }

    async def create_prediction(
        self,
        api_key: str,
        version: str,
        model_input: dict[str, Any],
    ) -> Prediction:
        """Submit a new prediction.

        Args:
            api_key: The caller's upstream credential.
            version: Model revision identifier.
            model_input: Fully-defaulted model input parameters.

        Returns:
            The newly created :class:`Prediction`.

        Raises:
            UpstreamSubmissionError: The service rejected the submission, or
                answered with a body that is not a prediction.
            httpx.HTTPError: The call failed at the transport level.
        """
        response = await self.http.post(
            f"{self.base_url}{PREDICTIONS_PATH}",
            headers=self._headers(api_key),
            json={"version": version, "input": model_input},
        )

        if response.is_error:
            detail = _error_detail(response)
            logger.error(
                "Prediction submission rejected (status=%s, key=%s): %s",
                response.status_code,
                mask_secret(api_key),
                detail,
            )
            raise UpstreamSubmissionError(
                classify_upstream_error(detail),
                status=response.status_code,
            )

        try:
            prediction = Prediction.model_validate(response.json())
        except ValueError as exc:
            logger.error("Prediction submission returned an unreadable body: %s", exc)
            raise UpstreamSubmissionError(
                "Upstream service returned an invalid prediction",
                status=response.status_code,
            ) from exc

        logger.info("Prediction created: %s", prediction.id)
        return prediction

    async def get_prediction(self, api_key: str, prediction_id: str) -> Prediction:
        """Fetch the current state of a prediction.

        Raises:
            httpx.HTTPError: Transport failure or a non-2xx response.
            ValueError: The body is not JSON or not a prediction
                (``pydantic.ValidationError`` is a ``ValueError``).
        """
        response = await self.http.get(
            f"{self.base_url}{PREDICTIONS_PATH}/{prediction_id}",
            headers=self._headers(api_key),
        )
        response.raise_for_status()
        return Prediction.model_validate(response.json())


__all__ = [
    "ManyOutput",
    "Prediction",
    "PredictionClient",
    "PredictionOutput",
    "PredictionStatus",
    "SingleOutput",
    "TERMINAL_STATUSES",
    "parse_output",
]
