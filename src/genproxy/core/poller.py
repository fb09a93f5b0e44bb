"""Bounded polling of an upstream prediction until it reaches a terminal state.

The poller is a small state machine::

    STARTING / PROCESSING --poll--> SUCCEEDED   -> return prediction
                          --poll--> FAILED      -> GenerationFailedError
                          --poll--> CANCELED    -> GenerationCanceledError
                          budget exhausted      -> TIMED_OUT -> GenerationTimeoutError

Each attempt sleeps for the configured interval first and then issues one
status call.  A poll that fails at the transport level, returns a non-2xx
status, or returns a body that is not a prediction is logged and counted as
an attempt; only an upstream-reported terminal failure ends the loop early.

The sleep function is injectable so tests can drive the full budget without
waiting on the wall clock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx

from genproxy.core.errors import (
    GenerationCanceledError,
    GenerationFailedError,
    GenerationTimeoutError,
)
from genproxy.core.upstream import Prediction, PredictionClient

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class JobState(str, Enum):
    """States of one polled job as seen by the proxy."""

    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> JobState:
        """Map an upstream status onto a job state.

        Statuses the proxy does not recognise are treated as still running.
        """
        state = prediction.state
        if state is None:
            return cls.PROCESSING
        return cls(state.value)


class PredictionPoller:
    """Drive one prediction to completion within a fixed attempt budget.

    Args:
        client: Upstream client used for status calls.
        interval: Seconds to sleep before every status call.
        max_attempts: Status calls allowed before reporting a timeout.
        sleep: Coroutine used for the delay (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        client: PredictionClient,
        *,
        interval: float = 1.0,
        max_attempts: int = 30,
        sleep: SleepFn = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    async def _poll_once(self, api_key: str, prediction_id: str, attempt: int) -> Prediction | None:
        """Issue one status call; ``None`` means the attempt is skipped."""
        try:
            return await self.client.get_prediction(api_key, prediction_id)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Status check %d for %s failed with HTTP %s",
                attempt,
                prediction_id,
                exc.response.status_code,
            )
        except httpx.HTTPError as exc:
            logger.warning("Status check %d for %s failed: %s", attempt, prediction_id, exc)
        except ValueError as exc:
            logger.warning(
                "Status check %d for %s returned an unreadable body: %s",
                attempt,
                prediction_id,
                exc,
            )
        return None

    async def wait(self, api_key: str, prediction: Prediction) -> Prediction:
        """Poll *prediction* until it succeeds.

        Args:
            api_key: The caller's upstream credential.
            prediction: The prediction returned by the submission call.

        Returns:
            The last polled :class:`Prediction`, in the ``succeeded`` state.

        Raises:
            GenerationFailedError: The job reported ``failed``.
            GenerationCanceledError: The job reported ``canceled``.
            GenerationTimeoutError: No terminal state within the budget.
        """
        state = JobState.from_prediction(prediction)
        attempts = 0

        while attempts < self.max_attempts:
            attempts += 1
            await self.sleep(self.interval)

            polled = await self._poll_once(api_key, prediction.id, attempts)
            if polled is None:
                continue

            state = JobState.from_prediction(polled)
            logger.info("Status check %d for %s: %s", attempts, prediction.id, polled.status)
            if not polled.is_terminal:
                continue

            if state is JobState.SUCCEEDED:
                return polled
            if state is JobState.FAILED:
                raise GenerationFailedError(polled.error_message)
            if state is JobState.CANCELED:
                raise GenerationCanceledError()

        logger.warning(
            "Prediction %s %s after %d status checks (last seen: %s)",
            prediction.id,
            JobState.TIMED_OUT.value,
            attempts,
            state.value,
        )
        raise GenerationTimeoutError(attempts)


__all__ = ["JobState", "PredictionPoller", "SleepFn"]
