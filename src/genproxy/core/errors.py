"""Error taxonomy for the generation proxy.

Every failure the proxy can report is a :class:`ProxyError` subclass.  The
``status_code`` class attribute decides the HTTP framing of the failure
envelope; the exception message is the user-facing ``error`` string.

Validation and credential errors are raised before any upstream call is made
and map to 400.  Everything raised after that point maps to 500.

:func:`classify_upstream_error` is the only place that interprets the
upstream vendor's free-text error vocabulary.
"""

from __future__ import annotations

import re

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
INVALID_TOKEN_MESSAGE = "Invalid API token. Please check your Replicate API key."
GENERIC_FAILURE_MESSAGE = "Image generation failed"
MISSING_PROMPT_MESSAGE = "Missing required field: prompt"
MISSING_API_KEY_MESSAGE = (
    "You must provide your personal Replicate API key in your profile settings."
)
TIMEOUT_MESSAGE = "Generation timed out"
CANCELED_MESSAGE = "Generation canceled"

_AUTH_HEADER_VALUE = re.compile(r"(Token\s+)\S+")

# Ordered (substring, message) pairs; the first match wins.
_UPSTREAM_ERROR_RULES: tuple[tuple[str, str], ...] = (
    ("rate limit", RATE_LIMIT_MESSAGE),
    ("invalid token", INVALID_TOKEN_MESSAGE),
)


class ProxyError(Exception):
    """Base class for failures reported in the ``success: false`` envelope."""

    status_code: int = 500


class InvalidRequestError(ProxyError):
    """The request body is malformed or the prompt is missing."""

    status_code = 400


class MissingCredentialError(ProxyError):
    """The request carries no upstream API key."""

    status_code = 400

    def __init__(self, message: str = MISSING_API_KEY_MESSAGE):
        super().__init__(message)


class UpstreamSubmissionError(ProxyError):
    """The "create prediction" call was rejected by the upstream service."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class GenerationFailedError(ProxyError):
    """The upstream job reached the ``failed`` state."""

    def __init__(self, upstream_error: str | None = None):
        self.upstream_error = upstream_error
        super().__init__(f"Generation failed: {upstream_error or 'Unknown error'}")


class GenerationCanceledError(ProxyError):
    """The upstream job reached the ``canceled`` state."""

    def __init__(self, message: str = CANCELED_MESSAGE):
        super().__init__(message)


class GenerationTimeoutError(ProxyError):
    """The polling budget ran out before the job reached a terminal state."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(TIMEOUT_MESSAGE)


def classify_upstream_error(detail: str | None) -> str:
    """Map upstream error text to a user-facing message.

    Args:
        detail: The ``detail`` string from the upstream error body, if any.

    Returns:
        A specific message for known failure vocabulary, the upstream detail
        itself when it is unknown, or a generic message when there is none.
    """
    if not detail:
        return GENERIC_FAILURE_MESSAGE

    lowered = detail.lower()
    for needle, message in _UPSTREAM_ERROR_RULES:
        if needle in lowered:
            return message
    return detail


def mask_secret(secret: str | None) -> str:
    """Return a log-safe rendering of a credential.

    >>> mask_secret("r8_abcdefghijklmnop")
    'r8_...mnop'
    """
    if not secret:
        return "<none>"
    if len(secret) <= 8:
        return "***"
    return f"{secret[:3]}...{secret[-4:]}"


def redact_secret(text: str, secret: str | None = None) -> str:
    """Remove a credential from free text before it is logged or returned.

    Both the literal *secret* and anything rendered as an ``Authorization``
    value (``Token <key>``) are replaced.

    >>> redact_secret("bad header: Token r8_abcdefghijklmnop")
    'bad header: Token ***'
    """
    if secret:
        text = text.replace(secret, mask_secret(secret))
    return _AUTH_HEADER_VALUE.sub(r"\1***", text)
