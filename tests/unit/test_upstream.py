"""Tests for genproxy.core.upstream - prediction client and output shapes.

Tests cover:
- Resolving raw ``output`` values into SingleOutput / ManyOutput.
- Prediction status helpers.
- Submission request format (URL, headers, body).
- Submission error classification.
- Status call error propagation.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import API_KEY, PREDICTION_ID, FakeUpstream, prediction_response
from genproxy.core.errors import (
    INVALID_TOKEN_MESSAGE,
    RATE_LIMIT_MESSAGE,
    UpstreamSubmissionError,
)
from genproxy.core.upstream import (
    ManyOutput,
    Prediction,
    PredictionClient,
    PredictionStatus,
    SingleOutput,
    parse_output,
)

# ---------------------------------------------------------------------------
# Output shape resolution.
# ---------------------------------------------------------------------------


class TestParseOutput:
    """Test the tagged union produced from raw ``output`` values."""

    def test_string_is_single(self):
        out = parse_output("https://cdn.test/a.webp")
        assert out == SingleOutput("https://cdn.test/a.webp")
        assert out.urls == ("https://cdn.test/a.webp",)

    def test_list_is_many_and_keeps_order(self):
        out = parse_output(["u3", "u1", "u2"])
        assert isinstance(out, ManyOutput)
        assert out.urls == ("u3", "u1", "u2")

    def test_list_drops_non_strings(self):
        assert parse_output(["a", None, 5, {"x": 1}, "b", ""]).urls == ("a", "b")

    def test_empty_list_is_empty_many(self):
        assert parse_output([]).urls == ()

    @pytest.mark.parametrize("raw", [None, "", 42, {"url": "x"}, True])
    def test_unusable_values(self, raw):
        assert parse_output(raw) is None


# ---------------------------------------------------------------------------
# Prediction model.
# ---------------------------------------------------------------------------


class TestPrediction:
    """Test status and error helpers on the Prediction model."""

    @pytest.mark.parametrize(
        "status,terminal",
        [
            ("starting", False),
            ("processing", False),
            ("succeeded", True),
            ("failed", True),
            ("canceled", True),
        ],
    )
    def test_is_terminal(self, status, terminal):
        assert Prediction(id="p", status=status).is_terminal is terminal

    def test_known_state(self):
        assert Prediction(id="p", status="failed").state is PredictionStatus.FAILED

    def test_unknown_state(self):
        pred = Prediction(id="p", status="queued")
        assert pred.state is None
        assert pred.is_terminal is False

    def test_extra_fields_ignored(self):
        pred = Prediction.model_validate(
            {"id": "p", "status": "starting", "urls": {"get": "x"}, "logs": ""}
        )
        assert pred.id == "p"

    def test_error_message(self):
        assert Prediction(id="p", status="failed", error="boom").error_message == "boom"
        assert Prediction(id="p", status="failed", error="").error_message is None
        assert Prediction(id="p", status="failed").error_message is None

    def test_non_string_error_is_stringified(self):
        pred = Prediction(id="p", status="failed", error={"code": 1})
        assert pred.error_message == "{'code': 1}"


# ---------------------------------------------------------------------------
# Client calls.
# ---------------------------------------------------------------------------


def _client(upstream: FakeUpstream) -> PredictionClient:
    return PredictionClient(upstream.client(), "https://upstream.test/")


class TestCreatePrediction:
    """Test the ``POST /v1/predictions`` call."""

    def test_request_format(self):
        upstream = FakeUpstream()
        pred = asyncio.run(
            _client(upstream).create_prediction(API_KEY, "v123", {"prompt": "a cat"})
        )

        assert pred.id == PREDICTION_ID
        assert pred.status == "starting"

        request = upstream.submissions[0]
        assert str(request.url) == "https://upstream.test/v1/predictions"
        assert request.headers["Authorization"] == f"Token {API_KEY}"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"version": "v123", "input": {"prompt": "a cat"}}

    def test_rate_limit_rejection(self):
        upstream = FakeUpstream(
            submit=httpx.Response(429, json={"detail": "Request was throttled: rate limit reached"})
        )
        with pytest.raises(UpstreamSubmissionError) as excinfo:
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))
        assert str(excinfo.value) == RATE_LIMIT_MESSAGE
        assert excinfo.value.status == 429

    def test_invalid_token_rejection(self):
        upstream = FakeUpstream(submit=httpx.Response(401, json={"detail": "invalid token"}))
        with pytest.raises(UpstreamSubmissionError) as excinfo:
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))
        assert str(excinfo.value) == INVALID_TOKEN_MESSAGE

    def test_unknown_detail_passthrough(self):
        upstream = FakeUpstream(submit=httpx.Response(422, json={"detail": "Invalid version"}))
        with pytest.raises(UpstreamSubmissionError, match="^Invalid version$"):
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))

    def test_non_json_error_body_uses_text(self):
        upstream = FakeUpstream(submit=httpx.Response(503, text="rate limit hit upstream"))
        with pytest.raises(UpstreamSubmissionError, match="Rate limit exceeded"):
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))

    def test_empty_error_body_is_generic(self):
        upstream = FakeUpstream(submit=httpx.Response(500))
        with pytest.raises(UpstreamSubmissionError, match="^Image generation failed$"):
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))

    def test_success_body_without_id(self):
        upstream = FakeUpstream(submit=httpx.Response(201, json={"status": "starting"}))
        with pytest.raises(UpstreamSubmissionError, match="invalid prediction"):
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))

    def test_transport_error_propagates(self):
        upstream = FakeUpstream(submit=httpx.ConnectError("connection refused"))
        with pytest.raises(httpx.ConnectError):
            asyncio.run(_client(upstream).create_prediction(API_KEY, "v", {}))


class TestGetPrediction:
    """Test the ``GET /v1/predictions/{id}`` call."""

    def test_request_format(self):
        upstream = FakeUpstream(polls=[prediction_response("processing")])
        pred = asyncio.run(_client(upstream).get_prediction(API_KEY, PREDICTION_ID))

        assert pred.status == "processing"
        request = upstream.status_checks[0]
        assert str(request.url) == f"https://upstream.test/v1/predictions/{PREDICTION_ID}"
        assert request.headers["Authorization"] == f"Token {API_KEY}"

    def test_non_2xx_raises_status_error(self):
        upstream = FakeUpstream(polls=[httpx.Response(502, text="bad gateway")])
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(_client(upstream).get_prediction(API_KEY, PREDICTION_ID))

    def test_invalid_json_raises_value_error(self):
        upstream = FakeUpstream(polls=[httpx.Response(200, text="<html>")])
        with pytest.raises(ValueError):
            asyncio.run(_client(upstream).get_prediction(API_KEY, PREDICTION_ID))
