"""Request and result shapes that flow through the generation proxy.

Both models use camelCase aliases on the wire (``negativePrompt``,
``apiKey`` ...) because that is what the browser client sends and expects
back, while Python code uses snake_case attribute names.

``prompt`` and ``api_key`` are optional at the schema level on purpose: their
absence is reported by :class:`~genproxy.core.proxy.GenerationProxy` with the
proxy's own failure messages rather than a generic schema error.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    """One image-generation request as received from the client.

    Attributes:
        prompt: Text prompt.  Required and non-empty (checked by the proxy).
        negative_prompt: Text describing what to avoid.
        width: Image width in pixels.  ``None`` means the configured default.
        height: Image height in pixels.  ``None`` means the configured default.
        seed: Random seed.  ``None`` means the proxy draws one.
        num_outputs: Number of images the model should produce.
        aspect_ratio: Aspect ratio hint for the model (e.g. ``"16:9"``).
        lora_weights: LoRA weights reference passed through to the model.
        lora_scale: LoRA strength.  ``None`` means 1.
        model_version: Exact upstream model revision to run.
        model: Caller-side model label echoed into every result.
        api_key: The caller's upstream credential.  Excluded from ``repr``
            and never serialised back out.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    prompt: str | None = Field(
        default=None,
        description="Text prompt (required, non-empty).",
    )
    negative_prompt: str | None = Field(
        default=None,
        alias="negativePrompt",
        description="Optional negative prompt.",
    )
    width: int | None = Field(
        default=None,
        gt=0,
        description="Image width in pixels (default 1024).",
    )
    height: int | None = Field(
        default=None,
        gt=0,
        description="Image height in pixels (default 1024).",
    )
    seed: int | None = Field(
        default=None,
        description="Random seed.  None = proxy picks a random seed.",
    )
    num_outputs: int | None = Field(
        default=None,
        alias="numOutputs",
        gt=0,
        description="Number of outputs to generate (default 1).",
    )
    aspect_ratio: str | None = Field(
        default=None,
        alias="aspectRatio",
        description="Aspect ratio hint (default '1:1').",
    )
    lora_weights: str | None = Field(
        default=None,
        alias="loraWeights",
        description="LoRA weights reference.",
    )
    lora_scale: float | None = Field(
        default=None,
        alias="loraScale",
        description="LoRA strength (default 1).",
    )
    model_version: str | None = Field(
        default=None,
        alias="modelVersion",
        description="Upstream model revision; None = configured default.",
    )
    model: str | None = Field(
        default=None,
        description="Caller-side model label, echoed into results.",
    )
    api_key: str | None = Field(
        default=None,
        alias="apiKey",
        repr=False,
        exclude=True,
        description="Caller's upstream API key.  Never stored or logged.",
    )


class GenerationResult(BaseModel):
    """One generated artifact plus the parameters that produced it."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    seed: int
    prompt: str
    negative_prompt: str = Field(default="", alias="negativePrompt")
    width: int
    height: int
    model: str | None = None
