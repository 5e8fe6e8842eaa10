"""
Image annotation through the NanoBanana API.

annotate_image() proxies the raw response; parse_annotations() turns it into
ImageAnnotation objects for image FrameScans.
"""

from __future__ import annotations

import math
import os
from typing import Any

import httpx

from framelord.framescan.types import AnnotationSeverity, ImageAnnotation
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter
from framelord.providers.http import ProviderNotConfiguredError, send_request

logger = get_logger(__name__)

NANOBANANA_ANNOTATE_URL = "https://api.nanobanana.com/v1/annotate"

_SEVERITIES = {severity.value for severity in AnnotationSeverity}


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_annotations(data: Any) -> tuple[list[ImageAnnotation], str | None]:
    """
    Map a NanoBanana response to (annotations, annotated_image_url).

    Entries without four numeric coordinates are skipped. Coordinates are
    clamped to 0-1 and unknown severities become "info".
    """
    if isinstance(data, dict) and isinstance(data.get("annotations"), dict):
        data = data["annotations"]

    raw_items = data.get("annotations") if isinstance(data, dict) else data
    if not isinstance(raw_items, list):
        raw_items = []

    annotations: list[ImageAnnotation] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            continue
        coords = [raw.get(key) for key in ("x", "y", "width", "height")]
        if not all(_is_number(c) for c in coords):
            logger.warning("Skipping annotation[%d] with invalid coordinates", index)
            continue

        label = _clean_str(raw.get("label")) or "region"
        severity = raw.get("severity")
        annotations.append(
            ImageAnnotation(
                id=_clean_str(raw.get("id")) or f"nb-{index}",
                label=label,
                description=_clean_str(raw.get("description")) or label,
                severity=severity if severity in _SEVERITIES else AnnotationSeverity.INFO,
                x=_clamp01(coords[0]),
                y=_clamp01(coords[1]),
                width=_clamp01(coords[2]),
                height=_clamp01(coords[3]),
            )
        )

    annotated_url = None
    if isinstance(data, dict) and isinstance(data.get("annotatedImageUrl"), str):
        annotated_url = data["annotatedImageUrl"]
    return annotations, annotated_url


class NanoBananaClient:
    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("NANOBANANA_API_KEY", "")
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def annotate_image(
        self,
        image_url: str | None = None,
        image_base64: str | None = None,
        prompt: str | None = None,
    ) -> dict[str, Any]:
        """
        Annotate one image (URL preferred over base64).

        Returns:
            {"annotations": raw NanoBanana response}

        Raises:
            ValueError: Neither image_url nor image_base64 given
            ProviderNotConfiguredError: NANOBANANA_API_KEY missing
            ProviderRequestError: NanoBanana rejected the request
        """
        if not image_url and not image_base64:
            raise ValueError("imageUrl or imageBase64 required")
        if not self.configured:
            raise ProviderNotConfiguredError("nanobanana", "NanoBanana API key not configured")

        body: dict[str, str] = {}
        if image_url:
            body["image_url"] = image_url
        else:
            body["image_base64"] = image_base64 or ""
        if prompt:
            body["prompt"] = prompt

        response = await send_request(
            "nanobanana",
            "POST",
            NANOBANANA_ANNOTATE_URL,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=body,
        )
        counter("messaging.annotate.success")
        return {"annotations": response.json()}


def get_nanobanana_client() -> NanoBananaClient:
    return NanoBananaClient()
