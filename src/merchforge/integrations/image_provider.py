"""Image-producing capability: synthesis of variations and single-image transforms.

``MockImageProvider`` is deterministic and needs no network, which keeps
generation reproducible in development and tests.  ``HttpImageProvider``
talks to a remote rendering service with httpx.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from merchforge.config import settings
from merchforge.enums import ImageTransform

MOCK_IMAGE_POOL = [
    "https://cdn.merchforge.app/mock/variation-neon-01.png",
    "https://cdn.merchforge.app/mock/variation-neon-02.png",
    "https://cdn.merchforge.app/mock/variation-retro-03.png",
    "https://cdn.merchforge.app/mock/variation-retro-04.png",
    "https://cdn.merchforge.app/mock/variation-street-05.png",
    "https://cdn.merchforge.app/mock/variation-street-06.png",
    "https://cdn.merchforge.app/mock/variation-vector-07.png",
    "https://cdn.merchforge.app/mock/variation-vector-08.png",
]

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SynthesizedImage:
    """One produced variation."""

    id: str
    image_url: str
    status: str = "completed"


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class ImageProviderError(Exception):
    """Base class for failures talking to the rendering service."""


class ImageProviderTimeoutError(ImageProviderError):
    """Raised when the rendering service does not answer in time."""


class ImageProviderConnectionError(ImageProviderError):
    """Raised when the rendering service is unreachable."""


class ImageProviderMalformedResponseError(ImageProviderError):
    """Raised when the response body cannot be parsed into images."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class ImageProvider(Protocol):
    """Structural interface for anything that can produce design images."""

    async def synthesize(
        self,
        prompt: str,
        style: str,
        colors: list[str],
        reference_url: str | None,
        count: int,
    ) -> list[SynthesizedImage]: ...

    async def transform(self, image_url: str, transform: ImageTransform) -> str: ...


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def version_token() -> str:
    """Millisecond timestamp in base 36, used to bust caches on derived images."""
    return to_base36(int(time.time() * 1000))


def with_query_params(url: str, params: dict[str, str]) -> str:
    """Return *url* with *params* set, replacing any existing values for the same keys."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        separator = "&" if "?" in url else "?"
        query = "&".join(f"{key}={value}" for key, value in params.items())
        return f"{url}{separator}{query}"
    return str(parsed.copy_merge_params(params))


def string_hash(value: str) -> int:
    """31-multiplier rolling hash kept to 32 unsigned bits."""
    result = 0
    for char in value:
        result = (result * 31 + ord(char)) & 0xFFFFFFFF
    return result


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class MockImageProvider:
    """Deterministic provider: identical inputs always yield identical variations."""

    def __init__(self, pool: list[str] | None = None) -> None:
        self.pool = pool or MOCK_IMAGE_POOL

    async def synthesize(
        self,
        prompt: str,
        style: str,
        colors: list[str],
        reference_url: str | None,
        count: int,
    ) -> list[SynthesizedImage]:
        seed = string_hash(f"{prompt}:{style}:{','.join(colors)}:{reference_url or ''}")
        return [
            SynthesizedImage(
                id=f"{seed}-{index + 1}",
                image_url=self.pool[(seed + index * 13) % len(self.pool)],
            )
            for index in range(count)
        ]

    async def transform(self, image_url: str, transform: ImageTransform) -> str:
        return with_query_params(
            image_url, {"mf_transform": transform.value, "mf_v": version_token()},
        )


class HttpImageProvider:
    """Async client for a remote rendering service."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.IMAGE_PROVIDER_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.IMAGE_PROVIDER_TIMEOUT

    async def synthesize(
        self,
        prompt: str,
        style: str,
        colors: list[str],
        reference_url: str | None,
        count: int,
    ) -> list[SynthesizedImage]:
        payload = {
            "prompt": prompt,
            "style": style,
            "colors": colors,
            "referenceImageUrl": reference_url,
            "count": count,
        }
        data = await self._post("/v1/images/generations", payload)
        return self._parse_images(data)

    async def transform(self, image_url: str, transform: ImageTransform) -> str:
        data = await self._post(
            "/v1/images/transform",
            {"imageUrl": image_url, "operation": transform.value},
        )
        output = data.get("imageUrl")
        if not isinstance(output, str) or not output:
            raise ImageProviderMalformedResponseError("Transform response missing 'imageUrl'")
        return output

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON object.

        Raises:
            ImageProviderTimeoutError: on request timeout.
            ImageProviderConnectionError: on connection failure.
            ImageProviderMalformedResponseError: on a non-object body.
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            ) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ImageProviderTimeoutError(
                f"Image provider request timed out after {self.timeout}s"
            ) from exc
        except httpx.ConnectError as exc:
            raise ImageProviderConnectionError(
                f"Cannot connect to image provider at {self.base_url}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ImageProviderMalformedResponseError("Response body is not JSON") from exc
        if not isinstance(data, dict):
            raise ImageProviderMalformedResponseError("Response body is not an object")
        return data

    @staticmethod
    def _parse_images(data: dict[str, Any]) -> list[SynthesizedImage]:
        raw_images = data.get("images")
        if not isinstance(raw_images, list) or not raw_images:
            raise ImageProviderMalformedResponseError("'images' is missing or empty")

        images: list[SynthesizedImage] = []
        for index, item in enumerate(raw_images):
            url = item.get("url") if isinstance(item, dict) else None
            if not isinstance(url, str) or not url:
                raise ImageProviderMalformedResponseError(f"Image {index} has no url")
            images.append(
                SynthesizedImage(
                    id=str(item.get("id") or index + 1),
                    image_url=url,
                    status=str(item.get("status") or "completed"),
                )
            )
        return images


def get_image_provider() -> ImageProvider:
    """FastAPI dependency selecting the provider named by IMAGE_PROVIDER."""
    if settings.IMAGE_PROVIDER == "http":
        return HttpImageProvider()
    return MockImageProvider()
