"""Proxy client for the hosted Ark (Volcengine) model endpoints.

Both operations are single-shot: one POST upstream, no retry, no caching.
The server-held ``ARK_API_KEY`` is attached here and never returned to the
caller. Upstream error bodies are logged, callers only see the status.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from imgtoolbox.core.config import Config
from imgtoolbox.core.errors import (
    MissingCredential,
    UpstreamError,
    UpstreamResponseError,
)
from imgtoolbox.core.models import GeneratedImage, RecognitionResult

RECOGNITION_PROMPT = "识别图片"
RECOGNITION_FALLBACK = "Unable to recognize image content"
IMAGE_SIZES = ("1K", "2K")


class ArkClient:
    """Forwards generation and recognition requests to Ark."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        api_key = self.config.ark_api_key
        if not api_key:
            logging.error("ARK_API_KEY is not configured")
            raise MissingCredential("API key not configured")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers()
        url = f"{self.config.ark_base_url}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=self.config.upstream_timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logging.error(f"Ark request to {path} failed: {type(e).__name__}: {e}")
            raise UpstreamError(f"Upstream request failed: {str(e) or type(e).__name__}", 500)

        if not response.is_success:
            logging.error(f"Ark API error on {path}: {response.status_code} {response.text}")
            raise UpstreamError.for_status(response.status_code)

        try:
            result = response.json()
        except ValueError:
            logging.error(f"Ark API returned non-JSON body on {path}: {response.text[:200]}")
            raise UpstreamResponseError("Upstream returned an unreadable response")

        if not isinstance(result, dict):
            raise UpstreamResponseError("Upstream returned an unexpected response")
        return result

    async def generate_image(self, prompt: str, size: str = "2K", watermark: bool = True) -> GeneratedImage:
        """Generate one image and return the first result URL untouched."""
        result = await self._post(
            "/images/generations",
            {
                "model": self.config.ark_image_model,
                "prompt": prompt,
                "sequential_image_generation": "disabled",
                "response_format": "url",
                "size": size,
                "stream": False,
                "watermark": watermark,
            },
        )

        data = result.get("data")
        first = data[0] if isinstance(data, list) and data else None
        image_url = first.get("url") if isinstance(first, dict) else None
        if not image_url:
            logging.error(f"Ark generation returned no image URL: {result}")
            raise UpstreamResponseError("Failed to generate image")

        image = GeneratedImage(url=image_url, prompt=prompt, raw=result)
        logging.info(f"Generated image at {image.timestamp.isoformat()} for prompt of {len(prompt)} chars")
        return image

    async def recognize_image(self, image_data: str) -> RecognitionResult:
        """Describe an image with the multimodal chat model."""
        result = await self._post(
            "/chat/completions",
            {
                "model": self.config.ark_vision_model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": RECOGNITION_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_data}},
                        ],
                    }
                ],
            },
        )

        choices = result.get("choices")
        first = choices[0] if isinstance(choices, list) and choices else {}
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            logging.warning("Ark recognition returned no message content")
            content = RECOGNITION_FALLBACK
        return RecognitionResult(content=content, raw=result)
