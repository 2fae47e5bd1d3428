import logging
from typing import Optional

import httpx

from imgtoolbox.core.config import Config
from imgtoolbox.core.errors import MissingCredential, UpstreamError, UpstreamResponseError


class RemoveBgClient:
    """Hosted background removal (remove.bg). The API key stays on the server."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    async def remove_background(self, content: bytes, filename: str, content_type: str) -> bytes:
        api_key = self.config.remove_bg_api_key
        if not api_key:
            logging.error("REMOVE_BG_API_KEY is not configured")
            raise MissingCredential("Background removal API key not configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.config.upstream_timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    self.config.remove_bg_url,
                    headers={"X-Api-Key": api_key},
                    files={"image_file": (filename, content, content_type)},
                    data={"size": "auto", "format": "png"},
                )
        except httpx.HTTPError as e:
            logging.error(f"Background removal request failed: {type(e).__name__}: {e}")
            raise UpstreamError(f"Upstream request failed: {str(e) or type(e).__name__}", 500)

        if not response.is_success:
            logging.error(f"Background removal API error: {response.status_code} {response.text}")
            raise UpstreamError.for_status(response.status_code)

        if not response.content:
            raise UpstreamResponseError("Background removal returned an empty image")

        logging.info(f"Background removed upstream: {len(content)} -> {len(response.content)} bytes")
        return response.content
