"""
HTTP client for the virtual try-on image generation provider
"""

from typing import Optional
import logging

import httpx

from ..settings import Settings

logger = logging.getLogger(__name__)


class TryOnProviderError(RuntimeError):
    """Raised when the generation provider is unavailable or fails."""


class TryOnClient:
    """Posts a person photo + garment image pair and returns the composite image URL"""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "TryOnClient":
        return cls(settings.tryon_api_url, settings.tryon_api_key, settings.tryon_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_url)

    async def generate(
        self,
        person_image_url: str,
        garment_image_url: str,
        garment_name: Optional[str] = None,
        garment_description: Optional[str] = None,
    ) -> str:
        """
        Request a try-on composite.

        Returns:
            An image URL, or a data: URL when the provider answers with base64 bytes

        Raises:
            TryOnProviderError: if unconfigured, on HTTP errors or on an empty reply
        """
        if not self.configured:
            raise TryOnProviderError("Try-on provider is not configured")
        if not garment_image_url:
            raise TryOnProviderError("Product has no image to try on")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "person_image_url": person_image_url,
            "garment_image_url": garment_image_url,
            "garment_name": garment_name,
            "garment_description": garment_description,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TryOnProviderError(f"Try-on request failed: {e}") from e

        if not resp.is_success:
            raise TryOnProviderError(f"Try-on provider HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise TryOnProviderError("Try-on provider returned invalid JSON") from e
        if not isinstance(data, dict):
            raise TryOnProviderError("Try-on provider returned an unexpected reply")

        image_url = data.get("image_url") or data.get("imageUrl")
        if image_url:
            return image_url
        image_data = data.get("image_data") or data.get("imageData")
        if image_data:
            return f"data:image/png;base64,{image_data}"
        raise TryOnProviderError("Try-on provider returned no image")
