"""
Image hosting (Cloudinary) credential check.

Calls the admin API ping endpoint with basic auth; a 200 means the cloud
name, key and secret are valid.
"""
import logging
from typing import Optional, Tuple, Any

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class ImageHostClient:

    def __init__(self, cloud_name: Optional[str] = None, api_key: Optional[str] = None,
                 api_secret: Optional[str] = None, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = 10.0):
        settings = get_settings()
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key or settings.cloudinary_api_key
        self.api_secret = api_secret or settings.cloudinary_api_secret
        self._transport = transport
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def ping(self) -> Tuple[bool, int, Any]:
        """Returns (ok, http_status, body). Status 0 means the request never completed."""
        if not self.configured:
            return False, 0, "Cloudinary credentials not configured"

        url = f"{CLOUDINARY_API_BASE}/{self.cloud_name}/ping"
        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
                response = client.get(url, auth=(self.api_key, self.api_secret))
        except httpx.HTTPError as e:
            logger.warning("Cloudinary ping failed: %s", e)
            return False, 0, str(e)

        try:
            body = response.json()
        except ValueError:
            body = response.text
        if response.status_code != 200:
            logger.warning("Cloudinary ping returned %s: %s", response.status_code, body)
        return response.status_code == 200, response.status_code, body
