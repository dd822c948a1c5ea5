"""Footer ad feed and carousel position."""

from typing import Any, Dict, List, Optional

import structlog

from cardlink.core.exceptions import ApiError
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)


def format_ad(ad: Dict[str, Any], image_base: str) -> Dict[str, Any]:
    """Flatten a backend ad into what the carousel shows, with absolute image URLs."""
    bottom = ad.get("bottomImageUrl")
    fullscreen = ad.get("fullscreenImageUrl")
    return {
        "id": f"api-{ad.get('_id')}",
        "phone": ad.get("phoneNumber"),
        "name": ad.get("title") or "Ad",
        "priority": ad.get("priority") or 5,
        "bottom_media_type": "image" if ad.get("hasBottomImage") else None,
        "bottom_media_url": f"{image_base}{bottom}" if bottom else None,
        "fullscreen_media_type": "image" if ad.get("hasFullscreenImage") else None,
        "fullscreen_media_url": f"{image_base}{fullscreen}" if fullscreen else None,
    }


class AdsService:
    """Active ads plus the resumable carousel index."""

    def __init__(self, client: ApiClient, store: KeyValueStore, image_base: Optional[str] = None):
        self.client = client
        self.store = store
        self.image_base = image_base if image_base is not None else client.config.base_url

    def active(self) -> List[Dict[str, Any]]:
        """
        Ads to show, in backend priority order.

        Any failure or non-JSON answer yields an empty list; ads never block
        the rest of the app.
        """
        try:
            response = self.client.get("/ads/active")
        except ApiError as e:
            logger.warning("Failed to fetch ads", error=str(e), status=e.status)
            return []

        if isinstance(response.body, str):
            logger.warning("Ads response was not JSON", preview=response.body[:200])
            return []
        if not response.get("success"):
            return []

        image_base = response.get("imageBaseUrl") or self.image_base
        return [format_ad(ad, image_base) for ad in response.items() if isinstance(ad, dict)]

    def resume_index(self, count: int) -> int:
        """Index to start from: the one after the last viewed ad, wrapping around."""
        if count <= 0:
            return 0
        saved = self.store.get_item(StorageKeys.LAST_AD_INDEX)
        try:
            last = int(saved) if saved is not None else -1
        except ValueError:
            last = -1
        return (last + 1) % count

    def save_index(self, index: int) -> None:
        self.store.set_item(StorageKeys.LAST_AD_INDEX, str(index))
