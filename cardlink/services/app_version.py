"""
App version housekeeping.

After an upgrade the cached session is dropped and the credit balance is
re-read from the server.
"""

from typing import Optional

import structlog

from cardlink.core.exceptions import ApiError
from cardlink.core.models import VersionCheckResult
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)


class AppVersionManager:
    def __init__(
        self,
        client: ApiClient,
        store: KeyValueStore,
        current_version: str,
        platform: str = "android",
    ):
        self.client = client
        self.store = store
        self.current_version = current_version
        self.platform = platform

    def handle_version_change(self) -> bool:
        """
        Log the user out when the app version changed since the last run.

        The first run only records the version.

        Returns:
            True if the session was cleared
        """
        stored = self.store.get_item(StorageKeys.APP_VERSION)

        if stored == self.current_version:
            return False

        if stored is None:
            logger.info("First launch, recording app version", version=self.current_version)
            self.store.set_item(StorageKeys.APP_VERSION, self.current_version)
            return False

        logger.info(
            "App updated, clearing session", previous=stored, current=self.current_version
        )
        self.store.multi_remove(StorageKeys.AUTH_KEYS)
        self.store.set_item(StorageKeys.APP_VERSION, self.current_version)
        return True

    def refresh_credits_on_update(self) -> Optional[int]:
        """
        Re-read the balance once after an upgrade.

        Returns:
            The fresh balance, or None when nothing was refreshed
        """
        last = self.store.get_item(StorageKeys.LAST_APP_VERSION)
        balance = None

        if last and last != self.current_version and self.store.get_item(StorageKeys.TOKEN):
            try:
                balance = int(self.client.get("/credits/balance").get("credits") or 0)
                self.store.set_item(StorageKeys.CREDITS_REFRESHED, self.current_version)
                logger.info("Credits refreshed after update", credits=balance)
            except ApiError as e:
                logger.warning("Failed to refresh credits after update", error=str(e))

        self.store.set_item(StorageKeys.LAST_APP_VERSION, self.current_version)
        return balance

    def check_remote_version(self) -> Optional[VersionCheckResult]:
        """Ask the backend whether this version must update; None when it need not."""
        response = self.client.non_critical.get(
            "/auth/version-check",
            params={"version": self.current_version, "platform": self.platform},
        )
        if response is None or not isinstance(response.body, dict):
            return None

        result = VersionCheckResult.model_validate(response.body)
        if not result.update_required:
            return None

        logger.warning(
            "Update required",
            current=self.current_version,
            minimum=result.minimum_version,
            latest=result.latest_version,
        )
        return result
