"""Push token registration and the notification inbox."""

from typing import Any, Dict, List, Optional

import structlog

from cardlink.core.exceptions import ApiError
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)


class NotificationsService:
    def __init__(
        self,
        client: ApiClient,
        store: KeyValueStore,
        platform: str = "android",
        project_id: Optional[str] = None,
    ):
        self.client = client
        self.store = store
        self.platform = platform
        self.project_id = project_id

    def register_token(
        self, push_token: str, device_info: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Register a push token with the backend.

        Without a session the token is parked under ``pendingPushToken`` and
        sent by ``flush_pending`` after login.
        """
        if not self.store.get_item(StorageKeys.TOKEN):
            self.store.set_item(StorageKeys.PENDING_PUSH_TOKEN, push_token)
            logger.info("No session, push token kept for later")
            return False

        payload: Dict[str, Any] = {"pushToken": push_token, "platform": self.platform}
        if device_info:
            payload["deviceInfo"] = device_info
        if self.project_id:
            payload["projectId"] = self.project_id

        try:
            self.client.post("/notifications/register-token", payload)
        except ApiError as e:
            logger.error("Push token registration failed", status=e.status, error=str(e))
            self.store.set_item(StorageKeys.PENDING_PUSH_TOKEN, push_token)
            self.client.non_critical.post(
                "/notifications/registration-error",
                {"error": str(e), "platform": self.platform},
            )
            return False

        self.store.remove_item(StorageKeys.PENDING_PUSH_TOKEN)
        return True

    def flush_pending(self) -> bool:
        pending = self.store.get_item(StorageKeys.PENDING_PUSH_TOKEN)
        if not pending:
            return False
        return self.register_token(pending)

    def unread(self) -> List[Dict[str, Any]]:
        return self.client.get("/notifications", params={"unreadOnly": True}).items()
