"""Direct and group messages over REST."""

import uuid
from typing import Any, Dict, List, Optional

from cardlink.data.api_client import ApiClient


class MessagingService:
    """REST side of chat; the realtime socket is not part of this client."""

    def __init__(self, client: ApiClient):
        self.client = client

    def send(self, recipient_id: str, text: str, card_id: Optional[str] = None) -> Any:
        payload: Dict[str, Any] = {
            "receiverId": recipient_id,
            "text": text,
            "messageId": str(uuid.uuid4()),
        }
        if card_id:
            payload["cardId"] = card_id
        # messageId doubles as the idempotency key
        return self.client.post(
            "/messages/send", payload, idempotency_key=payload["messageId"]
        ).body

    def send_to_group(self, group_id: str, text: str) -> Any:
        message_id = str(uuid.uuid4())
        return self.client.post(
            "/messages/send-group",
            {"groupId": group_id, "text": text, "messageId": message_id},
            idempotency_key=message_id,
        ).body

    def conversations(self) -> List[Dict[str, Any]]:
        return self.client.get("/chats/conversations").items()

    def conversation(self, user_id: str) -> List[Dict[str, Any]]:
        return self.client.get(f"/chats/conversation/{user_id}").items()

    def unread_count(self) -> int:
        response = self.client.non_critical.get("/chats/unread-count")
        if response is None:
            return 0
        return int(response.get("unreadCount") or response.get("count") or 0)
