"""Business card routes."""

from typing import Any, Dict, List, Mapping, Optional

import structlog

from cardlink.core.exceptions import NotFoundError
from cardlink.core.models import FormData
from cardlink.data.api_client import ApiClient

logger = structlog.get_logger(__name__)


class CardsService:
    """Own cards, feeds and card sharing."""

    def __init__(self, client: ApiClient):
        self.client = client

    def list_mine(self) -> List[Dict[str, Any]]:
        return self.client.get("/cards").items()

    def get(self, card_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch one card.

        Falls back to searching the user's cards and then the public feed when
        the direct route does not know the id.
        """
        try:
            return self.client.get(f"/cards/{card_id}").data()
        except NotFoundError:
            logger.debug("Card not found directly, searching lists", card_id=card_id)

        for card in self.list_mine():
            if card.get("_id") == card_id:
                return card
        for card in self.public_feed():
            if card.get("_id") == card_id:
                return card
        return None

    def create(self, card: Mapping[str, Any]) -> Dict[str, Any]:
        return self.client.post("/cards", card).data()

    def create_with_image(self, fields: Mapping[str, Any], image: Any) -> Dict[str, Any]:
        """Create a card with an uploaded image, sent as multipart."""
        form = FormData(fields=dict(fields), files={"image": image})
        return self.client.post("/cards", form).data()

    def update(self, card_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        return self.client.put(f"/cards/{card_id}", changes).data()

    def delete(self, card_id: str) -> None:
        self.client.delete(f"/cards/{card_id}")

    def share(self, card_id: str, recipient_id: str, message: Optional[str] = None) -> Any:
        payload: Dict[str, Any] = {"recipientId": recipient_id}
        if message:
            payload["message"] = message
        return self.client.post(f"/cards/{card_id}/share", payload).body

    def share_to_group(self, card_id: str, group_id: str, message: Optional[str] = None) -> Any:
        payload: Dict[str, Any] = {"groupId": group_id}
        if message:
            payload["message"] = message
        return self.client.post(f"/cards/{card_id}/share-to-group", payload).body

    def contacts_feed(self) -> List[Dict[str, Any]]:
        """Cards of people in the user's contacts."""
        return self.client.get("/cards/feed/contacts").items()

    def public_feed(self) -> List[Dict[str, Any]]:
        return self.client.get("/cards/feed/public").items()

    def sent(self) -> List[Dict[str, Any]]:
        return self.client.get("/cards/sent").items()

    def received(self, sender_id: Optional[str] = None, limit: Optional[int] = None):
        return self.client.get(
            "/cards/received", params={"senderId": sender_id, "limit": limit}
        ).items()

    def mark_shared_viewed(self, shared_id: str) -> None:
        """Best effort; a failure here never reaches the caller."""
        self.client.non_critical.post(f"/cards/shared/{shared_id}/view")
