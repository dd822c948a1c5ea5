"""
Credits ledger routes.

Balance answers look like ``{"success": true, "credits": 450}``.
"""

import uuid
from typing import Any, Dict, List, Optional

import structlog

from cardlink.core.exceptions import CardLinkError
from cardlink.data.api_client import ApiClient

logger = structlog.get_logger(__name__)


class CreditsService:
    """Balance, transfers and history."""

    def __init__(self, client: ApiClient):
        self.client = client

    def balance(self) -> int:
        response = self.client.get("/credits/balance")
        return int(response.get("credits") or 0)

    def transfer(
        self,
        to_user_id: str,
        amount: int,
        note: str = "",
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move credits to another user.

        An idempotency key is always sent so a retried transfer cannot be
        applied twice by the backend.

        Args:
            to_user_id: Receiving user's id
            amount: Whole number of credits, must be positive
            note: Free text shown in both users' history
            idempotency_key: Reuse a key to repeat the same logical transfer

        Returns:
            Backend answer, including ``newBalance`` and ``transaction``
        """
        if amount <= 0:
            raise CardLinkError("Transfer amount must be positive", details={"amount": amount})

        key = idempotency_key or str(uuid.uuid4())
        response = self.client.post(
            "/credits/transfer",
            {"toUserId": to_user_id, "amount": int(amount), "note": note or ""},
            idempotency_key=key,
        )
        logger.info("Credits transferred", to_user_id=to_user_id, amount=amount)
        return response.body

    def history(self, limit: int = 100) -> Dict[str, Any]:
        response = self.client.get("/credits/history", params={"limit": limit})
        return response.body if isinstance(response.body, dict) else {}

    def transactions(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Transaction list from the history answer."""
        history = self.history(limit)
        transactions = history.get("transactions", history.get("data"))
        return transactions if isinstance(transactions, list) else []

    def config(self) -> Any:
        return self.client.get("/credits/config").data()

    def referral_stats(self) -> Any:
        return self.client.get("/credits/referral-stats").data()

    def search_users(self, query: str) -> List[Dict[str, Any]]:
        return self.client.post("/credits/search-users", {"query": query}).items()
