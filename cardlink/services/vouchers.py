"""
Voucher and referral (MLM) routes.

Purchases and redemptions carry an idempotency key so they are safe to retry.
"""

import uuid
from typing import Any, Dict, List, Optional

from cardlink.core.exceptions import CardLinkError
from cardlink.data.api_client import ApiClient


class VouchersService:
    def __init__(self, client: ApiClient):
        self.client = client

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        response = self.client.get("/mlm/vouchers", params={"limit": limit})
        vouchers = response.get("vouchers")
        return vouchers if isinstance(vouchers, list) else response.items()

    def purchase(
        self, quantity: int, total_amount: float, payment_method: str = "razorpay"
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise CardLinkError("Voucher quantity must be positive", details={"quantity": quantity})
        body = self.client.post(
            "/mlm/vouchers/purchase",
            {"quantity": quantity, "totalAmount": total_amount, "paymentMethod": payment_method},
            idempotency_key=str(uuid.uuid4()),
        ).body
        return body if isinstance(body, dict) else {}

    def redeem(self, voucher_id: str) -> Any:
        # One redemption per voucher, so the voucher id is the key
        return self.client.post(
            f"/mlm/vouchers/{voucher_id}/redeem", idempotency_key=f"redeem-{voucher_id}"
        ).body

    def history(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.client.get("/mlm/vouchers/history", params={"limit": limit}).items()

    def overview(self) -> Any:
        return self.client.get("/mlm/overview").data()

    def commissions(self) -> Any:
        return self.client.get("/mlm/commissions/summary").data()

    def network_tree(self, depth: int = 3, per_parent_limit: int = 5) -> Any:
        return self.client.get(
            "/mlm/network/tree", params={"depth": depth, "perParentLimit": per_parent_limit}
        ).data()
