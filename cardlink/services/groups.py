"""Group routes."""

from typing import Any, Dict, List

from cardlink.core.exceptions import CardLinkError
from cardlink.data.api_client import ApiClient


class GroupsService:
    def __init__(self, client: ApiClient):
        self.client = client

    def list(self) -> List[Dict[str, Any]]:
        response = self.client.get("/groups")
        groups = response.get("groups")
        if isinstance(groups, list):
            return groups
        return response.items()

    def create(self, name: str, description: str = "", **extra: Any) -> Any:
        payload = {"name": name, "description": description, **extra}
        return self.client.post("/groups", payload).data()

    def join(self, invite_code: str) -> Dict[str, Any]:
        """Join by invite code; codes are case-insensitive and sent upper-cased."""
        code = invite_code.strip().upper()
        if not code:
            raise CardLinkError("Invite code is required")
        body = self.client.post("/groups/join", {"inviteCode": code}).body
        return body if isinstance(body, dict) else {}

    def delete(self, group_id: str) -> None:
        self.client.delete(f"/groups/{group_id}")

    def transfer_admin(self, group_id: str, new_admin_id: str) -> Any:
        return self.client.put(
            f"/groups/{group_id}/transfer-admin", {"newAdminId": new_admin_id}
        ).body
