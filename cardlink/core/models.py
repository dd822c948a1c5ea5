"""
Data models for CardLink.

Backend payloads are opaque JSON; only the few shapes the client itself reads
are modelled here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ApiResponse(BaseModel):
    """
    Tagged result of a backend call.

    The backend answers with ``{success, data}`` on some routes and with
    top-level fields on others; call sites pick the unwrapping they need.
    """

    status: int
    url: str
    body: Any = None

    model_config = ConfigDict(frozen=True)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def get(self, key: str, default: Any = None) -> Any:
        """Top-level field of a JSON object body."""
        if isinstance(self.body, dict):
            return self.body.get(key, default)
        return default

    def data(self) -> Any:
        """Return ``body["data"]`` for enveloped responses, otherwise the body."""
        if isinstance(self.body, dict) and "data" in self.body:
            return self.body["data"]
        return self.body

    def items(self) -> List[Any]:
        """List payload of a collection route; anything else reads as empty."""
        data = self.data()
        if isinstance(data, list):
            return data
        return []


@dataclass
class FormData:
    """Multipart payload: plain fields plus file parts."""

    fields: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, Any] = field(default_factory=dict)


class UserProfile(BaseModel):
    """Cached user profile."""

    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    profile_picture: Optional[str] = Field(default=None, alias="profilePicture")
    about: str = "Available"

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def fill_id(cls, data):
        """Accept either ``id`` or Mongo-style ``_id``; blank ``about`` reads "Available"."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("id") and data.get("_id"):
            data["id"] = data["_id"]
        if not data.get("about"):
            data["about"] = "Available"
        return data

    def to_storage(self) -> Dict[str, Any]:
        """Shape stored under the ``user`` key."""
        return {
            "id": self.id,
            "_id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "profilePicture": self.profile_picture,
            "about": self.about,
        }


class VersionCheckResult(BaseModel):
    """Answer of the backend's version check route."""

    success: bool = False
    update_required: bool = Field(default=False, alias="updateRequired")
    current_version: Optional[str] = Field(default=None, alias="currentVersion")
    minimum_version: Optional[str] = Field(default=None, alias="minimumVersion")
    latest_version: Optional[str] = Field(default=None, alias="latestVersion")
    update_url: Optional[str] = Field(default=None, alias="updateUrl")
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
