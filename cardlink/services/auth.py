"""
Authentication and profile service.

Owns the token and cached user entries in the key/value store. Login and
sign-up answers carry ``token`` and ``user`` at the top level.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from cardlink.core.config import DevLoginConfig
from cardlink.core.exceptions import ApiError, CardLinkError
from cardlink.core.models import UserProfile
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)


class AuthService:
    """Login, sign-up, password reset and the cached user profile."""

    def __init__(self, client: ApiClient, store: KeyValueStore):
        self.client = client
        self.store = store

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def _store_session(self, body: Dict[str, Any]) -> Optional[str]:
        token = body.get("token")
        if token:
            self.store.set_item(StorageKeys.TOKEN, str(token))

        user = body.get("user")
        if isinstance(user, dict) and (user.get("_id") or user.get("id")):
            self._cache_user(UserProfile.model_validate(user))

        return str(token) if token else None

    def _cache_user(self, profile: UserProfile) -> None:
        self.store.set_json(StorageKeys.USER, profile.to_storage())
        self.store.set_item(StorageKeys.CURRENT_USER_ID, profile.id)
        if profile.name:
            self.store.set_item(StorageKeys.USER_NAME, profile.name)
        if profile.phone:
            self.store.set_item(StorageKeys.USER_PHONE, profile.phone)

    def login(
        self,
        password: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Log in with phone or email and persist the session.

        Returns:
            The backend's login answer
        """
        if not phone and not email:
            raise CardLinkError("Either phone or email is required to log in")

        credentials: Dict[str, Any] = {"password": password}
        if phone:
            credentials["phone"] = phone
        else:
            credentials["email"] = email

        body = self.client.post("/auth/login", credentials).body or {}
        if not isinstance(body, dict) or not body.get("token"):
            raise CardLinkError("Login response did not include a token", details={"body": body})

        self._store_session(body)
        logger.info("Logged in", user_id=self.store.get_item(StorageKeys.CURRENT_USER_ID))
        return body

    def signup(self, name: str, phone: str, password: str) -> Dict[str, Any]:
        """Create an account; falls back to logging in when no token comes back."""
        body = self.client.post(
            "/auth/signup", {"name": name, "phone": phone, "password": password}
        ).body or {}

        if isinstance(body, dict) and body.get("token"):
            self._store_session(body)
            return body

        logger.info("Signup returned no token, logging in", phone=phone)
        return self.login(password, phone=phone)

    def logout(self) -> None:
        """Forget the token and every cached user field."""
        self.store.multi_remove(StorageKeys.AUTH_KEYS)
        logger.info("Logged out")

    def is_authenticated(self) -> bool:
        return bool(self.store.get_item(StorageKeys.TOKEN))

    def ensure_auth(self, dev: Optional[DevLoginConfig] = None) -> Optional[str]:
        """
        Return a usable token, logging in with developer credentials if needed.

        Order: stored token, preset developer token, developer email/password.
        """
        existing = self.store.get_item(StorageKeys.TOKEN)
        if existing:
            return existing

        dev = dev or DevLoginConfig()
        if dev.token:
            self.store.set_item(StorageKeys.TOKEN, dev.token)
            return dev.token

        if dev.email and dev.password:
            body = self.client.post(
                "/auth/login", {"email": dev.email, "password": dev.password}
            ).body
            if isinstance(body, dict) and body.get("token"):
                return self._store_session(body)

        return None

    # ------------------------------------------------------------------ #
    # Password reset
    # ------------------------------------------------------------------ #

    def send_reset_otp(self, phone: str) -> bool:
        """Ask for a reset OTP; True when the backend says one was sent."""
        response = self.client.post("/auth/send-reset-otp", {"phone": phone.strip()})
        data = response.data()
        sent = bool(response.get("otpSent") or (isinstance(data, dict) and data.get("otpSent")))
        if sent:
            self.store.set_item(StorageKeys.RESET_PHONE, phone.strip())
        return sent

    def verify_otp(self, phone: str, otp: str) -> Optional[str]:
        """Exchange the OTP for a reset token."""
        response = self.client.post(
            "/auth/verify-otp", {"phone": phone.strip(), "otp": otp.strip()}
        )
        data = response.data()
        token = response.get("resetToken")
        if not token and isinstance(data, dict):
            token = data.get("resetToken")
        return token

    def reset_password(self, reset_token: str, new_password: str, phone: Optional[str] = None):
        self.client.post(
            "/auth/reset-password", {"resetToken": reset_token, "newPassword": new_password}
        )
        if phone:
            self.store.set_item(StorageKeys.LOGIN_PREFILL_PHONE, phone)
        self.store.set_item(StorageKeys.PASSWORD_JUST_RESET, "true")
        self.store.remove_item(StorageKeys.RESET_PHONE)

    def change_password(self, old_password: str, new_password: str) -> None:
        self.client.post(
            "/auth/change-password", {"oldPassword": old_password, "newPassword": new_password}
        )

    # ------------------------------------------------------------------ #
    # Profile
    # ------------------------------------------------------------------ #

    def fetch_profile(self) -> Optional[UserProfile]:
        """Load the profile from the backend and cache it; None on failure."""
        try:
            body = self.client.get("/auth/profile").body
        except ApiError as e:
            logger.error("Failed to fetch profile", error=str(e), status=e.status)
            return None

        if not isinstance(body, dict) or not body.get("_id"):
            logger.warning("Invalid response from profile endpoint")
            return None

        profile = UserProfile.model_validate(body)
        self._cache_user(profile)
        return profile

    def update_profile(self, **fields: Any) -> Optional[UserProfile]:
        """Send profile changes and refresh the cache."""
        self.client.put("/auth/update-profile", fields)
        return self.refresh_profile()

    def current_user(self) -> Optional[UserProfile]:
        """
        The cached user, fetched from the backend when only a token is stored.
        """
        cached = self.store.get_json(StorageKeys.USER)
        if not cached:
            if self.is_authenticated():
                logger.debug("Token without cached user, fetching profile")
                return self.fetch_profile()
            return None

        if not isinstance(cached, dict) or not (cached.get("id") or cached.get("_id")):
            logger.warning("Cached user has no id")
            return None

        return UserProfile.model_validate(cached)

    def current_user_id(self) -> Optional[str]:
        user = self.current_user()
        return user.id if user else None

    def refresh_profile(self) -> Optional[UserProfile]:
        self.store.remove_item(StorageKeys.USER)
        return self.fetch_profile()
