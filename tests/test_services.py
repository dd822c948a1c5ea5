"""Tests for the resource services built on the API client."""

import json

import httpx
import pytest

from cardlink.core.config import DevLoginConfig
from cardlink.core.exceptions import ApiError, CardLinkError
from cardlink.data.storage import StorageKeys
from cardlink.services import (
    AdsService,
    AuthService,
    CardsService,
    CreditsService,
    GroupsService,
    MessagingService,
    NotificationsService,
    VouchersService,
)
from cardlink.services.ads import format_ad

USER = {"_id": "u1", "name": "Jane Doe", "phone": "+911234567890", "about": ""}


def route(table):
    """Handler answering from a ``(method, path) -> response`` table, 404 otherwise."""
    calls = []

    def handler(request):
        calls.append(request)
        key = (request.method, request.url.path)
        if key not in table:
            return httpx.Response(404, json={"message": "no route"})
        outcome = table[key]
        return outcome(request) if callable(outcome) else outcome

    handler.calls = calls
    return handler


def body_of(request):
    return json.loads(request.content)


class TestAuthService:
    """Test login, session caching and profile handling."""

    def test_login_stores_token_and_user(self, make_client, store):
        handler = route(
            {("POST", "/api/auth/login"): httpx.Response(200, json={"token": "t1", "user": USER})}
        )
        auth = AuthService(make_client(handler), store)

        auth.login("secret", phone="+911234567890")

        assert body_of(handler.calls[0]) == {"password": "secret", "phone": "+911234567890"}
        assert store.get_item(StorageKeys.TOKEN) == "t1"
        assert store.get_item(StorageKeys.CURRENT_USER_ID) == "u1"
        assert store.get_item(StorageKeys.USER_NAME) == "Jane Doe"
        cached = store.get_json(StorageKeys.USER)
        assert cached["id"] == "u1"
        assert cached["about"] == "Available"

    def test_login_with_email(self, make_client, store):
        handler = route(
            {("POST", "/api/auth/login"): httpx.Response(200, json={"token": "t1", "user": USER})}
        )
        auth = AuthService(make_client(handler), store)

        auth.login("secret", email="jane@example.com")

        assert body_of(handler.calls[0]) == {"password": "secret", "email": "jane@example.com"}

    def test_login_requires_identifier(self, make_client, store):
        auth = AuthService(make_client(route({})), store)

        with pytest.raises(CardLinkError):
            auth.login("secret")

    def test_login_without_token_fails(self, make_client, store):
        handler = route({("POST", "/api/auth/login"): httpx.Response(200, json={"ok": True})})
        auth = AuthService(make_client(handler), store)

        with pytest.raises(CardLinkError, match="token"):
            auth.login("secret", phone="+1")

        assert store.get_item(StorageKeys.TOKEN) is None

    def test_signup_falls_back_to_login(self, make_client, store):
        handler = route(
            {
                ("POST", "/api/auth/signup"): httpx.Response(201, json={"message": "created"}),
                ("POST", "/api/auth/login"): httpx.Response(
                    200, json={"token": "t2", "user": USER}
                ),
            }
        )
        auth = AuthService(make_client(handler), store)

        auth.signup("Jane Doe", "+911234567890", "secret")

        assert [r.url.path for r in handler.calls] == ["/api/auth/signup", "/api/auth/login"]
        assert store.get_item(StorageKeys.TOKEN) == "t2"

    def test_logout_clears_auth_keys_only(self, make_client, store):
        store.set_item(StorageKeys.TOKEN, "t1")
        store.set_item(StorageKeys.USER, "{}")
        store.set_item(StorageKeys.PENDING_PUSH_TOKEN, "push")
        store.set_item(StorageKeys.APP_VERSION, "1.0.0")
        auth = AuthService(make_client(route({})), store)

        auth.logout()

        assert not auth.is_authenticated()
        assert store.keys() == [StorageKeys.APP_VERSION]

    def test_ensure_auth_prefers_stored_token(self, make_client, store):
        handler = route({})
        auth = AuthService(make_client(handler, token="stored"), store)

        assert auth.ensure_auth(DevLoginConfig(EXPO_PUBLIC_DEV_TOKEN="dev")) == "stored"
        assert handler.calls == []

    def test_ensure_auth_uses_dev_token(self, make_client, store):
        auth = AuthService(make_client(route({})), store)

        assert auth.ensure_auth(DevLoginConfig(EXPO_PUBLIC_DEV_TOKEN="dev")) == "dev"
        assert store.get_item(StorageKeys.TOKEN) == "dev"

    def test_ensure_auth_logs_in_with_dev_credentials(self, make_client, store):
        handler = route(
            {("POST", "/api/auth/login"): httpx.Response(200, json={"token": "t3", "user": USER})}
        )
        auth = AuthService(make_client(handler), store)
        dev = DevLoginConfig(EXPO_PUBLIC_DEV_EMAIL="dev@example.com", EXPO_PUBLIC_DEV_PASSWORD="pw")

        assert auth.ensure_auth(dev) == "t3"
        assert body_of(handler.calls[0]) == {"email": "dev@example.com", "password": "pw"}

    def test_ensure_auth_without_anything(self, make_client, store):
        auth = AuthService(make_client(route({})), store)

        assert auth.ensure_auth(DevLoginConfig()) is None

    def test_current_user_repairs_id(self, make_client, store):
        store.set_json(StorageKeys.USER, {"_id": "u9", "name": "Sam"})
        auth = AuthService(make_client(route({})), store)

        user = auth.current_user()

        assert user.id == "u9"
        assert auth.current_user_id() == "u9"

    def test_current_user_fetches_when_only_token(self, make_client, store):
        handler = route({("GET", "/api/auth/profile"): httpx.Response(200, json=USER)})
        auth = AuthService(make_client(handler, token="t1"), store)

        user = auth.current_user()

        assert user.name == "Jane Doe"
        assert store.get_json(StorageKeys.USER)["_id"] == "u1"

    def test_current_user_none_when_logged_out(self, make_client, store):
        auth = AuthService(make_client(route({})), store)

        assert auth.current_user() is None

    def test_fetch_profile_requires_id(self, make_client, store):
        handler = route({("GET", "/api/auth/profile"): httpx.Response(200, json={"name": "x"})})
        auth = AuthService(make_client(handler, token="t1"), store)

        assert auth.fetch_profile() is None

    def test_fetch_profile_failure_returns_none(self, make_client, store):
        handler = route({("GET", "/api/auth/profile"): httpx.Response(401)})
        auth = AuthService(make_client(handler, token="t1"), store)

        assert auth.fetch_profile() is None

    def test_password_reset_flow(self, make_client, store):
        handler = route(
            {
                ("POST", "/api/auth/send-reset-otp"): httpx.Response(200, json={"otpSent": True}),
                ("POST", "/api/auth/verify-otp"): httpx.Response(
                    200, json={"success": True, "data": {"resetToken": "rt"}}
                ),
                ("POST", "/api/auth/reset-password"): httpx.Response(200, json={"ok": True}),
            }
        )
        auth = AuthService(make_client(handler), store)

        assert auth.send_reset_otp(" +911234567890 ")
        assert store.get_item(StorageKeys.RESET_PHONE) == "+911234567890"

        token = auth.verify_otp("+911234567890", "123456")
        assert token == "rt"

        auth.reset_password(token, "new-secret", phone="+911234567890")
        assert store.get_item(StorageKeys.LOGIN_PREFILL_PHONE) == "+911234567890"
        assert store.get_item(StorageKeys.PASSWORD_JUST_RESET) == "true"
        assert store.get_item(StorageKeys.RESET_PHONE) is None

    def test_update_profile_refreshes_cache(self, make_client, store):
        updated = dict(USER, about="Busy")
        handler = route(
            {
                ("PUT", "/api/auth/update-profile"): httpx.Response(200, json={"ok": True}),
                ("GET", "/api/auth/profile"): httpx.Response(200, json=updated),
            }
        )
        auth = AuthService(make_client(handler, token="t1"), store)

        profile = auth.update_profile(about="Busy")

        assert body_of(handler.calls[0]) == {"about": "Busy"}
        assert profile.about == "Busy"


class TestCardsService:
    """Test card routes and lookups."""

    def test_list_mine(self, make_client):
        handler = route(
            {("GET", "/api/cards"): httpx.Response(200, json={"data": [{"_id": "c1"}]})}
        )

        assert CardsService(make_client(handler)).list_mine() == [{"_id": "c1"}]

    def test_get_falls_back_to_public_feed(self, make_client):
        handler = route(
            {
                ("GET", "/api/cards"): httpx.Response(200, json={"data": []}),
                ("GET", "/api/cards/feed/public"): httpx.Response(
                    200, json={"data": [{"_id": "c7", "name": "Public"}]}
                ),
            }
        )

        card = CardsService(make_client(handler)).get("c7")

        assert card == {"_id": "c7", "name": "Public"}

    def test_get_unknown_card(self, make_client):
        handler = route(
            {
                ("GET", "/api/cards"): httpx.Response(200, json={"data": []}),
                ("GET", "/api/cards/feed/public"): httpx.Response(200, json={"data": []}),
            }
        )

        assert CardsService(make_client(handler)).get("nope") is None

    def test_create_with_image_is_multipart(self, make_client):
        handler = route(
            {("POST", "/api/cards"): httpx.Response(201, json={"data": {"_id": "c2"}})}
        )

        card = CardsService(make_client(handler)).create_with_image(
            {"name": "Jane"}, ("card.jpg", b"jpeg", "image/jpeg")
        )

        assert card == {"_id": "c2"}
        assert handler.calls[0].headers["Content-Type"].startswith("multipart/form-data")

    def test_received_with_sender_filter(self, make_client):
        handler = route({("GET", "/api/cards/received"): httpx.Response(200, json={"data": []})})

        CardsService(make_client(handler)).received(sender_id="u2")

        params = handler.calls[0].url.params
        assert params["senderId"] == "u2"
        assert "limit" not in params

    def test_share(self, make_client):
        handler = route({("POST", "/api/cards/c1/share"): httpx.Response(200, json={"ok": 1})})

        CardsService(make_client(handler)).share("c1", "u2", message="hi")

        assert body_of(handler.calls[0]) == {"recipientId": "u2", "message": "hi"}

    def test_mark_shared_viewed_swallows_errors(self, make_client):
        handler = route({})

        assert CardsService(make_client(handler)).mark_shared_viewed("s1") is None


class TestCreditsService:
    """Test the credits ledger routes."""

    def test_balance(self, make_client):
        handler = route(
            {
                ("GET", "/api/credits/balance"): httpx.Response(
                    200, json={"success": True, "credits": 450}
                )
            }
        )

        assert CreditsService(make_client(handler)).balance() == 450

    def test_transfer_sends_idempotency_key(self, make_client):
        handler = route(
            {("POST", "/api/credits/transfer"): httpx.Response(200, json={"newBalance": 40})}
        )

        result = CreditsService(make_client(handler)).transfer("u2", 10, note="lunch")

        request = handler.calls[0]
        assert body_of(request) == {"toUserId": "u2", "amount": 10, "note": "lunch"}
        assert request.headers["Idempotency-Key"]
        assert result == {"newBalance": 40}

    def test_transfer_reuses_given_key_on_retry(self, make_client, sleeps):
        responses = [httpx.Response(503), httpx.Response(200, json={"newBalance": 40})]
        handler = route({("POST", "/api/credits/transfer"): lambda request: responses.pop(0)})

        CreditsService(make_client(handler)).transfer("u2", 10, idempotency_key="fixed")

        assert [r.headers["Idempotency-Key"] for r in handler.calls] == ["fixed", "fixed"]
        assert sleeps == [2.0]

    def test_transfer_rejects_non_positive_amount(self, make_client):
        handler = route({})

        with pytest.raises(CardLinkError):
            CreditsService(make_client(handler)).transfer("u2", 0)
        assert handler.calls == []

    def test_transactions(self, make_client):
        handler = route(
            {
                ("GET", "/api/credits/history"): httpx.Response(
                    200, json={"success": True, "transactions": [{"amount": 5}]}
                )
            }
        )

        service = CreditsService(make_client(handler))

        assert service.transactions(limit=10) == [{"amount": 5}]
        assert handler.calls[0].url.params["limit"] == "10"


class TestGroupsService:
    def test_list_prefers_groups_field(self, make_client):
        handler = route(
            {("GET", "/api/groups"): httpx.Response(200, json={"groups": [{"_id": "g1"}]})}
        )

        assert GroupsService(make_client(handler)).list() == [{"_id": "g1"}]

    def test_join_uppercases_code(self, make_client):
        handler = route(
            {("POST", "/api/groups/join"): httpx.Response(200, json={"success": True})}
        )

        GroupsService(make_client(handler)).join("  ab12cd ")

        assert body_of(handler.calls[0]) == {"inviteCode": "AB12CD"}

    def test_join_requires_code(self, make_client):
        with pytest.raises(CardLinkError):
            GroupsService(make_client(route({}))).join("   ")


class TestMessagingService:
    def test_send_uses_message_id_as_idempotency_key(self, make_client):
        handler = route({("POST", "/api/messages/send"): httpx.Response(200, json={"ok": True})})

        MessagingService(make_client(handler)).send("u2", "hello")

        request = handler.calls[0]
        assert request.headers["Idempotency-Key"] == body_of(request)["messageId"]

    def test_unread_count_defaults_to_zero(self, make_client):
        assert MessagingService(make_client(route({}))).unread_count() == 0


class TestNotificationsService:
    """Test push token registration."""

    def test_token_parked_without_session(self, make_client, store):
        handler = route({})
        service = NotificationsService(make_client(handler), store)

        assert service.register_token("ExponentPushToken[x]") is False
        assert store.get_item(StorageKeys.PENDING_PUSH_TOKEN) == "ExponentPushToken[x]"
        assert handler.calls == []

    def test_register_and_flush(self, make_client, store):
        handler = route(
            {("POST", "/api/notifications/register-token"): httpx.Response(200, json={})}
        )
        store.set_item(StorageKeys.PENDING_PUSH_TOKEN, "ExponentPushToken[x]")
        service = NotificationsService(
            make_client(handler, token="t1"), store, platform="ios", project_id="proj"
        )

        assert service.flush_pending() is True

        assert body_of(handler.calls[0]) == {
            "pushToken": "ExponentPushToken[x]",
            "platform": "ios",
            "projectId": "proj",
        }
        assert store.get_item(StorageKeys.PENDING_PUSH_TOKEN) is None

    def test_registration_failure_reports_and_keeps_token(self, make_client, store):
        handler = route(
            {("POST", "/api/notifications/register-token"): httpx.Response(400, json={})}
        )
        service = NotificationsService(make_client(handler, token="t1"), store)

        assert service.register_token("tok") is False

        assert store.get_item(StorageKeys.PENDING_PUSH_TOKEN) == "tok"
        assert handler.calls[-1].url.path == "/api/notifications/registration-error"

    def test_unread(self, make_client, store):
        handler = route(
            {("GET", "/api/notifications"): httpx.Response(200, json={"data": [{"_id": "n1"}]})}
        )
        service = NotificationsService(make_client(handler, token="t1"), store)

        assert service.unread() == [{"_id": "n1"}]
        assert handler.calls[0].url.params["unreadOnly"] == "true"


class TestAdsService:
    """Test ad feed formatting and carousel position."""

    AD = {
        "_id": "a1",
        "title": "Pizza",
        "phoneNumber": "+91999",
        "priority": 8,
        "hasBottomImage": True,
        "bottomImageUrl": "/api/ads/image/a1/bottom",
        "hasFullscreenImage": False,
    }

    def test_format_ad(self):
        ad = format_ad(self.AD, "https://api.test")

        assert ad["id"] == "api-a1"
        assert ad["name"] == "Pizza"
        assert ad["bottom_media_type"] == "image"
        assert ad["bottom_media_url"] == "https://api.test/api/ads/image/a1/bottom"
        assert ad["fullscreen_media_url"] is None

    def test_active(self, make_client, store):
        handler = route(
            {
                ("GET", "/api/ads/active"): httpx.Response(
                    200,
                    json={"success": True, "data": [self.AD], "imageBaseUrl": "https://cdn.test"},
                )
            }
        )

        ads = AdsService(make_client(handler), store).active()

        assert [ad["id"] for ad in ads] == ["api-a1"]
        assert ads[0]["bottom_media_url"].startswith("https://cdn.test/")

    def test_active_failure_is_empty(self, make_client, store):
        assert AdsService(make_client(route({})), store).active() == []

    def test_active_unsuccessful_is_empty(self, make_client, store):
        handler = route(
            {("GET", "/api/ads/active"): httpx.Response(200, json={"success": False})}
        )

        assert AdsService(make_client(handler), store).active() == []

    @pytest.mark.parametrize("saved, count, expected", [(None, 3, 0), ("0", 3, 1), ("2", 3, 0)])
    def test_resume_index_wraps(self, make_client, store, saved, count, expected):
        if saved is not None:
            store.set_item(StorageKeys.LAST_AD_INDEX, saved)
        service = AdsService(make_client(route({})), store)

        assert service.resume_index(count) == expected

    def test_save_index(self, make_client, store):
        service = AdsService(make_client(route({})), store)

        service.save_index(4)

        assert store.get_item("footerAdIndex") == "4"
        assert service.resume_index(0) == 0


class TestVouchersService:
    def test_purchase_and_redeem_are_idempotent(self, make_client):
        handler = route(
            {
                ("POST", "/api/mlm/vouchers/purchase"): httpx.Response(200, json={"ok": True}),
                ("POST", "/api/mlm/vouchers/v1/redeem"): httpx.Response(200, json={"ok": True}),
            }
        )
        service = VouchersService(make_client(handler))

        service.purchase(2, 1200.0)
        service.redeem("v1")

        assert body_of(handler.calls[0]) == {
            "quantity": 2,
            "totalAmount": 1200.0,
            "paymentMethod": "razorpay",
        }
        assert handler.calls[0].headers["Idempotency-Key"]
        assert handler.calls[1].headers["Idempotency-Key"] == "redeem-v1"

    def test_purchase_rejects_zero(self, make_client):
        with pytest.raises(CardLinkError):
            VouchersService(make_client(route({}))).purchase(0, 0)

    def test_list(self, make_client):
        handler = route(
            {("GET", "/api/mlm/vouchers"): httpx.Response(200, json={"vouchers": [{"_id": "v"}]})}
        )

        assert VouchersService(make_client(handler)).list() == [{"_id": "v"}]

    def test_overview_propagates_errors(self, make_client):
        handler = route({("GET", "/api/mlm/overview"): httpx.Response(403, json={})})

        with pytest.raises(ApiError):
            VouchersService(make_client(handler)).overview()
