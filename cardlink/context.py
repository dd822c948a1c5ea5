"""Wiring of settings, storage, the API client and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from cardlink.core.config import ClientConfig, Settings, build_client_config, get_settings
from cardlink.data.api_client import ApiClient
from cardlink.data.storage import JsonFileStore, KeyValueStore
from cardlink.services import (
    AdsService,
    AppVersionManager,
    AuthService,
    CardsService,
    CreditsService,
    GroupsService,
    MessagingService,
    NotificationsService,
    ServerWarmup,
    VouchersService,
)


@dataclass
class AppContext:
    """Everything a CLI command or embedding app needs, built once."""

    settings: Settings
    client_config: ClientConfig
    store: KeyValueStore
    client: ApiClient
    _warmup: Optional[ServerWarmup] = field(default=None, repr=False)

    @property
    def auth(self) -> AuthService:
        return AuthService(self.client, self.store)

    @property
    def cards(self) -> CardsService:
        return CardsService(self.client)

    @property
    def credits(self) -> CreditsService:
        return CreditsService(self.client)

    @property
    def groups(self) -> GroupsService:
        return GroupsService(self.client)

    @property
    def messaging(self) -> MessagingService:
        return MessagingService(self.client)

    @property
    def notifications(self) -> NotificationsService:
        return NotificationsService(
            self.client,
            self.store,
            platform=self.settings.platform,
            project_id=self.settings.push.project_id,
        )

    @property
    def ads(self) -> AdsService:
        return AdsService(self.client, self.store)

    @property
    def vouchers(self) -> VouchersService:
        return VouchersService(self.client)

    @property
    def app_version(self) -> AppVersionManager:
        return AppVersionManager(
            self.client,
            self.store,
            current_version=self.settings.app_version,
            platform=self.settings.platform,
        )

    @property
    def warmup(self) -> ServerWarmup:
        # Shared so the warm window survives between calls
        if self._warmup is None:
            self._warmup = ServerWarmup(self.client)
        return self._warmup

    def close(self) -> None:
        self.client.close()


def create_context(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> AppContext:
    """Resolve configuration once and build the client around it."""
    settings = settings or get_settings()
    client_config = build_client_config(settings)
    store = store or JsonFileStore(settings.resolved_storage_path())
    client = ApiClient(client_config, store, transport=transport)
    return AppContext(
        settings=settings, client_config=client_config, store=store, client=client
    )
