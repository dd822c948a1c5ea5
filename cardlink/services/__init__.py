"""Resource services built on the API client."""

from cardlink.services.ads import AdsService
from cardlink.services.app_version import AppVersionManager
from cardlink.services.auth import AuthService
from cardlink.services.cards import CardsService
from cardlink.services.credits import CreditsService
from cardlink.services.groups import GroupsService
from cardlink.services.messaging import MessagingService
from cardlink.services.notifications import NotificationsService
from cardlink.services.vouchers import VouchersService
from cardlink.services.warmup import ServerWarmup

__all__ = [
    "AdsService",
    "AppVersionManager",
    "AuthService",
    "CardsService",
    "CreditsService",
    "GroupsService",
    "MessagingService",
    "NotificationsService",
    "ServerWarmup",
    "VouchersService",
]
