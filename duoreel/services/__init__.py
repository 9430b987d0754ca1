"""Services for storage, matching, discovery and ratings."""

from .kv_store import KVStore, SupabaseKVStore, MemoryKVStore, get_kv_store
from .kv_paginated import scan_values_by_prefix, scan_keys_by_prefix, scan_rows_by_prefix
from .exclusion import build_exclusion_set
from .concurrency import Settled, map_bounded
from .notification_service import NotificationService, UnreadCounter
from .match_service import MatchService
from .tmdb_client import TMDbClient, get_tmdb_client
from .discovery_service import DiscoveryFilters, DiscoveryService
from .import_service import ImportService
from .library_service import LibraryService
from .partner_service import PartnerService
from .profile_service import ProfileService
from .quota_manager import QuotaManager
from .rating_service import RatingService

__all__ = [
    "KVStore",
    "SupabaseKVStore",
    "MemoryKVStore",
    "get_kv_store",
    "scan_values_by_prefix",
    "scan_keys_by_prefix",
    "scan_rows_by_prefix",
    "build_exclusion_set",
    "Settled",
    "map_bounded",
    "NotificationService",
    "UnreadCounter",
    "MatchService",
    "TMDbClient",
    "get_tmdb_client",
    "DiscoveryFilters",
    "DiscoveryService",
    "ImportService",
    "LibraryService",
    "PartnerService",
    "ProfileService",
    "QuotaManager",
    "RatingService",
]
