"""Client for the Pobo REST API (list export and batch import)."""

from pobo_sync.api.client import PoboClient, paginate
from pobo_sync.api.models import (
    ImportErrorItem,
    ImportResult,
    Language,
    LocalizedString,
    Page,
    ResourceKind,
    SyncFilter,
)

__all__ = [
    "ImportErrorItem",
    "ImportResult",
    "Language",
    "LocalizedString",
    "Page",
    "PoboClient",
    "ResourceKind",
    "SyncFilter",
    "paginate",
]
