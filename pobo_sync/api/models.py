"""Value types exchanged with the Pobo REST API."""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pobo_sync.exceptions import MalformedResponseError

T = TypeVar("T")

# Format of last_update_time_from and of timestamps in API records
API_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ResourceKind(str, Enum):
    """Collections exposed under /api/v2/rest/."""

    PRODUCTS = "products"
    CATEGORIES = "categories"
    PARAMETERS = "parameters"
    BLOGS = "blogs"

    @property
    def path(self) -> str:
        return f"/api/v2/rest/{self.value}"


class Language(str, Enum):
    CS = "cs"
    SK = "sk"
    EN = "en"
    DE = "de"
    PL = "pl"
    HU = "hu"


@dataclass(frozen=True)
class SyncFilter:
    """Incremental sync boundary: only records updated at or after ``updated_since``.

    The API takes a naive local wall-clock time. Naive instants are sent as
    they are; aware instants are converted to local time first.
    """

    updated_since: datetime | None = None

    def query_params(self) -> dict[str, str]:
        if self.updated_since is None:
            return {}
        since = self.updated_since
        if since.tzinfo is not None:
            since = since.astimezone().replace(tzinfo=None)
        return {"last_update_time_from": since.strftime(API_TIMESTAMP_FORMAT)}


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a list endpoint."""

    items: list[T]
    current_page: int
    per_page: int
    total: int = 0

    def __post_init__(self) -> None:
        if self.current_page < 1:
            raise ValueError(f"current_page must be >= 1, got {self.current_page}")
        if self.per_page < 1:
            raise ValueError(f"per_page must be > 0, got {self.per_page}")
        if self.total < 0:
            raise ValueError(f"total must be >= 0, got {self.total}")
        if len(self.items) > self.per_page:
            raise ValueError(
                f"page holds {len(self.items)} items but per_page is {self.per_page}"
            )

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page)

    @property
    def is_short(self) -> bool:
        """True when this page signals the end of the collection."""
        return len(self.items) < self.per_page

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @classmethod
    def from_response(cls, payload: Any, page: int, per_page: int) -> Page[dict[str, Any]]:
        """Decode ``{data: [...], meta: {...}}``.

        Meta values missing from the response fall back to the request
        parameters; ``total`` falls back to 0 since pagination never relies on it.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("data", []), list):
            raise MalformedResponseError("List response must be an object with a 'data' array")
        meta = payload.get("meta") or {}
        if not isinstance(meta, dict):
            raise MalformedResponseError("List response 'meta' must be an object")
        items = payload.get("data", [])
        if len(items) > per_page:
            raise MalformedResponseError(
                f"Requested {per_page} items per page, received {len(items)}"
            )
        try:
            return cls(
                items=items,
                current_page=int(meta.get("current_page") or page),
                per_page=per_page,
                total=int(meta.get("total") or 0),
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid pagination meta: {e}") from e


@dataclass(frozen=True)
class ImportErrorItem:
    """A record the remote side refused, with its position in the submitted batch."""

    index: int
    id: str | None
    messages: list[str]


@dataclass(frozen=True)
class ImportResult:
    """Summary of a batch import as reported by the API."""

    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[ImportErrorItem] = field(default_factory=list)
    # Parameter imports additionally report their values
    values_imported: int | None = None
    values_updated: int | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @classmethod
    def from_response(cls, payload: Any) -> ImportResult:
        """Decode ``{imported, updated, skipped, errors: [...]}``.

        Missing counts default to 0. Anything present but not of the
        documented shape raises MalformedResponseError.
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError("Import response must be a JSON object")
        raw_errors = payload.get("errors") or []
        if not isinstance(raw_errors, list):
            raise MalformedResponseError("Import response 'errors' must be an array")
        try:
            errors = [_decode_import_error(position, raw) for position, raw in enumerate(raw_errors)]
            return cls(
                imported=int(payload.get("imported") or 0),
                updated=int(payload.get("updated") or 0),
                skipped=int(payload.get("skipped") or 0),
                errors=errors,
                values_imported=_optional_int(payload.get("values_imported")),
                values_updated=_optional_int(payload.get("values_updated")),
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid import response: {e}") from e


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _decode_import_error(position: int, raw: Any) -> ImportErrorItem:
    if not isinstance(raw, dict):
        return ImportErrorItem(index=position, id=None, messages=[str(raw)])
    record_id = raw.get("id", raw.get("guid"))
    messages = raw.get("errors", raw.get("messages", []))
    if isinstance(messages, str):
        messages = [messages]
    if not isinstance(messages, list):
        raise MalformedResponseError(f"Import error messages at position {position} must be an array")
    return ImportErrorItem(
        index=position if raw.get("index") is None else int(raw["index"]),
        id=None if record_id is None else str(record_id),
        messages=[str(m) for m in messages],
    )


class LocalizedString(Mapping[str, str]):
    """Language code -> text, with a ``default`` key that is always present.

    Records carry localized fields as plain objects such as
    ``{"default": "Elektronika", "en": "Electronics"}``.
    """

    DEFAULT = "default"

    def __init__(self, default: str, translations: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {self.DEFAULT: default}
        for lang, value in (translations or {}).items():
            if value is not None:
                self._values[str(getattr(lang, "value", lang))] = value

    @classmethod
    def from_api(cls, raw: Any) -> LocalizedString | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            return cls(raw)
        if isinstance(raw, Mapping):
            rest = {k: v for k, v in raw.items() if k != cls.DEFAULT}
            return cls(raw.get(cls.DEFAULT) or "", rest)
        raise TypeError(f"Cannot build LocalizedString from {type(raw).__name__}")

    @property
    def default(self) -> str:
        return self._values[self.DEFAULT]

    def with_translation(self, lang: Language | str, value: str) -> LocalizedString:
        return LocalizedString(self.default, {**self._values, str(getattr(lang, "value", lang)): value})

    def translation(self, lang: Language | str) -> str | None:
        return self._values.get(str(getattr(lang, "value", lang)))

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"LocalizedString({self._values!r})"
