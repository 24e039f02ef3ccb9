"""Pobo REST API client.

Wraps httpx with bearer-token auth and exposes:
- fetch_page: one authenticated GET against a list endpoint
- fetch_all: lazy iteration over a whole collection, ending at the first short page
- import_records: one authenticated POST carrying a full batch

The client performs no retries; errors propagate to the caller as
TransportError / ApiError / MalformedResponseError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import datetime
from typing import Any

import httpx

from pobo_sync.api.models import ImportResult, Page, ResourceKind, SyncFilter
from pobo_sync.context import AppContext
from pobo_sync.exceptions import ApiError, MalformedResponseError, TransportError

Record = dict[str, Any]
PageFetcher = Callable[[ResourceKind, int, int, SyncFilter | None], Page[Record]]


def paginate(
    fetch_page: PageFetcher,
    kind: ResourceKind,
    per_page: int,
    sync_filter: SyncFilter | None = None,
) -> Iterator[Record]:
    """Yield every record of ``kind``, one page at a time.

    Starts at page 1 and advances by one. Stops as soon as a page holds fewer
    than ``per_page`` items, whatever the server reports as ``total``. Page
    N+1 is only requested once page N has been fully yielded.
    """
    if per_page < 1:
        raise ValueError(f"per_page must be > 0, got {per_page}")
    page_number = 1
    while True:
        page = fetch_page(kind, page_number, per_page, sync_filter)
        yield from page.items
        if len(page.items) < per_page:
            return
        page_number += 1


class PoboClient:
    """Authenticated client for the list and import endpoints."""

    def __init__(
        self,
        context: AppContext,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = context.settings.require("api_token")
        self._logger = context.child_logger("api.client")
        self.per_page = settings.per_page
        self._http = httpx.Client(
            base_url=settings.base_url,
            headers={
                "Authorization": f"Bearer {settings.api_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=settings.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> PoboClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ── Transport ──────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        self._logger.info(
            "API request", extra={"context": {"method": method, "endpoint": path, "params": params}}
        )
        try:
            response = self._http.request(method, path, params=params, json=body)
        except httpx.TimeoutException as e:
            self._logger.error(
                "API request timed out", extra={"context": {"endpoint": path, "error": str(e)}}
            )
            raise TransportError(f"Request to {path} timed out", timeout=True) from e
        except httpx.TransportError as e:
            self._logger.error(
                "API transport error", extra={"context": {"endpoint": path, "error": str(e)}}
            )
            raise TransportError(f"Request to {path} failed: {e}") from e

        self._logger.info(
            "API response",
            extra={
                "context": {
                    "http_code": response.status_code,
                    "response_length": len(response.content),
                }
            },
        )

        if response.status_code >= 400:
            self._logger.error(
                "API error",
                extra={"context": {"http_code": response.status_code, "response": response.text}},
            )
            raise ApiError(response.status_code, response.text, _retry_after(response))

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response from {path} is not valid JSON") from e

    # ── Export ─────────────────────────────────────────────────────────────

    def fetch_page(
        self,
        kind: ResourceKind,
        page: int = 1,
        per_page: int | None = None,
        sync_filter: SyncFilter | None = None,
    ) -> Page[Record]:
        """Fetch a single page of ``kind``.

        ``last_update_time_from`` is sent only when the filter carries an instant.
        """
        kind = ResourceKind(kind)
        per_page = per_page or self.per_page
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if sync_filter is not None:
            params.update(sync_filter.query_params())

        payload = self._request("GET", kind.path, params=params)
        result = Page.from_response(payload, page=page, per_page=per_page)

        self._logger.info(
            "%s fetched",
            kind.value.capitalize(),
            extra={"context": {"page": page, "count": len(result.items), "total": result.total}},
        )
        return result

    def fetch_all(
        self,
        kind: ResourceKind,
        sync_filter: SyncFilter | None = None,
        per_page: int | None = None,
    ) -> Iterator[Record]:
        """Lazily iterate the whole collection (see ``paginate``)."""
        kind = ResourceKind(kind)
        per_page = per_page or self.per_page
        self._logger.info(
            "Fetching all %s",
            kind.value,
            extra={"context": {"per_page": per_page, "filter": sync_filter.query_params() if sync_filter else {}}},
        )
        return paginate(self.fetch_page, kind, per_page, sync_filter)

    def collect_all(
        self,
        kind: ResourceKind,
        sync_filter: SyncFilter | None = None,
        per_page: int | None = None,
    ) -> list[Record]:
        """Materialize ``fetch_all`` into a list."""
        records = list(self.fetch_all(kind, sync_filter, per_page))
        self._logger.info(
            "All %s fetched", ResourceKind(kind).value, extra={"context": {"total": len(records)}}
        )
        return records

    def iterate_products(self, updated_since: datetime | None = None) -> Iterator[Record]:
        return self.fetch_all(ResourceKind.PRODUCTS, SyncFilter(updated_since))

    def iterate_categories(self, updated_since: datetime | None = None) -> Iterator[Record]:
        return self.fetch_all(ResourceKind.CATEGORIES, SyncFilter(updated_since))

    def iterate_blogs(self, updated_since: datetime | None = None) -> Iterator[Record]:
        return self.fetch_all(ResourceKind.BLOGS, SyncFilter(updated_since))

    # ── Import ─────────────────────────────────────────────────────────────

    def import_records(self, kind: ResourceKind, records: Sequence[Record]) -> ImportResult:
        """POST the whole batch in one request.

        Per-record failures come back in ``ImportResult.errors``; only a failed
        HTTP call raises. Batches are not split.
        """
        kind = ResourceKind(kind)
        self._logger.info(
            "Importing %s", kind.value, extra={"context": {"count": len(records)}}
        )
        payload = self._request("POST", kind.path, body=list(records))
        result = ImportResult.from_response(payload)

        summary = {
            "imported": result.imported,
            "updated": result.updated,
            "skipped": result.skipped,
            "errors_count": len(result.errors),
        }
        if result.values_imported is not None or result.values_updated is not None:
            summary["values_imported"] = result.values_imported or 0
            summary["values_updated"] = result.values_updated or 0
        self._logger.info(
            "%s import completed", kind.value.capitalize(), extra={"context": summary}
        )
        return result

    def import_products(self, records: Sequence[Record]) -> ImportResult:
        return self.import_records(ResourceKind.PRODUCTS, records)

    def import_categories(self, records: Sequence[Record]) -> ImportResult:
        return self.import_records(ResourceKind.CATEGORIES, records)

    def import_parameters(self, records: Sequence[Record]) -> ImportResult:
        return self.import_records(ResourceKind.PARAMETERS, records)

    def import_blogs(self, records: Sequence[Record]) -> ImportResult:
        return self.import_records(ResourceKind.BLOGS, records)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
