"""Tests for the Pobo REST client: paging, incremental filter, import, errors."""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from pobo_sync.api.client import PoboClient, paginate
from pobo_sync.api.models import ImportErrorItem, Page, ResourceKind, SyncFilter
from pobo_sync.config import Settings
from pobo_sync.context import AppContext
from pobo_sync.exceptions import ApiError, ConfigError, MalformedResponseError, TransportError


def _client(context, handler) -> PoboClient:
    return PoboClient(context, transport=httpx.MockTransport(handler))


class TestRequestShape:
    def test_auth_and_content_headers(self, context, fake_api):
        api = fake_api([3])
        with PoboClient(context, transport=api.transport()) as client:
            client.fetch_page(ResourceKind.PRODUCTS, 1, 100)

        request = api.requests[0]
        assert request.headers["Authorization"] == "Bearer test-api-token"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["Content-Type"] == "application/json"
        assert request.url.path == "/api/v2/rest/products"
        assert request.url.host == "api.test"

    def test_query_without_filter_omits_update_param(self, context, fake_api):
        api = fake_api([3])
        with PoboClient(context, transport=api.transport()) as client:
            client.fetch_page(ResourceKind.CATEGORIES, 2, 50)

        params = api.requests[0].url.params
        assert params["page"] == "2"
        assert params["per_page"] == "50"
        assert "last_update_time_from" not in params

    def test_empty_filter_omits_update_param(self, context, fake_api):
        api = fake_api([3])
        with PoboClient(context, transport=api.transport()) as client:
            client.fetch_page(ResourceKind.PRODUCTS, 1, 100, SyncFilter())
        assert "last_update_time_from" not in api.requests[0].url.params

    def test_filter_sends_formatted_timestamp(self, context, fake_api):
        api = fake_api([3])
        since = SyncFilter(datetime(2024, 1, 8, 9, 5, 0))
        with PoboClient(context, transport=api.transport()) as client:
            client.fetch_page(ResourceKind.PRODUCTS, 1, 100, since)
        assert api.requests[0].url.params["last_update_time_from"] == "2024-01-08 09:05:00"

    def test_default_per_page_from_settings(self, context, fake_api):
        api = fake_api([3])
        with PoboClient(context, transport=api.transport()) as client:
            client.fetch_page(ResourceKind.BLOGS)
        assert api.requests[0].url.params["per_page"] == "100"

    def test_timeout_from_settings(self, context):
        with PoboClient(context) as client:
            assert client._http.timeout.read == 30.0

    def test_missing_token_aborts_before_any_request(self):
        context = AppContext(settings=Settings(api_token="", _env_file=None))
        with pytest.raises(ConfigError, match="POBO_API_TOKEN"):
            PoboClient(context)


class TestFetchPage:
    def test_decodes_page(self, context, fake_api):
        api = fake_api([100, 100, 37])
        with PoboClient(context, transport=api.transport()) as client:
            page = client.fetch_page(ResourceKind.PRODUCTS, 3, 100)

        assert isinstance(page, Page)
        assert len(page.items) == 37
        assert page.items[0] == {"id": "ID-200"}
        assert page.current_page == 3
        assert page.total == 237
        assert page.total_pages == 3

    def test_missing_meta_falls_back_to_request(self, context):
        client = _client(context, lambda r: httpx.Response(200, json={"data": [{"id": 1}]}))
        page = client.fetch_page(ResourceKind.PRODUCTS, 4, 10)
        assert (page.current_page, page.per_page, page.total) == (4, 10, 0)

    def test_oversized_page_rejected(self, context):
        client = _client(context, lambda r: httpx.Response(200, json={"data": [{}] * 3}))
        with pytest.raises(MalformedResponseError):
            client.fetch_page(ResourceKind.PRODUCTS, 1, 2)

    def test_non_json_body_rejected(self, context):
        client = _client(context, lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedResponseError):
            client.fetch_page(ResourceKind.PRODUCTS, 1, 10)

    def test_wrong_shape_rejected(self, context):
        client = _client(context, lambda r: httpx.Response(200, json={"data": "nope"}))
        with pytest.raises(MalformedResponseError):
            client.fetch_page(ResourceKind.PRODUCTS, 1, 10)


class TestFetchAll:
    def test_pages_until_short_page(self, context, fake_api):
        api = fake_api([100, 100, 37])
        with PoboClient(context, transport=api.transport()) as client:
            items = list(client.fetch_all(ResourceKind.PRODUCTS))

        assert len(items) == 237
        assert len(api.requests) == 3
        assert [r.url.params["page"] for r in api.requests] == ["1", "2", "3"]
        assert items[0] == {"id": "ID-0"}
        assert items[-1] == {"id": "ID-236"}

    def test_empty_first_page_single_request(self, context, fake_api):
        api = fake_api([0])
        with PoboClient(context, transport=api.transport()) as client:
            assert list(client.fetch_all(ResourceKind.CATEGORIES)) == []
        assert len(api.requests) == 1

    def test_short_first_page_stops(self, context, fake_api):
        api = fake_api([5, 100])
        with PoboClient(context, transport=api.transport()) as client:
            assert len(list(client.fetch_all(ResourceKind.BLOGS))) == 5
        assert len(api.requests) == 1

    def test_empty_page_after_full_pages(self, context, fake_api):
        api = fake_api([10, 10, 0])
        with PoboClient(context, transport=api.transport()) as client:
            assert len(list(client.fetch_all(ResourceKind.PRODUCTS, per_page=10))) == 20
        assert len(api.requests) == 3

    def test_ignores_inaccurate_total(self, context):
        """Server claims total=1 but keeps returning full pages."""
        sizes = [2, 2, 1]
        calls = []

        def handler(request):
            page = int(request.url.params["page"])
            calls.append(page)
            return httpx.Response(200, json={"data": [{}] * sizes[page - 1], "meta": {"total": 1}})

        client = _client(context, handler)
        assert len(list(client.fetch_all(ResourceKind.PRODUCTS, per_page=2))) == 5
        assert calls == [1, 2, 3]

    def test_filter_sent_on_every_request(self, context, fake_api):
        api = fake_api([100, 100, 37])
        since = SyncFilter(datetime(2024, 1, 1))
        with PoboClient(context, transport=api.transport()) as client:
            list(client.fetch_all(ResourceKind.PRODUCTS, since))

        assert len(api.requests) == 3
        assert all(r.url.params["last_update_time_from"] == "2024-01-01 00:00:00" for r in api.requests)

    def test_no_filter_on_any_request(self, context, fake_api):
        api = fake_api([100, 1])
        with PoboClient(context, transport=api.transport()) as client:
            list(client.fetch_all(ResourceKind.PRODUCTS))
        assert all("last_update_time_from" not in r.url.params for r in api.requests)

    def test_lazy_and_abandonable(self, context, fake_api):
        api = fake_api([100, 100, 37])
        with PoboClient(context, transport=api.transport()) as client:
            iterator = client.fetch_all(ResourceKind.PRODUCTS)
            assert api.requests == []
            first = next(iterator)
            assert first == {"id": "ID-0"}
            assert len(api.requests) == 1
            iterator.close()
        assert len(api.requests) == 1

    def test_error_mid_iteration_propagates(self, context):
        def handler(request):
            if request.url.params["page"] == "2":
                return httpx.Response(503, text="maintenance")
            return httpx.Response(200, json={"data": [{}] * 2})

        client = _client(context, handler)
        iterator = client.fetch_all(ResourceKind.PRODUCTS, per_page=2)
        assert len([next(iterator), next(iterator)]) == 2
        with pytest.raises(ApiError) as exc_info:
            next(iterator)
        assert exc_info.value.http_status == 503

    def test_collect_all(self, context, fake_api):
        api = fake_api([100, 20])
        with PoboClient(context, transport=api.transport()) as client:
            assert len(client.collect_all(ResourceKind.PRODUCTS)) == 120

    def test_iterate_helpers_pass_filter(self, context, fake_api):
        api = fake_api([1])
        with PoboClient(context, transport=api.transport()) as client:
            list(client.iterate_categories(datetime(2024, 2, 1, 12, 0, 0)))
        request = api.requests[0]
        assert request.url.path == "/api/v2/rest/categories"
        assert request.url.params["last_update_time_from"] == "2024-02-01 12:00:00"


class TestPaginate:
    def test_strictly_increasing_pages(self):
        seen = []

        def fetch(kind, page, per_page, sync_filter):
            seen.append(page)
            return Page(items=[page] * (per_page if page < 4 else 0), current_page=page, per_page=per_page)

        assert list(paginate(fetch, ResourceKind.PRODUCTS, 3)) == [1, 1, 1, 2, 2, 2, 3, 3, 3]
        assert seen == [1, 2, 3, 4]

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            list(paginate(lambda *a: None, ResourceKind.PRODUCTS, 0))


class TestImport:
    def test_posts_full_batch_in_one_request(self, context, fake_api):
        api = fake_api(import_response={"imported": 2, "updated": 1, "skipped": 0, "errors": []})
        records = [{"id": f"PROD-{i}"} for i in range(3)]
        with PoboClient(context, transport=api.transport()) as client:
            result = client.import_records(ResourceKind.PRODUCTS, records)

        assert len(api.requests) == 1
        request = api.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v2/rest/products"
        assert json.loads(request.content) == records
        assert (result.imported, result.updated, result.skipped) == (2, 1, 0)
        assert not result.has_errors

    def test_per_record_errors_returned_not_raised(self, context, fake_api):
        api = fake_api(
            import_response={
                "imported": 1,
                "updated": 0,
                "skipped": 1,
                "errors": [{"index": 1, "id": "PROD-2", "errors": ["Name is required", "Invalid URL"]}],
            }
        )
        with PoboClient(context, transport=api.transport()) as client:
            result = client.import_products([{"id": "PROD-1"}, {"id": "PROD-2"}])

        assert result.has_errors
        assert result.errors == [ImportErrorItem(index=1, id="PROD-2", messages=["Name is required", "Invalid URL"])]

    def test_blog_errors_keyed_by_guid(self, context, fake_api):
        api = fake_api(import_response={"errors": [{"index": 0, "guid": "550e8400", "errors": ["bad"]}]})
        with PoboClient(context, transport=api.transport()) as client:
            result = client.import_blogs([{"guid": "550e8400"}])
        assert result.errors[0].id == "550e8400"
        assert api.requests[0].url.path == "/api/v2/rest/blogs"

    def test_parameter_value_counts(self, context, fake_api):
        api = fake_api(import_response={"imported": 2, "updated": 0, "values_imported": 6, "values_updated": 1})
        with PoboClient(context, transport=api.transport()) as client:
            result = client.import_parameters([{"id": 1, "name": "Barva", "values": []}])
        assert (result.values_imported, result.values_updated) == (6, 1)

    def test_http_error_raises_without_result(self, context):
        client = _client(context, lambda r: httpx.Response(422, text='{"message": "Invalid"}'))
        with pytest.raises(ApiError) as exc_info:
            client.import_categories([{"id": "CAT-1"}])
        assert exc_info.value.http_status == 422
        assert exc_info.value.body == '{"message": "Invalid"}'


class TestTransportFailures:
    def test_api_error_carries_status_and_body(self, context):
        client = _client(context, lambda r: httpx.Response(401, text="Unauthorized"))
        with pytest.raises(ApiError) as exc_info:
            client.fetch_page(ResourceKind.PRODUCTS, 1, 10)
        assert exc_info.value.http_status == 401
        assert exc_info.value.body == "Unauthorized"

    def test_retry_after_captured(self, context):
        client = _client(context, lambda r: httpx.Response(429, text="slow down", headers={"Retry-After": "7"}))
        with pytest.raises(ApiError) as exc_info:
            client.fetch_page(ResourceKind.PRODUCTS, 1, 10)
        assert exc_info.value.retry_after == 7.0

    def test_timeout_is_distinguishable(self, context):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError) as exc_info:
            _client(context, handler).fetch_page(ResourceKind.PRODUCTS, 1, 10)
        assert exc_info.value.timeout is True

    def test_connection_error_is_not_timeout(self, context):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            _client(context, handler).fetch_page(ResourceKind.PRODUCTS, 1, 10)
        assert exc_info.value.timeout is False
