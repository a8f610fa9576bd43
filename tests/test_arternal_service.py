"""Tests for ArternalService and RateLimiter.

Tests:
- Listing request parameters, pagination and record mapping
- Detail fetch and per-entity detail mapping
- Error mapping (404, 401, malformed bodies) and retry with backoff
- Sliding-window rate limiting
"""

from unittest.mock import MagicMock, call, patch

import pytest
import requests

from catalog_sync.core.errors import FatalFetchError, NotFoundError, TransientFetchError
from catalog_sync.services.arternal_service import ArternalService, RateLimiter
from catalog_sync.sync.entities import ARTISTS, ARTWORKS, CONTACTS


def _response(status_code=200, json_body=None, headers=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.headers = headers or {}
    resp.text = text
    if json_body is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = json_body
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def service(session):
    return ArternalService(
        api_key="test-key",
        base_url="https://api.test/api/v1/",
        session=session,
        page_size=2,
        max_retries=2,
        timeout_sec=5,
        backoff_base_sec=1,
        backoff_max_sec=8,
        rate_limiter=MagicMock(),
    )


ARTWORK_ITEM = {
    "id": 101,
    "catalog_number": "AB-1",
    "title": "Blue Study",
    "year": "1962",
    "medium": "Oil on canvas",
    "price": "12000.00",
    "artists": [{"id": 7, "display_name": "A. Painter"}],
    "created_at": "2023-05-01T09:00:00Z",
    "updated_at": "2024-01-02T10:00:00Z",
}


class TestListPage:
    def test_first_page_request(self, service, session):
        """Test limit/offset/sort params, headers and URL on the first page."""
        session.request.return_value = _response(
            json_body={"data": [ARTWORK_ITEM], "pagination": {"total": 3, "has_more": True}}
        )

        service.list_page(ARTWORKS)

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://api.test/api/v1/inventory"
        assert kwargs["params"] == {
            "type": "inventory",
            "limit": "2",
            "offset": "0",
            "sort": "updated_at",
            "order": "asc",
        }
        assert kwargs["headers"]["X-API-Key"] == "test-key"
        assert kwargs["timeout"] == 5

    def test_has_more_sets_next_cursor(self, service, session):
        session.request.return_value = _response(
            json_body={"data": [ARTWORK_ITEM, ARTWORK_ITEM], "pagination": {"total": "5", "has_more": True}}
        )

        page = service.list_page(ARTWORKS, cursor=2)

        assert session.request.call_args.kwargs["params"]["offset"] == "2"
        assert page.next_cursor == 4
        assert page.total == 5

    def test_last_page(self, service, session):
        session.request.return_value = _response(
            json_body={"data": [ARTWORK_ITEM], "pagination": {"total": 5, "has_more": False}}
        )

        page = service.list_page(ARTWORKS, cursor=4)

        assert page.next_cursor is None

    def test_has_more_with_empty_page_stops(self, service, session):
        session.request.return_value = _response(
            json_body={"data": [], "pagination": {"has_more": True}}
        )

        page = service.list_page(ARTWORKS)

        assert page.records == []
        assert page.next_cursor is None
        assert page.total is None

    def test_artwork_summary_mapping(self, service, session):
        session.request.return_value = _response(json_body={"data": [ARTWORK_ITEM]})

        record = service.list_page(ARTWORKS).records[0]

        assert record.id == "101"
        assert record.updated_at == "2024-01-02T10:00:00Z"
        assert record.summary["title"] == "Blue Study"
        assert record.summary["artist_ids"] == [7]
        assert record.links == [{"artist_id": 7, "display_name": "A. Painter"}]
        assert record.summary["arternal_created_at"] == "2023-05-01T09:00:00Z"
        assert record.summary["arternal_updated_at"] == "2024-01-02T10:00:00Z"
        assert record.summary["dimensions"] is None
        assert set(record.summary) == set(ARTWORKS.summary_columns)

    def test_artist_years_stored_as_text(self, service, session):
        session.request.return_value = _response(
            json_body={"data": [{"id": 7, "display_name": "A. Painter", "birth_year": 1930, "death_year": None}]}
        )

        record = service.list_page(ARTISTS).records[0]

        assert session.request.call_args.kwargs["params"].get("type") is None
        assert record.summary["birth_year"] == "1930"
        assert record.summary["death_year"] is None

    def test_missing_data_list_is_fatal(self, service, session):
        session.request.return_value = _response(json_body={"error": "nope"})

        with pytest.raises(FatalFetchError, match="missing 'data' list"):
            service.list_page(ARTWORKS)

    def test_non_json_body_is_fatal(self, service, session):
        session.request.return_value = _response(json_body=None, text="<html>")

        with pytest.raises(FatalFetchError, match="non-JSON"):
            service.list_page(ARTWORKS)


class TestFetchDetail:
    def test_artwork_images(self, service, session):
        session.request.return_value = _response(
            json_body={"data": {"id": 101, "images": [{"url": "https://img/1.jpg"}]}}
        )

        detail = service.fetch_detail(ARTWORKS, "101")

        assert session.request.call_args.kwargs["url"] == "https://api.test/api/v1/inventory/101"
        assert detail.id == "101"
        assert detail.payload == {"images": [{"url": "https://img/1.jpg"}]}

    def test_contact_detail_columns(self, service, session):
        session.request.return_value = _response(
            json_body={"data": {"id": 5, "tags": ["vip"], "notes": None}}
        )

        detail = service.fetch_detail(CONTACTS, "5")

        assert detail.payload == {
            "tags": ["vip"],
            "notes": [],
            "recent_transactions": [],
            "recent_activities": [],
        }

    def test_not_found(self, service, session):
        """Test 404 maps to NotFoundError and is not retried."""
        session.request.return_value = _response(404, json_body={"error": "Not found"})

        with pytest.raises(NotFoundError) as exc_info:
            service.fetch_detail(ARTWORKS, "999")

        assert exc_info.value.message == "not found"
        assert exc_info.value.status_code == 404
        assert session.request.call_count == 1

    def test_non_object_data_is_fatal(self, service, session):
        session.request.return_value = _response(json_body={"data": []})

        with pytest.raises(FatalFetchError):
            service.fetch_detail(ARTWORKS, "101")


class TestErrorsAndRetry:
    def test_missing_api_key(self, session):
        service = ArternalService(api_key="", session=session, rate_limiter=MagicMock())

        with pytest.raises(FatalFetchError, match="ARTERNAL_API_KEY"):
            service.list_page(ARTWORKS)
        session.request.assert_not_called()

    def test_unauthorized_is_fatal_and_not_retried(self, service, session):
        session.request.return_value = _response(401, json_body={"message": "Invalid API key"})

        with pytest.raises(FatalFetchError) as exc_info:
            service.list_page(ARTWORKS)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Arternal API error 401: Invalid API key"
        assert session.request.call_count == 1

    @patch("catalog_sync.services.arternal_service.time")
    def test_server_error_retried_then_succeeds(self, mock_time, service, session):
        session.request.side_effect = [
            _response(503, text="Service Unavailable"),
            _response(json_body={"data": [ARTWORK_ITEM]}),
        ]

        page = service.list_page(ARTWORKS)

        assert len(page.records) == 1
        assert session.request.call_count == 2
        mock_time.sleep.assert_called_once_with(1)

    @patch("catalog_sync.services.arternal_service.time")
    def test_rate_limited_honours_retry_after(self, mock_time, service, session):
        session.request.side_effect = [
            _response(429, json_body={"error": "Too many requests"}, headers={"Retry-After": "3"}),
            _response(json_body={"data": {"id": 1}}),
        ]

        service.fetch_detail(ARTWORKS, "1")

        mock_time.sleep.assert_called_once_with(3.0)

    @patch("catalog_sync.services.arternal_service.time")
    def test_network_error_retried(self, mock_time, service, session):
        session.request.side_effect = [
            requests.ConnectionError("connection reset"),
            _response(json_body={"data": {"id": 1}}),
        ]

        detail = service.fetch_detail(ARTWORKS, "1")

        assert detail.id == "1"
        assert session.request.call_count == 2

    @patch("catalog_sync.services.arternal_service.time")
    def test_retries_exhausted(self, mock_time, service, session):
        """Test exponential backoff then TransientFetchError after max_retries."""
        session.request.return_value = _response(500, json_body={"error": "Internal error"})

        with pytest.raises(TransientFetchError) as exc_info:
            service.list_page(ARTWORKS)

        assert session.request.call_count == 3
        assert mock_time.sleep.call_args_list == [call(1), call(2)]
        assert exc_info.value.status_code == 500
        assert "gave up after 3 attempts" in exc_info.value.message

    @patch("catalog_sync.services.arternal_service.time")
    def test_backoff_capped(self, mock_time, session):
        service = ArternalService(
            api_key="k",
            session=session,
            max_retries=5,
            backoff_base_sec=4,
            backoff_max_sec=10,
            rate_limiter=MagicMock(),
        )
        session.request.return_value = _response(502, text="Bad Gateway")

        with pytest.raises(TransientFetchError):
            service.fetch_detail(ARTWORKS, "1")

        assert [c.args[0] for c in mock_time.sleep.call_args_list] == [4, 8, 10, 10, 10]

    def test_every_attempt_acquires_rate_limit_slot(self, session):
        limiter = MagicMock()
        service = ArternalService(api_key="k", session=session, max_retries=1, rate_limiter=limiter)
        session.request.side_effect = [
            _response(503, text="busy"),
            _response(json_body={"data": {"id": 1}}),
        ]

        with patch("catalog_sync.services.arternal_service.time"):
            service.fetch_detail(ARTWORKS, "1")

        assert limiter.acquire.call_count == 2


class TestRateLimiter:
    @patch("catalog_sync.services.arternal_service.time")
    def test_under_limit_does_not_sleep(self, mock_time):
        mock_time.monotonic.side_effect = [0.0, 0.1, 0.2]
        limiter = RateLimiter(max_requests=3, window_sec=10)

        for _ in range(3):
            limiter.acquire()

        mock_time.sleep.assert_not_called()

    @patch("catalog_sync.services.arternal_service.time")
    def test_full_window_sleeps_until_oldest_expires(self, mock_time):
        mock_time.monotonic.side_effect = [0.0, 0.0, 1.0, 10.0]
        limiter = RateLimiter(max_requests=2, window_sec=10)

        limiter.acquire()
        limiter.acquire()
        limiter.acquire()

        mock_time.sleep.assert_called_once_with(9.0)
