"""
Unit tests for CursorLifecycleManager and ScrollContext.

Covers open/advance validation, best-effort close and the release-once
scope.
"""

import pytest

from conftest import BASE_URL, FakeScrollServer, FakeTransport, make_docs
from scroll_exporter.config import RetryConfig
from scroll_exporter.scroll.cursor import CursorLifecycleManager
from scroll_exporter.scroll.fetcher import BatchFetcher
from scroll_exporter.scroll.models import QuerySpec
from scroll_exporter.utils.exceptions import (
    FetchError,
    InvalidCursorError,
    OpenError,
    TransportError,
)

QUERY = QuerySpec(index="sample_data", page_size=10, fields=("title",))


@pytest.fixture
def manager(fake_transport, record_sleep) -> CursorLifecycleManager:
    fetcher = BatchFetcher(
        fake_transport,
        base_url=BASE_URL,
        retry_config=RetryConfig(max_attempts=3, base_delay=2.0),
        sleep=record_sleep,
    )
    return CursorLifecycleManager(fake_transport, fetcher, base_url=BASE_URL)


class TestOpen:
    """Test opening a scroll."""

    def test_open_returns_scroll_id_and_first_batch(self, manager, server):
        scroll_id, batch = manager.open(QUERY)

        assert scroll_id == "scroll-1"
        assert batch.count == 10
        assert batch.hits[0]["_source"]["title"] == "Document 0"

    def test_open_request_shape(self, manager, server):
        manager.open(QUERY)

        request = server.requests[0]
        assert request["method"] == "GET"
        assert request["url"] == f"{BASE_URL}/sample_data/_search?scroll=5m"
        assert request["body"] == {"size": 10, "_source": ["title"], "sort": ["_doc"]}

    def test_open_non_200_raises_open_error(self, manager, server):
        server.open_fault = (404, '{"error": "index_not_found_exception"}')
        with pytest.raises(OpenError):
            manager.open(QUERY)

    def test_open_transport_error_raises_open_error(self, manager, server):
        server.open_fault = TransportError("connection refused")
        with pytest.raises(OpenError) as exc_info:
            manager.open(QUERY)
        assert isinstance(exc_info.value.cause, TransportError)

    def test_open_not_retried(self, manager, server, sleeps):
        server.open_fault = (503, "unavailable")
        with pytest.raises(OpenError):
            manager.open(QUERY)
        assert len(server.requests) == 1
        assert sleeps == []

    @pytest.mark.parametrize("body", [
        '{"hits": {"hits": []}}',
        '{"_scroll_id": null, "hits": {"hits": []}}',
        '{"_scroll_id": "null", "hits": {"hits": []}}',
        '{"_scroll_id": "", "hits": {"hits": []}}',
    ])
    def test_open_without_valid_scroll_id(self, manager, server, body):
        server.open_fault = (200, body)
        with pytest.raises(OpenError, match="valid scroll ID"):
            manager.open(QUERY)

    def test_open_malformed_body(self, manager, server):
        server.open_fault = (200, '{"_scroll_id": "s"}')
        with pytest.raises(OpenError):
            manager.open(QUERY)


class TestAdvance:
    """Test advancing a scroll."""

    def test_advance_returns_new_scroll_id(self, manager):
        scroll_id, _ = manager.open(QUERY)
        new_id, batch = manager.advance(scroll_id)

        assert new_id != scroll_id
        assert batch.hits[0]["_source"]["title"] == "Document 10"

    def test_advance_without_scroll_id_is_invalid_cursor(self, manager, server, sleeps):
        server.invalid_scroll_on_advance = {1}
        scroll_id, _ = manager.open(QUERY)

        with pytest.raises(InvalidCursorError):
            manager.advance(scroll_id)

        # Not retried: exactly one continuation request
        assert len(server.advance_requests) == 1
        assert sleeps == []

    def test_advance_exhaustion_raises_fetch_error(self, manager, server):
        server.advance_faults = {1: [(503, "unavailable")] * 3}
        scroll_id, _ = manager.open(QUERY)

        with pytest.raises(FetchError):
            manager.advance(scroll_id)


class TestClose:
    """Test best-effort close."""

    def test_close_sends_delete(self, manager, server):
        assert manager.close("scroll-9") is True

        request = server.clear_requests[0]
        assert request["url"] == f"{BASE_URL}/_search/scroll"
        assert request["body"] == {"scroll_id": ["scroll-9"]}

    def test_close_suppresses_http_errors(self, manager, server):
        server.clear_status = 500
        assert manager.close("scroll-9") is False

    def test_close_suppresses_transport_errors(self, manager, server):
        server.clear_fault = TransportError("connection reset")
        assert manager.close("scroll-9") is False

    def test_close_suppresses_unexpected_errors(self, manager, server):
        server.clear_fault = RuntimeError("decoder blew up")
        assert manager.close("scroll-9") is False

    def test_close_treats_404_as_released(self, manager, server):
        server.clear_status = 404
        assert manager.close("scroll-9") is True


class TestScrollContext:
    """Test the release-once scope."""

    def test_scope_releases_last_scroll_id(self, manager, server):
        with manager.scroll(QUERY) as scroll:
            scroll.advance()
            scroll.advance()
            last = scroll.scroll_id

        assert server.cleared == [last]
        assert scroll.released
        assert scroll.release_confirmed is True

    def test_scope_releases_on_exception(self, manager, server):
        with pytest.raises(RuntimeError):
            with manager.scroll(QUERY) as scroll:
                raise RuntimeError("boom")

        assert server.cleared == ["scroll-1"]

    def test_scope_releases_on_keyboard_interrupt(self, manager, server):
        with pytest.raises(KeyboardInterrupt):
            with manager.scroll(QUERY) as scroll:
                scroll.advance()
                raise KeyboardInterrupt

        assert server.cleared == ["scroll-2"]

    def test_release_is_idempotent(self, manager, server):
        with manager.scroll(QUERY) as scroll:
            scroll.release()
        scroll.release()

        assert len(server.clear_requests) == 1

    def test_failed_advance_keeps_previous_scroll_id(self, manager, server):
        server.advance_faults = {2: [(503, "unavailable")] * 3}

        with pytest.raises(FetchError):
            with manager.scroll(QUERY) as scroll:
                scroll.advance()
                scroll.advance()

        assert scroll.scroll_id == "scroll-2"
        assert server.cleared == ["scroll-2"]

    def test_advance_after_release_fails(self, manager):
        with manager.scroll(QUERY) as scroll:
            pass
        with pytest.raises(RuntimeError):
            scroll.advance()

    def test_open_failure_yields_no_scope(self, manager, server):
        server.open_fault = (500, "err")
        with pytest.raises(OpenError):
            manager.scroll(QUERY)
        assert server.clear_requests == []

    def test_each_advance_uses_latest_scroll_id(self):
        server = FakeScrollServer(make_docs(35))
        transport = FakeTransport(server)
        fetcher = BatchFetcher(transport, base_url=BASE_URL, sleep=lambda d: None)
        manager = CursorLifecycleManager(transport, fetcher, base_url=BASE_URL)

        seen = []
        with manager.scroll(QUERY) as scroll:
            seen.append(scroll.scroll_id)
            for _ in range(4):
                scroll.advance()
                seen.append(scroll.scroll_id)

        sent = [r["body"]["scroll_id"] for r in server.advance_requests]
        assert sent == seen[:-1]
        assert len(set(seen)) == len(seen)
