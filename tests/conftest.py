"""
Shared pytest fixtures for scroll exporter tests.

Provides an in-memory scroll server, a transport that talks to it directly,
test configurations, and sample documents.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx
import pytest

# Add project root to path for scroll_exporter imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from scroll_exporter.config import Config, ApiConfig, QueryConfig, RetryConfig, OutputConfig
from scroll_exporter.transport.client import HttpTransport, TransportResponse

BASE_URL = "http://es.test:9200"


# =============================================================================
# In-memory scroll server
# =============================================================================

class FakeScrollServer:
    """
    Minimal search service with scroll semantics.

    Every response carries a fresh scroll ID; only the most recent one is
    accepted. Faults can be scripted per advance number (1-based).
    """

    def __init__(self, docs: List[Dict[str, Any]], index: str = "sample_data"):
        self.docs = docs
        self.index = index
        self.requests: List[Dict[str, Any]] = []
        self.cleared: List[str] = []
        self.opened = 0
        self.advances_served = 0
        self.advance_faults: Dict[int, List[Any]] = {}
        self.open_fault: Optional[Any] = None
        self.invalid_scroll_on_advance: set = set()
        self.clear_status = 200
        self.clear_fault: Optional[Exception] = None
        self._next_id = 0
        self._positions: Dict[str, int] = {}
        self._page_size = 10

    # -- helpers -------------------------------------------------------------

    def _new_scroll_id(self, position: int) -> str:
        self._next_id += 1
        scroll_id = f"scroll-{self._next_id}"
        self._positions = {scroll_id: position}
        return scroll_id

    def _page(self, start: int) -> List[Dict[str, Any]]:
        page = self.docs[start:start + self._page_size]
        return [{"_index": self.index, "_id": str(start + i), "_source": doc} for i, doc in enumerate(page)]

    @staticmethod
    def _response(hits, scroll_id, total) -> str:
        body = {"hits": {"total": {"value": total, "relation": "eq"}, "hits": hits}}
        if scroll_id is not None:
            body["_scroll_id"] = scroll_id
        return json.dumps(body)

    @staticmethod
    def _fault(fault) -> Tuple[int, str]:
        if isinstance(fault, Exception):
            raise fault
        return fault

    # -- request handling ----------------------------------------------------

    def handle(self, method: str, url: str, body: Optional[Dict[str, Any]]) -> Tuple[int, str]:
        self.requests.append({"method": method, "url": url, "body": body})
        parts = urlsplit(url)

        if parts.path == "/_search/scroll" and method == "DELETE":
            if self.clear_fault is not None:
                raise self.clear_fault
            self.cleared.extend(body["scroll_id"])
            for scroll_id in body["scroll_id"]:
                self._positions.pop(scroll_id, None)
            return self.clear_status, json.dumps({"succeeded": True, "num_freed": 1})

        if parts.path == "/_search/scroll":
            number = self.advances_served + 1
            faults = self.advance_faults.get(number)
            if faults:
                return self._fault(faults.pop(0))

            scroll_id = body["scroll_id"]
            if scroll_id not in self._positions:
                return 404, json.dumps({"error": "search_context_missing_exception"})

            position = self._positions[scroll_id]
            hits = self._page(position)
            self.advances_served += 1
            new_id = self._new_scroll_id(position + len(hits))
            if number in self.invalid_scroll_on_advance:
                new_id = None
            return 200, self._response(hits, new_id, len(self.docs))

        if parts.path == f"/{self.index}/_search":
            if self.open_fault is not None:
                return self._fault(self.open_fault)
            self.opened += 1
            self._page_size = body["size"]
            hits = self._page(0)
            return 200, self._response(hits, self._new_scroll_id(len(hits)), len(self.docs))

        return 404, json.dumps({"error": "index_not_found_exception"})

    @property
    def advance_requests(self) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == "GET" and urlsplit(r["url"]).path == "/_search/scroll"]

    @property
    def clear_requests(self) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == "DELETE"]


class FakeTransport:
    """Transport stand-in that routes requests straight to a FakeScrollServer."""

    def __init__(self, server: FakeScrollServer):
        self.server = server
        self.closed = False

    def send(self, method, url, headers=None, body=None) -> TransportResponse:
        status, text = self.server.handle(method, url, body)
        return TransportResponse(body=text, status_code=status)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def mock_transport_for(server: FakeScrollServer) -> httpx.MockTransport:
    """httpx MockTransport serving requests from a FakeScrollServer."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        status, text = server.handle(request.method, str(request.url), body)
        return httpx.Response(status, text=text, headers={"Content-Type": "application/json"})

    return httpx.MockTransport(handler)


# =============================================================================
# Fixtures
# =============================================================================

def make_docs(count: int) -> List[Dict[str, Any]]:
    return [{"title": f"Document {i}", "year": 2000 + i} for i in range(count)]


@pytest.fixture
def sample_docs() -> List[Dict[str, Any]]:
    """25 documents with titles, as in the standard K=25/P=10 scenario."""
    return make_docs(25)


@pytest.fixture
def server(sample_docs) -> FakeScrollServer:
    return FakeScrollServer(sample_docs)


@pytest.fixture
def fake_transport(server) -> FakeTransport:
    return FakeTransport(server)


@pytest.fixture
def sleeps() -> List[float]:
    """Records backoff sleeps instead of sleeping."""
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def test_config(tmp_path) -> Config:
    """Create a test configuration pointing at the fake server."""
    return Config(
        api=ApiConfig(base_url=BASE_URL, timeout=5.0, connect_timeout=2.0),
        query=QueryConfig(index="sample_data", page_size=10, fields=["title"]),
        retry=RetryConfig(max_attempts=3, base_delay=2.0),
        output=OutputConfig(path=str(tmp_path / "titles.ndjson")),
    )


@pytest.fixture
def failing_transport() -> HttpTransport:
    """Real HttpTransport whose every request fails at the connection level."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return HttpTransport(ApiConfig(base_url=BASE_URL), client=httpx.Client(transport=httpx.MockTransport(handler)))


def read_ndjson(path) -> List[Any]:
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]
