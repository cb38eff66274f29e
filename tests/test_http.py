import pytest
import requests

from emojimap.http import (
    HttpClient,
    InvalidResponseError,
    NoConnectionError,
    RateLimitedError,
    RequestMetrics,
    RequestTimeoutError,
    ServerError,
    UnauthorizedError,
)

URL = "https://backend.test/api/places/search"


class FakeResponse:
    def __init__(self, payload=None, status_code=200, headers=None, text=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text or ""

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(outcomes, retry_max=1, auth_token=None):
    client = HttpClient(
        timeout=1,
        retry_max=retry_max,
        backoff_base=0.0,
        backoff_max=0.0,
        auth_token=auth_token,
    )
    client.session = FakeSession(outcomes)
    return client


def test_post_json_returns_payload_and_sends_headers():
    client = make_client([FakeResponse({"results": []})], auth_token="secret")

    data = client.post_json(URL, {"radius": 5000})

    assert data == {"results": []}
    call = client.session.calls[0]
    assert call["data"] == '{"radius": 5000}'
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["timeout"] == 1


def test_retries_gateway_errors_then_succeeds():
    client = make_client(
        [FakeResponse(status_code=503, headers={"Retry-After": "0"}), FakeResponse({"results": []})],
        retry_max=2,
    )
    assert client.post_json(URL, {}) == {"results": []}
    assert len(client.session.calls) == 2


def test_gateway_error_without_retries_raises_server_error():
    client = make_client([FakeResponse(status_code=502, text="bad gateway")])
    with pytest.raises(ServerError) as excinfo:
        client.post_json(URL, {})
    assert excinfo.value.status_code == 502
    assert excinfo.value.body == "bad gateway"


@pytest.mark.parametrize(
    "status, error_type",
    [(401, UnauthorizedError), (429, RateLimitedError), (400, ServerError), (500, ServerError)],
)
def test_status_codes_map_to_typed_errors(status, error_type):
    client = make_client([FakeResponse(status_code=status)], retry_max=3)
    with pytest.raises(error_type):
        client.post_json(URL, {})
    assert len(client.session.calls) == 1


@pytest.mark.parametrize(
    "exc, error_type",
    [
        (requests.Timeout("slow"), RequestTimeoutError),
        (requests.ConnectionError("down"), NoConnectionError),
    ],
)
def test_transport_exceptions_map_to_typed_errors(exc, error_type):
    client = make_client([exc])
    with pytest.raises(error_type):
        client.post_json(URL, {})


def test_get_json_sends_query_params_without_content_type():
    client = make_client([FakeResponse({"data": ["u1"]})], auth_token="secret")

    data = client.get_json("https://backend.test/api/places/photos", {"id": "abc"})

    assert data == {"data": ["u1"]}
    call = client.session.calls[0]
    assert call["params"] == {"id": "abc"}
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert "Content-Type" not in call["headers"]


def test_get_json_shares_retry_and_error_mapping():
    client = make_client(
        [FakeResponse(status_code=504), FakeResponse(status_code=404, text="missing")],
        retry_max=2,
    )
    with pytest.raises(ServerError) as excinfo:
        client.get_json("https://backend.test/api/places/details", {"id": "abc"})
    assert excinfo.value.status_code == 404
    assert len(client.session.calls) == 2


def test_transport_exception_retried():
    client = make_client([requests.ConnectionError("down"), FakeResponse({"results": []})], retry_max=2)
    assert client.post_json(URL, {}) == {"results": []}


def test_non_json_and_non_object_bodies_are_invalid():
    client = make_client([FakeResponse(ValueError("nope")), FakeResponse([1, 2])])
    with pytest.raises(InvalidResponseError):
        client.post_json(URL, {})
    with pytest.raises(InvalidResponseError):
        client.post_json(URL, {})


def test_error_messages_are_readable():
    assert str(RateLimitedError()) == "Rate limit exceeded"
    assert str(NoConnectionError("offline")) == "No internet connection: offline"
    assert str(ServerError(500)) == "Server error: status code 500"


def test_request_metrics_counters():
    metrics = RequestMetrics()
    metrics.inc_network("nearby")
    metrics.inc_network("filters")
    metrics.inc_cache_hit("categories")
    metrics.inc_network("details")
    metrics.inc_cache_hit("photos")

    assert metrics.network_total == 3
    assert metrics.as_dict()["cache_hits_photos"] == 1
    assert metrics.as_dict()["cache_hits_categories"] == 1
    with pytest.raises(ValueError):
        metrics.inc_network("routes")
