import pytest
import requests

from conftest import FakeHttp, make_response
from udise_dashboard.api_client import (
    ApiClient,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
    build_http_session,
)
from udise_dashboard.models import HierarchicalFilter, QueryFilter
from udise_dashboard.session import MemoryTokenStore, Session


def _client(*responses, token=None):
    session = Session(MemoryTokenStore(token))
    if token:
        session.hydrate()
    http = FakeHttp(*responses)
    return ApiClient(session, base_url="http://api.test/", timeout=5, http=http), http


def test_http_session_retries_only_idempotent_methods():
    http = build_http_session(retries=2)
    retry = http.get_adapter("http://api.test").max_retries

    assert retry.total == 2
    assert "GET" in retry.allowed_methods
    assert "POST" not in retry.allowed_methods
    assert set(retry.status_forcelist) == {502, 503, 504}
    assert http.headers["Content-Type"] == "application/json"


def test_list_schools_sends_filter_params_and_bearer_token():
    client, http = _client(
        make_response(200, {
            "data": [{"_id": "1", "udise_code": "U1", "school_name": "GPS Khagaul"}],
            "pagination": {"currentPage": 2, "totalPages": 3, "totalRecords": 41, "hasNextPage": True,
                           "hasPrevPage": True, "limit": 20},
        }),
        token="tok",
    )

    page = client.list_schools(QueryFilter(state="Bihar", search="gps", page=2))

    call = http.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://api.test/data"
    assert call["params"] == {"state": "Bihar", "search": "gps", "page": 2, "limit": 20}
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["timeout"] == 5
    assert page.schools[0].school_name == "GPS Khagaul"
    assert page.pagination.total_records == 41


def test_list_schools_treats_404_as_empty_page():
    client, _ = _client(make_response(404, {"error": "No schools found"}))

    page = client.list_schools(QueryFilter(page=2))

    assert page.is_empty
    assert page.pagination.total_records == 0
    assert page.pagination.current_page == 2


def test_filter_options_never_send_village():
    client, http = _client(make_response(200, {"states": ["Bihar"], "districts": ["Patna"]}))

    options = client.get_filter_options(
        HierarchicalFilter(state="Bihar", district="Patna", block="Danapur", village="Khagaul")
    )

    assert http.calls[0]["params"] == {"state": "Bihar", "district": "Patna", "block": "Danapur"}
    assert options.states == ["Bihar"]


def test_distribution_unwraps_data_envelope():
    client, _ = _client(make_response(200, {
        "data": {"managementTypeDistribution": [{"_id": "Government", "count": 4}]}
    }))

    data = client.get_distribution(HierarchicalFilter())

    assert data.management_type[0].count == 4


def test_401_clears_session_and_raises():
    client, _ = _client(make_response(401, {"error": "Token expired"}), token="stale")

    with pytest.raises(AuthenticationError, match="Token expired"):
        client.get_distribution(HierarchicalFilter())

    assert client.session.token is None
    assert client.session.store.load() is None


def test_validation_error_exposes_field_messages():
    client, _ = _client(make_response(400, {
        "error": "Validation failed",
        "details": [
            {"field": "udise_code", "message": "UDISE code already exists"},
            {"path": ["contact_info", "email"], "msg": "Invalid email"},
            "free text",
        ],
    }))

    with pytest.raises(ValidationError) as excinfo:
        client.create_school({"udise_code": "dup"})

    error = excinfo.value
    assert error.status_code == 400
    assert error.field_errors == {
        "udise_code": "UDISE code already exists",
        "contact_info.email": "Invalid email",
    }
    assert error.messages == ["free text"]


@pytest.mark.parametrize(
    "status, error_type",
    [(404, NotFoundError), (500, ServerError), (503, ServerError), (403, ApiError), (422, ValidationError)],
)
def test_status_codes_map_to_error_types(status, error_type):
    client, _ = _client(make_response(status, None, reason="Nope"))

    with pytest.raises(error_type) as excinfo:
        client.get_school("abc")

    assert excinfo.value.status_code == status
    assert excinfo.value.message == "Nope"


@pytest.mark.parametrize(
    "exc",
    [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("refused")],
)
def test_transport_failures_become_network_errors(exc):
    client, _ = _client(exc)

    with pytest.raises(NetworkError):
        client.list_schools(QueryFilter())


def test_write_operations_use_record_paths():
    saved = {"_id": "abc", "udise_code": "U9", "school_name": "New"}
    client, http = _client(
        make_response(201, {"data": saved}),
        make_response(200, {"school": saved}),
        make_response(200, {"message": "Deleted", "data": saved}),
    )

    assert client.create_school({"udise_code": "U9"}).id == "abc"
    assert client.update_school("abc", {"school_name": "New"}).school_name == "New"
    assert client.delete_school("abc").udise_code == "U9"

    assert [(c["method"], c["url"]) for c in http.calls] == [
        ("POST", "http://api.test/data"),
        ("PUT", "http://api.test/data/abc"),
        ("DELETE", "http://api.test/data/abc"),
    ]


def test_delete_without_record_body_returns_none():
    client, _ = _client(make_response(200, {"message": "Deleted"}))

    assert client.delete_school("abc") is None


def test_login_binds_session():
    client, http = _client(make_response(200, {
        "message": "Login successful",
        "token": "jwt-1",
        "user": {"id": "u1", "email": "a@b.in", "role": "admin"},
    }))

    auth = client.login("a@b.in", "secret")

    assert http.calls[0]["json"] == {"email": "a@b.in", "password": "secret"}
    assert auth.token == "jwt-1"
    assert client.session.is_authenticated
    assert client.session.user.role == "admin"
    assert client.session.store.load() == "jwt-1"


def test_login_without_token_is_an_authentication_error():
    client, _ = _client(make_response(200, {"message": "ok"}))

    with pytest.raises(AuthenticationError):
        client.signup("a@b.in", "secret")

    assert not client.session.is_authenticated


def test_restore_confirms_stored_token():
    client, http = _client(make_response(200, {"user": {"id": "u1", "email": "a@b.in"}}))
    client.session.store.save("jwt-1")

    user = client.restore()

    assert user.email == "a@b.in"
    assert client.session.token == "jwt-1"
    assert http.calls[0]["headers"]["Authorization"] == "Bearer jwt-1"


def test_restore_drops_rejected_token():
    client, _ = _client(make_response(500, {"error": "boom"}))
    client.session.store.save("jwt-1")

    assert client.restore() is None
    assert not client.session.is_authenticated
    assert client.session.store.load() is None


def test_restore_without_stored_token_makes_no_request():
    client, http = _client()

    assert client.restore() is None
    assert http.calls == []


def test_logout_clears_session_even_when_server_fails():
    client, _ = _client(make_response(500, {"error": "boom"}), token="jwt-1")

    client.logout()

    assert not client.session.is_authenticated
    assert client.session.store.load() is None
