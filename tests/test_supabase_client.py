import pytest
import requests

from epaper.content_store.supabase_client import SupabaseClient, quote_list
from epaper.errors import SourceFetchFailure

from conftest import FakeSession, make_client, make_response


def test_quote_list_escapes_quotes() -> None:
    assert quote_list(["খেলাধুলা", 'say "hi"']) == '("খেলাধুলা","say \\"hi\\"")'


def test_select_builds_postgrest_query() -> None:
    session = FakeSession(make_response(body=[{"id": 1}]))
    rows, total = make_client(session).select(
        "articles",
        columns="*,categories!inner(name)",
        filters=[("status", "eq.published")],
        order=[("is_featured", True), ("name", False)],
        limit=10,
        offset=20,
    )

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://project.supabase.co/rest/v1/articles"
    assert kwargs["params"] == [
        ("select", "*,categories!inner(name)"),
        ("status", "eq.published"),
        ("order", "is_featured.desc,name.asc"),
        ("limit", "10"),
        ("offset", "20"),
    ]
    assert kwargs["headers"]["apikey"] == "service-key"
    assert kwargs["headers"]["Authorization"] == "Bearer service-key"
    assert kwargs["timeout"] == 5
    assert rows == [{"id": 1}]
    assert total is None


def test_select_with_count_reads_content_range() -> None:
    session = FakeSession(make_response(body=[{"id": 1}], headers={"Content-Range": "0-0/42"}))
    _, total = make_client(session).select("epapers", count=True)

    assert total == 42
    assert session.calls[0][2]["headers"]["Prefer"] == "count=exact"


def test_insert_returns_stored_row() -> None:
    session = FakeSession(make_response(201, body=[{"id": 9, "title": "T"}]))
    row = make_client(session).insert("epapers", {"title": "T"})

    method, _, kwargs = session.calls[0]
    assert method == "POST"
    assert kwargs["json"] == {"title": "T"}
    assert kwargs["headers"]["Prefer"] == "return=representation"
    assert row == {"id": 9, "title": "T"}


def test_update_requires_filters() -> None:
    session = FakeSession()
    with pytest.raises(SourceFetchFailure):
        make_client(session).update("epapers", {"is_latest": False}, [])
    assert session.calls == []


@pytest.mark.parametrize("session", [
    FakeSession(make_response(500, body={"message": "boom"})),
    FakeSession(error=requests.exceptions.Timeout("slow")),
    FakeSession(error=requests.exceptions.ConnectionError("down")),
])
def test_request_errors_become_source_fetch_failures(session) -> None:
    with pytest.raises(SourceFetchFailure):
        make_client(session).select("articles")


def test_unconfigured_client_fails_without_request() -> None:
    session = FakeSession()
    client = SupabaseClient("", "", session=session)
    client.url, client.key = "", ""
    with pytest.raises(SourceFetchFailure, match="not configured"):
        client.select("articles")
    assert session.calls == []


def test_server_error_response_is_not_replaced_by_default() -> None:
    error_response = make_response(500, body={"message": "boom"})
    session = FakeSession(error_response)

    assert session.response is error_response
    with pytest.raises(SourceFetchFailure, match="500"):
        make_client(session).select("articles")


def test_non_json_body_becomes_source_fetch_failure() -> None:
    session = FakeSession(make_response(content=b"<html>maintenance</html>",
                                        headers={"Content-Type": "text/html"}))
    with pytest.raises(SourceFetchFailure, match="Invalid JSON from articles"):
        make_client(session).select("articles")


def test_unexpected_json_shape_becomes_source_fetch_failure() -> None:
    session = FakeSession(make_response(body={"rows": []}))
    with pytest.raises(SourceFetchFailure, match="Unexpected response shape"):
        make_client(session).select("categories")


def test_insert_with_non_json_body_fails() -> None:
    session = FakeSession(make_response(201, content=b"created"))
    with pytest.raises(SourceFetchFailure):
        make_client(session).insert("epapers", {"title": "T"})
