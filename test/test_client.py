import pytest
import requests

from gitforge.errors import ApiError
from gitforge.providers.client import GERRIT_XSSI_PREFIX, RestClient

from conftest import FakeResponse, FakeSession

BASE = "https://api.example"


def test_get_decodes_json(session):
    session.add("GET", f"{BASE}/user", FakeResponse(payload={"login": "alice"}))
    client = RestClient(BASE, session=session)
    assert client.get("/user") == {"login": "alice"}


def test_absolute_urls_are_used_as_is(session):
    session.add("GET", "https://other.example/page2", FakeResponse(payload=[1]))
    client = RestClient(BASE, session=session)
    assert client.get("https://other.example/page2") == [1]


def test_non_2xx_raises_api_error(session):
    session.add("GET", f"{BASE}/missing", FakeResponse(404, text="gone"))
    client = RestClient(BASE, session=session)
    with pytest.raises(ApiError) as e:
        client.get("/missing")
    assert e.value.status_code == 404
    assert e.value.is_not_found()
    assert e.value.body == "gone"


def test_transport_errors_become_api_errors():
    class Broken(FakeSession):
        def request(self, *args, **kwargs):
            raise requests.ConnectionError("refused")

    client = RestClient(BASE, session=Broken())
    with pytest.raises(ApiError) as e:
        client.get("/user")
    assert e.value.status_code == 0


def test_empty_body_decodes_to_none(session):
    session.add("DELETE", f"{BASE}/thing", FakeResponse(204))
    assert RestClient(BASE, session=session).delete("/thing") is None


def test_xssi_prefix_is_stripped(session):
    session.add("GET", f"{BASE}/projects/", FakeResponse(text=GERRIT_XSSI_PREFIX + '\n{"a": {"id": "a"}}'))
    client = RestClient(BASE, session=session, strip_prefix=GERRIT_XSSI_PREFIX)
    assert client.get("/projects/") == {"a": {"id": "a"}}


def test_headers_and_auth_are_set_on_session(session):
    RestClient(BASE, headers={"Authorization": "token x"}, auth=("u", "p"), session=session)
    assert session.headers["Authorization"] == "token x"
    assert session.auth == ("u", "p")


@pytest.mark.parametrize("pages,size", [(1, 1), (1, 5), (3, 4), (5, 2)])
def test_get_all_follows_link_headers(session, pages, size):
    for page in range(pages):
        url = f"{BASE}/items" if page == 0 else f"{BASE}/items?page={page + 1}"
        links = {"next": {"url": f"{BASE}/items?page={page + 2}"}} if page < pages - 1 else {}
        items = [{"id": page * size + i} for i in range(size)]
        session.add("GET", url, FakeResponse(payload=items, links=links))

    client = RestClient(BASE, session=session)
    items = client.get_all("/items")

    assert [i["id"] for i in items] == list(range(pages * size))
    assert len(session.calls) == pages
    assert session.calls[0]["params"] == {"per_page": 100}
    assert all(c["params"] is None for c in session.calls[1:])


def test_get_all_with_items_key(session):
    session.add("GET", f"{BASE}/search", FakeResponse(
        payload={"items": [1, 2]}, links={"next": {"url": f"{BASE}/search?page=2"}}))
    session.add("GET", f"{BASE}/search?page=2", FakeResponse(payload={"items": [3]}))
    assert RestClient(BASE, session=session).get_all("/search", items_key="items") == [1, 2, 3]
