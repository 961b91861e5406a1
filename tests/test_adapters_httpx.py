import json

import httpx
import pytest

from fetchrest import AuthRecoveryCoordinator, FetchRest, HttpxTransport, MultipartForm, ResponseError


def _mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_httpx_transport_sends_wire_options():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(201, json={"id": 7})

    async with _mock_client(handler) as client:
        transport = HttpxTransport(client)
        resp = await transport(
            "https://example.com/users",
            {"method": "POST", "headers": {"content-type": "application/json"}, "body": '{"a": 1}'},
        )
    assert resp.status == 201  # noqa: PLR2004
    assert resp.ok
    assert resp.headers.get("Content-Type") == "application/json"
    assert await resp.json() == {"id": 7}
    assert isinstance(resp.raw, httpx.Response)
    req = seen["request"]
    assert req.method == "POST"
    assert req.content == b'{"a": 1}'


@pytest.mark.asyncio
async def test_httpx_transport_multipart():
    seen = {}

    def handler(request):
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(204)

    async with _mock_client(handler) as client:
        resp = await HttpxTransport(client)(
            "https://example.com/upload",
            {
                "method": "POST",
                "headers": {},
                "body": MultipartForm(fields={"name": "x"}, files={"f": ("a.txt", b"hello")}),
            },
        )
    assert resp.status == 204  # noqa: PLR2004
    assert seen["content_type"].startswith("multipart/form-data; boundary=")
    assert b"hello" in seen["body"]


@pytest.mark.asyncio
async def test_client_over_httpx_end_to_end():
    def handler(request):
        if request.url.path == "/users/42":
            assert request.headers["authorization"] == "Bearer T"
            assert json.loads(request.content) == {"name": "john"}
            return httpx.Response(200, json={"updated": True})
        return httpx.Response(404, json={"message": "not found"})

    async with _mock_client(handler) as http:
        client = FetchRest(
            "https://api.example.com",
            fetch_fn=HttpxTransport(http),
            auth_recovery=AuthRecoveryCoordinator(),
        )
        client.set_bearer_token("T")
        assert await client.put("/users/:id", body={"name": "john"}, params={"id": 42}) == {
            "updated": True
        }
        with pytest.raises(ResponseError) as exc_info:
            await client.get("/missing")
        assert exc_info.value.value == {"message": "not found"}


@pytest.mark.asyncio
async def test_default_transport_is_httpx(monkeypatch):
    client = FetchRest("https://example.com", auth_recovery=AuthRecoveryCoordinator())
    transport = client._transport()
    assert isinstance(transport, HttpxTransport)
    assert client._transport() is transport


@pytest.mark.asyncio
async def test_default_client_reused_across_retries_and_closed(monkeypatch):
    seen = []
    created = []
    real_client = httpx.AsyncClient

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(503 if len(seen) == 1 else 200, json={"ok": True})

    def make_client(*args, **kwargs):
        created.append(real_client(transport=httpx.MockTransport(handler)))
        return created[-1]

    monkeypatch.setattr(httpx, "AsyncClient", make_client)

    async with FetchRest(
        "https://example.com",
        retry_on=[503],
        retry_delay_ms=0,
        auth_recovery=AuthRecoveryCoordinator(),
    ) as client:
        assert await client.get("/flaky") == {"ok": True}
        assert await client.get("/again") == {"ok": True}
    assert seen == ["/flaky", "/flaky", "/again"]
    assert len(created) == 1
    assert created[0].is_closed
    assert client._default_transport is None


@pytest.mark.asyncio
async def test_borrowed_client_is_not_closed():
    async with _mock_client(lambda request: httpx.Response(204)) as http:
        transport = HttpxTransport(http)
        await transport("https://example.com", {"method": "GET"})
        await transport.aclose()
        assert not http.is_closed
        assert transport.client is http
