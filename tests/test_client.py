"""Tests for the aiohttp Gateway client against a local aiohttp server."""
import pytest
from aiohttp import web
from aiohttp import test_utils

from adblock_sync.client import ApiResponse, GatewayClient, check_response
from adblock_sync.errors import AuthError, RemoteMutationError


async def _verify(request):
    if request.headers.get("Authorization") != "Bearer good-token":
        return web.json_response({"success": False, "errors": [{"code": 1000, "message": "Invalid API Token"}]},
                                 status=401)
    return web.json_response({"success": True, "result": {"id": "tok", "status": "active"}})


async def _create_list(request):
    body = await request.json()
    return web.json_response({"success": True, "result": {"id": "new-id", "name": body["name"]}})


async def _lists(request):
    return web.json_response({"success": True, "result": [],
                              "result_info": {"page": int(request.query["page"]), "total_count": 0}})


async def _broken(request):
    return web.Response(status=502, reason="Bad Gateway", text="<html>upstream down</html>")


def _app():
    app = web.Application()
    app.router.add_get("/client/v4/user/tokens/verify", _verify)
    app.router.add_get("/client/v4/accounts/acct/gateway/lists", _lists)
    app.router.add_post("/client/v4/accounts/acct/gateway/lists", _create_list)
    app.router.add_put("/client/v4/accounts/acct/gateway/rules/broken", _broken)
    return app


async def _client_for(server, token="good-token"):
    return GatewayClient(token, "acct", base_url=str(server.make_url("/client/v4")), timeout=5)


@pytest.mark.asyncio
async def test_verify_token_accepts_active_token():
    server = test_utils.TestServer(_app())
    await server.start_server()
    try:
        async with await _client_for(server) as client:
            result = await client.verify_token()
        assert result["status"] == "active"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_verify_token_rejects_bad_token():
    server = test_utils.TestServer(_app())
    await server.start_server()
    try:
        async with await _client_for(server, token="bad-token") as client:
            with pytest.raises(AuthError):
                await client.verify_token()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_request_sends_json_and_params():
    server = test_utils.TestServer(_app())
    await server.start_server()
    try:
        async with await _client_for(server) as client:
            created = await client.request("POST", client.account_path("lists"), {"name": "x"})
            listed = await client.request("GET", client.account_path("lists"), params={"page": 2})
        assert created.ok
        assert created.result == {"id": "new-id", "name": "x"}
        assert listed.data["result_info"]["page"] == 2
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_non_json_error_body_is_kept_for_diagnostics():
    server = test_utils.TestServer(_app())
    await server.start_server()
    try:
        async with await _client_for(server) as client:
            response = await client.request("PUT", client.account_path("rules/broken"), {})
        assert not response.ok
        assert response.data is None
        with pytest.raises(RemoteMutationError) as excinfo:
            check_response(response, "updating rule", RemoteMutationError)
        assert excinfo.value.status == 502
        assert "upstream down" in excinfo.value.body
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_missing_token_is_auth_error():
    async with GatewayClient(None, "acct") as client:
        with pytest.raises(AuthError):
            await client.request("GET", "user/tokens/verify")


def test_success_false_is_not_ok():
    response = ApiResponse(200, "OK", {"success": False, "errors": [{"message": "nope"}]})
    assert not response.ok


def test_safe_path_masks_account():
    client = GatewayClient("t", "acct-secret")
    assert client.safe_path(client.account_path("lists")) == "accounts/[HIDDEN]/gateway/lists"
