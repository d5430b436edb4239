import json

import httpx
import pytest

from ledgerkit.errors import JsonRpcCode, RpcError
from ledgerkit.rpc.http import AsyncRpcClient

pytestmark = pytest.mark.anyio


def make_rpc(handler, **kw):
    kw.setdefault("backoff_base", 0.0)
    return AsyncRpcClient("http://node.test", transport=httpx.MockTransport(handler), **kw)


async def test_request_returns_result_and_sends_jsonrpc_envelope():
    seen = []

    def handler(request):
        body = json.loads(request.content)
        seen.append((body, request.headers))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": 123})

    async with make_rpc(handler) as rpc:
        assert await rpc.request("getSlot", [{"commitment": "finalized"}]) == 123

    body, headers = seen[0]
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "getSlot"
    assert body["params"] == [{"commitment": "finalized"}]
    assert headers["content-type"] == "application/json"
    assert headers["user-agent"].startswith("ledgerkit-py/")


async def test_jsonrpc_errors_are_not_retried():
    calls = []

    def handler(request):
        body = json.loads(request.content)
        calls.append(body)
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32602, "message": "bad params", "data": {"logs": ["x"]}}},
        )

    async with make_rpc(handler, max_retries=3) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.request("getBalance", ["nope"])

    assert len(calls) == 1
    assert exc.value.code == -32602
    assert exc.value.code_enum is JsonRpcCode.INVALID_PARAMS
    assert exc.value.method == "getBalance"
    assert exc.value.logs == ["x"]


async def test_transient_http_status_is_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, text="busy")
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "ok"})

    async with make_rpc(handler, max_retries=3) as rpc:
        assert await rpc.request("getHealth") == "ok"
    assert len(attempts) == 3


async def test_exhausted_retries_raise_transport_failure():
    attempts = []

    def handler(request):
        attempts.append(1)
        return httpx.Response(429, text="rate limited")

    async with make_rpc(handler, max_retries=2) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.request("getHealth")
    assert len(attempts) == 3
    assert exc.value.code == JsonRpcCode.TRANSPORT_FAILED
    assert exc.value.http_status == 429


async def test_network_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("refused", request=request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": 1})

    async with make_rpc(handler, max_retries=1) as rpc:
        assert await rpc.request("getSlot") == 1
    assert len(attempts) == 2


async def test_batch_results_are_reordered_by_id():
    def handler(request):
        body = json.loads(request.content)
        replies = [{"jsonrpc": "2.0", "id": item["id"], "result": item["method"]} for item in body]
        return httpx.Response(200, json=list(reversed(replies)))

    async with make_rpc(handler) as rpc:
        assert await rpc.batch([("a", None), ("b", []), ("c", {"k": 1})]) == ["a", "b", "c"]
        assert await rpc.batch([]) == []


async def test_batch_error_item_raises_with_method():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json=[
                {"jsonrpc": "2.0", "id": body[0]["id"], "result": 1},
                {"jsonrpc": "2.0", "id": body[1]["id"], "error": {"code": -32601, "message": "nope"}},
            ],
        )

    async with make_rpc(handler) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.batch([("getSlot", None), ("missing", None)])
    assert exc.value.method == "missing"
    assert exc.value.code == -32601


async def test_non_json_response_is_an_internal_error():
    async with make_rpc(lambda request: httpx.Response(200, text="<html>")) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.request("getSlot")
    assert exc.value.code == JsonRpcCode.INTERNAL_ERROR
    assert exc.value.http_status == 200
