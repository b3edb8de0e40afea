import json

import httpx
import pytest

from dappgov.clients.rpc import RPC, to_hex_block, topics_param
from dappgov.core.errors import RpcError


def _rpc(handler) -> RPC:
    return RPC("http://node.test", transport=httpx.MockTransport(handler))


def _result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def test_to_hex_block() -> None:
    assert to_hex_block(255) == "0xff"
    assert to_hex_block("latest") == "latest"


def test_topics_param() -> None:
    assert topics_param(["0xABC", None, ["0xD", "0xE"], None]) == ["0xabc", None, ["0xd", "0xe"]]
    assert topics_param([]) == []


@pytest.mark.asyncio
async def test_latest_block_and_timestamp() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["method"] == "eth_blockNumber":
            return _result(request, "0x10")
        assert body["params"] == ["0x10", False]
        return _result(request, {"number": "0x10", "timestamp": "0x64"})

    async with _rpc(handler) as rpc:
        head = await rpc.latest_block()
        assert head == 16
        assert await rpc.get_block_timestamp(head) == 100


@pytest.mark.asyncio
async def test_get_logs_maps_records() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.update(body["params"][0])
        return _result(
            request,
            [
                {
                    "address": "0xABCDEF0000000000000000000000000000000001",
                    "topics": ["0xAA", "0xBB"],
                    "data": "0x01",
                    "blockNumber": "0x20",
                    "transactionHash": "0xFEED",
                    "logIndex": "0x3",
                }
            ],
        )

    async with _rpc(handler) as rpc:
        logs = await rpc.get_logs(address="0xABCDEF0000000000000000000000000000000001", topics=["0xAA"], from_block=1, to_block=32)

    assert seen == {
        "address": "0xabcdef0000000000000000000000000000000001",
        "fromBlock": "0x1",
        "toBlock": "0x20",
        "topics": ["0xaa"],
    }
    (ev,) = logs
    assert ev.topics == ("0xaa", "0xbb")
    assert (ev.block_number, ev.log_index, ev.tx_hash) == (32, 3, "0xfeed")
    assert ev.block_timestamp is None


@pytest.mark.asyncio
async def test_call_returns_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["method"] == "eth_call"
        assert body["params"] == [{"to": "0xabc", "data": "0x01020304"}, "latest"]
        return _result(request, "0x" + "00" * 31 + "01")

    async with _rpc(handler) as rpc:
        assert await rpc.call(to="0xABC", data=b"\x01\x02\x03\x04") == b"\x00" * 31 + b"\x01"


@pytest.mark.asyncio
async def test_json_rpc_error_object() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32005, "message": "limit exceeded"}}
        )

    async with _rpc(handler) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.latest_block()
    assert exc.value.code == -32005
    assert exc.value.method == "eth_blockNumber"


@pytest.mark.asyncio
async def test_http_error_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    async with _rpc(handler) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.chain_id()
    assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.asyncio
async def test_missing_block() -> None:
    async with _rpc(lambda request: _result(request, None)) as rpc:
        with pytest.raises(RpcError):
            await rpc.get_block_timestamp(1)


@pytest.mark.asyncio
async def test_non_json_body_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>bad gateway</html>")

    async with _rpc(handler) as rpc:
        with pytest.raises(RpcError) as exc:
            await rpc.latest_block()
    assert exc.value.method == "eth_blockNumber"
    assert isinstance(exc.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_non_object_body_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    async with _rpc(handler) as rpc:
        with pytest.raises(RpcError, match="unexpected response body"):
            await rpc.latest_block()
