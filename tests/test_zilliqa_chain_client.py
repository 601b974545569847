import json

import httpx
import pytest

from conftest import ts
from zap_indexer.app.domain.errors import SourceMalformed, SourceRateLimited, SourceUnavailable
from zap_indexer.app.infrastructure.fetchers.zilliqa_chain_client import ZilliqaChainClient


def make_client(handler) -> ZilliqaChainClient:
    return ZilliqaChainClient(
        rpc_url="https://rpc.zilliqa.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def rpc_result(result) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


async def test_latest_block_is_count_minus_one():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["method"] == "GetNumTxBlocks"
        return rpc_result("1500")

    assert await make_client(handler).latest_block() == 1499


async def test_get_block_reads_header():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["method"] == "GetTxBlock"
        assert body["params"] == ["42"]
        return rpc_result({"header": {"BlockNum": "42", "Timestamp": "1600000000000000", "NumTxns": 3}})

    block = await make_client(handler).get_block(42)

    assert block.height == 42
    assert block.timestamp == ts(1_600_000_000)
    assert block.num_txs == 3


@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(429, headers={"Retry-After": "2"}), SourceRateLimited),
        (httpx.Response(502), SourceUnavailable),
        (httpx.Response(200, json={"error": {"message": "node busy"}}), SourceUnavailable),
        (httpx.Response(200, json={"jsonrpc": "2.0"}), SourceMalformed),
        (rpc_result({"header": {}}), SourceMalformed),
    ],
)
async def test_error_mapping(response, error):
    with pytest.raises(error):
        await make_client(lambda request: response).get_block(1)
