from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from zap_indexer.app.domain.errors import SourceMalformed, SourceRateLimited, SourceUnavailable
from zap_indexer.app.domain.models import BlockInfo


class ZilliqaChainClient:
    """
    Minimal Zilliqa JSON-RPC client: chain head and tx block headers.

    Used only to write BlockSync rows while polling; event data always comes
    from the event source.
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        timeout_s: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            r = await self.client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"{method} request failed: {exc}") from exc

        if r.status_code == 429:
            ra = r.headers.get("Retry-After")
            raise SourceRateLimited(
                f"{method} rate limited",
                retry_after=float(ra) if ra and ra.isdigit() else None,
            )
        if r.status_code >= 400:
            raise SourceUnavailable(f"{method} HTTP status {r.status_code}")

        try:
            data = r.json()
        except ValueError as exc:
            raise SourceMalformed(f"{method} returned a non-JSON body") from exc

        if "error" in data:
            err = data["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise SourceUnavailable(f"{method} RPC error: {msg}")
        if "result" not in data:
            raise SourceMalformed(f"{method} response has no result")
        return data["result"]

    async def latest_block(self) -> int:
        # GetNumTxBlocks counts blocks, heights start at 0.
        result = await self._call("GetNumTxBlocks", [])
        try:
            return int(result) - 1
        except (TypeError, ValueError) as exc:
            raise SourceMalformed(f"GetNumTxBlocks returned {result!r}") from exc

    async def get_block(self, height: int) -> BlockInfo:
        result = await self._call("GetTxBlock", [str(height)])
        try:
            header = result["header"]
            # Header timestamp is in microseconds.
            ts = datetime.fromtimestamp(int(header["Timestamp"]) / 1_000_000, tz=timezone.utc)
            return BlockInfo(
                height=int(header["BlockNum"]),
                timestamp=ts,
                num_txs=int(header.get("NumTxns", 0)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SourceMalformed(f"GetTxBlock({height}) returned a malformed header") from exc
