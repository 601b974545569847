from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.domain.errors import (
    SourceMalformed,
    SourceRateLimited,
    SourceResultTooLarge,
    SourceUnavailable,
)
from zap_indexer.app.domain.models import EventPage, RawEvent, TxEvent

logger = logging.getLogger(__name__)

_TOO_LARGE_MARKERS = ("too many results", "result too large", "range too large")


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _ms_to_datetime(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class ViewBlockEventSource:
    """
    Event source backed by the ViewBlock contract-events API.

    One request returns one page of transactions that emitted ``event_name``
    on ``contract_address`` within [from_block, to_block]. Each matching event
    of a transaction becomes one RawEvent carrying the whole tx context
    (value, sibling events, internal transfers).

    The client itself does not retry: callers wrap fetch_events in their
    own backoff policy and react to the SourceError subclasses.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        network: str = "mainnet",
        timeout_s: float = 20.0,
        max_conn: int = 32,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._network = network
        self._headers = {"X-APIKEY": api_key} if api_key else {}
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn // 2),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_events(
        self,
        contract_address: str,
        event_name: str,
        from_block: int,
        page_token: str | None = None,
        *,
        to_block: int | None = None,
    ) -> EventPage:
        contract_hex = to_hex_address(contract_address)
        params: dict[str, Any] = {
            "network": self._network,
            "page": int(page_token) if page_token else 1,
            "fromBlock": from_block,
        }
        if to_block is not None:
            params["toBlock"] = to_block

        url = f"{self._base_url}/contracts/{contract_hex}/events/{event_name}"
        try:
            response = await self._client.get(url, params=params, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise SourceUnavailable(f"Timeout fetching {event_name} for {contract_hex}") from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"HTTP error fetching {event_name} for {contract_hex}: {exc}") from exc

        self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError as exc:
            raise SourceMalformed(f"Non-JSON body from {url}") from exc

        if isinstance(body, dict) and _looks_too_large(body.get("error")):
            raise SourceResultTooLarge(str(body["error"]))

        return self._parse_page(body, contract_hex=contract_hex, event_name=event_name)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status == 429:
            raise SourceRateLimited(
                "Event source rate limit hit",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status == 413 or (status == 400 and _looks_too_large(response.text)):
            raise SourceResultTooLarge(f"Event source refused block window (status={status})")
        if status in (401, 403):
            raise SourceUnavailable(f"Event source rejected credentials (status={status})")
        if status >= 500:
            raise SourceUnavailable(f"Event source upstream error (status={status})")
        if status >= 400:
            raise SourceMalformed(f"Event source rejected request (status={status}): {response.text[:200]}")

    @staticmethod
    def _parse_page(body: Any, *, contract_hex: str, event_name: str) -> EventPage:
        if not isinstance(body, dict) or not isinstance(body.get("txs"), list):
            raise SourceMalformed("Event page envelope is missing 'txs'")

        events: list[RawEvent] = []
        try:
            for tx in body["txs"]:
                tx_events = tuple(
                    TxEvent(name=e["name"], address=e.get("address", ""), params=e.get("params", {}))
                    for e in tx.get("events", [])
                )
                block_height = int(tx["blockHeight"])
                block_timestamp = _ms_to_datetime(tx["timestamp"])
                internal_transfers = tuple(tx.get("internalTransfers") or ())

                for index, event in enumerate(tx_events):
                    if event.name != event_name:
                        continue
                    if event.address and to_hex_address(event.address) != contract_hex:
                        continue
                    events.append(
                        RawEvent(
                            block_height=block_height,
                            block_timestamp=block_timestamp,
                            tx_hash=str(tx["hash"]).lower(),
                            event_index=index,
                            contract_address=contract_hex,
                            initiator_address=str(tx.get("from", "")),
                            event_name=event.name,
                            params=event.params,
                            tx_value=str(tx.get("value", "0")),
                            tx_events=tx_events,
                            internal_transfers=internal_transfers,
                        )
                    )
        except (KeyError, TypeError, ValueError) as exc:
            raise SourceMalformed(f"Malformed transaction in event page: {exc!r}") from exc

        next_page = body.get("nextPage")
        return EventPage(
            events=events,
            next_page_token=str(next_page) if next_page is not None else None,
        )


def _looks_too_large(message: Any) -> bool:
    if not message:
        return False
    text = str(message).lower()
    return any(marker in text for marker in _TOO_LARGE_MARKERS)
