from __future__ import annotations

import logging
import re
from typing import Any, Callable, Mapping

from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.domain.errors import NormalizationError
from zap_indexer.app.domain.models import (
    AmmLiquidityAmounts,
    AmmSwapAmounts,
    ClaimRecord,
    ContractShape,
    DomainRecord,
    LegacyLiquidityAmounts,
    LegacySwapAmounts,
    LiquidityChangeRecord,
    RawEvent,
    SwapRecord,
)

logger = logging.getLogger(__name__)

_UINT_RE = re.compile(r"^[0-9]+$")

_Handler = Callable[["ZilswapEventNormalizer", RawEvent], DomainRecord]


class ZilswapEventNormalizer:
    """
    Maps raw block-explorer events into ledger records.

    Supported shapes:

    legacy (single-token / ZIL pair exchange)
      - Mint(address, pool, amount): token amount from the TransferFromSuccess
        event of the same tx, ZIL amount = tx value
      - Burnt(address, pool, amount): token amount from TransferSuccess, ZIL
        amount from the first internal transfer; change_amount is negated
      - Swapped(address, pool, input, output): input/output are Coins ADTs,
        ``input[0].params[0]`` is the amount and ``input[1].name`` ends in
        ``Zil`` or ``Token``

    amm (multi-pool router)
      - Swap(initiator, pool, to, amount0In, amount1In, amount0Out, amount1Out)
      - Mint / Burn(initiator, pool, amount0, amount1, liquidity); liquidity is
        negated on Burn

    distributor
      - Claimed(epoch_number, data): ``data[0].params`` = [claimant, amount]

    Amounts arrive as decimal strings (up to 38 digits) and become ints.
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[ContractShape, str], _Handler] = {
            ("legacy", "Mint"): ZilswapEventNormalizer._legacy_mint,
            ("legacy", "Burnt"): ZilswapEventNormalizer._legacy_burnt,
            ("legacy", "Swapped"): ZilswapEventNormalizer._legacy_swapped,
            ("amm", "Swap"): ZilswapEventNormalizer._amm_swap,
            ("amm", "Mint"): ZilswapEventNormalizer._amm_mint,
            ("amm", "Burn"): ZilswapEventNormalizer._amm_burn,
            ("distributor", "Claimed"): ZilswapEventNormalizer._claimed,
        }

    def normalize(self, raw: RawEvent, shape: ContractShape) -> DomainRecord | None:
        handler = self._handlers.get((shape, raw.event_name))
        if handler is None:
            logger.info(
                "Skipping unindexed event: contract=%s event=%s shape=%s tx=%s",
                raw.contract_address,
                raw.event_name,
                shape,
                raw.tx_hash,
            )
            return None
        try:
            return handler(self, raw)
        except NormalizationError:
            raise
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as exc:
            raise NormalizationError(
                f"Malformed {raw.event_name} event in tx {raw.tx_hash}: {exc!r}"
            ) from exc

    # ---------------------------------------------------------------------
    # legacy shape
    # ---------------------------------------------------------------------

    def _legacy_mint(self, raw: RawEvent) -> LiquidityChangeRecord:
        p = _params(raw.params)
        transfer = _sibling(raw, "TransferFromSuccess")
        return LiquidityChangeRecord(
            **self._identity(raw),
            initiator_address=_address(p, "address"),
            pool_address=_address(p, "pool"),
            router_address=None,
            shape="legacy",
            amounts=LegacyLiquidityAmounts(
                change_amount=_uint(p, "amount"),
                token_amount=_uint(_params(transfer.params), "amount"),
                zil_amount=_parse_uint(raw.tx_value, "tx.value"),
            ),
        )

    def _legacy_burnt(self, raw: RawEvent) -> LiquidityChangeRecord:
        p = _params(raw.params)
        transfer = _sibling(raw, "TransferSuccess")
        if not raw.internal_transfers:
            raise NormalizationError(f"Burnt event in tx {raw.tx_hash} has no internal ZIL transfer")
        return LiquidityChangeRecord(
            **self._identity(raw),
            initiator_address=_address(p, "address"),
            pool_address=_address(p, "pool"),
            router_address=None,
            shape="legacy",
            amounts=LegacyLiquidityAmounts(
                change_amount=-_uint(p, "amount"),
                token_amount=_uint(_params(transfer.params), "amount"),
                zil_amount=_parse_uint(raw.internal_transfers[0].get("value"), "internalTransfers[0].value"),
            ),
        )

    def _legacy_swapped(self, raw: RawEvent) -> SwapRecord:
        p = _params(raw.params)
        input_amount = _parse_uint(p["input"][0]["params"][0], "input.amount")
        output_amount = _parse_uint(p["output"][0]["params"][0], "output.amount")
        input_denom = str(p["input"][1]["name"]).split(".")[-1]

        if input_denom == "Zil":
            amounts = LegacySwapAmounts(
                token_amount=output_amount, zil_amount=input_amount, is_sending_zil=True
            )
        elif input_denom == "Token":
            amounts = LegacySwapAmounts(
                token_amount=input_amount, zil_amount=output_amount, is_sending_zil=False
            )
        else:
            raise NormalizationError(f"Unknown input denom {input_denom!r} in tx {raw.tx_hash}")

        return SwapRecord(
            **self._identity(raw),
            initiator_address=_address(p, "address"),
            pool_address=_address(p, "pool"),
            router_address=None,
            shape="legacy",
            amounts=amounts,
        )

    # ---------------------------------------------------------------------
    # amm shape
    # ---------------------------------------------------------------------

    def _amm_swap(self, raw: RawEvent) -> SwapRecord:
        p = _params(raw.params)
        to_address = p.get("to")
        return SwapRecord(
            **self._identity(raw),
            initiator_address=self._amm_initiator(raw, p),
            pool_address=_address(p, "pool"),
            router_address=to_hex_address(raw.contract_address),
            shape="amm",
            amounts=AmmSwapAmounts(
                amount_0_in=_uint(p, "amount0In"),
                amount_1_in=_uint(p, "amount1In"),
                amount_0_out=_uint(p, "amount0Out"),
                amount_1_out=_uint(p, "amount1Out"),
                to_address=to_hex_address(to_address) if to_address else None,
            ),
        )

    def _amm_mint(self, raw: RawEvent) -> LiquidityChangeRecord:
        return self._amm_liquidity(raw, sign=1)

    def _amm_burn(self, raw: RawEvent) -> LiquidityChangeRecord:
        return self._amm_liquidity(raw, sign=-1)

    def _amm_liquidity(self, raw: RawEvent, *, sign: int) -> LiquidityChangeRecord:
        p = _params(raw.params)
        return LiquidityChangeRecord(
            **self._identity(raw),
            initiator_address=self._amm_initiator(raw, p),
            pool_address=_address(p, "pool"),
            router_address=to_hex_address(raw.contract_address),
            shape="amm",
            amounts=AmmLiquidityAmounts(
                amount_0=_uint(p, "amount0"),
                amount_1=_uint(p, "amount1"),
                liquidity=sign * _uint(p, "liquidity"),
            ),
        )

    @staticmethod
    def _amm_initiator(raw: RawEvent, p: Mapping[str, Any]) -> str:
        if p.get("initiator"):
            return _address(p, "initiator")
        return to_hex_address(raw.initiator_address)

    # ---------------------------------------------------------------------
    # distributor
    # ---------------------------------------------------------------------

    def _claimed(self, raw: RawEvent) -> ClaimRecord:
        p = _params(raw.params)
        claimant, amount = p["data"][0]["params"][:2]
        epoch_number = _parse_uint(p["epoch_number"], "epoch_number")
        return ClaimRecord(
            transaction_hash=raw.tx_hash,
            event_sequence=raw.event_index,
            block_height=raw.block_height,
            block_timestamp=raw.block_timestamp,
            distributor_address=to_hex_address(raw.contract_address),
            epoch_number=epoch_number,
            initiator_address=to_hex_address(str(claimant)),
            amount=_parse_uint(amount, "data.amount"),
        )

    # ---------------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------------

    @staticmethod
    def _identity(raw: RawEvent) -> dict[str, Any]:
        return {
            "transaction_hash": raw.tx_hash,
            "event_sequence": raw.event_index,
            "block_height": raw.block_height,
            "block_timestamp": raw.block_timestamp,
        }


def _params(params: Any) -> Mapping[str, Any]:
    """
    Event params as a mapping.

    Accepts the explorer's object form and the node's native list of
    ``{"vname": ..., "value": ...}`` entries.
    """
    if isinstance(params, Mapping):
        return params
    if isinstance(params, list):
        return {item["vname"]: item["value"] for item in params}
    raise NormalizationError(f"Unsupported params payload: {type(params).__name__}")


def _sibling(raw: RawEvent, name: str):
    for event in raw.tx_events:
        if event.name == name:
            return event
    raise NormalizationError(f"Missing {name} event in tx {raw.tx_hash}")


def _address(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise NormalizationError(f"Missing address field {key!r}")
    try:
        return to_hex_address(value)
    except ValueError as exc:
        raise NormalizationError(f"Invalid address in field {key!r}: {value!r}") from exc


def _uint(params: Mapping[str, Any], key: str) -> int:
    if key not in params:
        raise NormalizationError(f"Missing amount field {key!r}")
    return _parse_uint(params[key], key)


def _parse_uint(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise NormalizationError(f"Non-integer value for {field}: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise NormalizationError(f"Negative value for {field}: {value!r}")
        return value
    if isinstance(value, str) and _UINT_RE.match(value.strip()):
        return int(value.strip())
    raise NormalizationError(f"Non-integer value for {field}: {value!r}")
