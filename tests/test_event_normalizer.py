import pytest

from conftest import ALICE, DISTRIBUTOR, EXCHANGE, POOL_A, ROUTER, ts
from zap_indexer.app.domain.addresses import to_bech32_address
from zap_indexer.app.domain.errors import NormalizationError
from zap_indexer.app.domain.models import (
    AmmLiquidityAmounts,
    AmmSwapAmounts,
    ClaimRecord,
    LegacyLiquidityAmounts,
    LegacySwapAmounts,
    LiquidityChangeRecord,
    RawEvent,
    SwapRecord,
    TxEvent,
)
from zap_indexer.app.infrastructure.decoders.zilswap.contract_registry import (
    ContractRegistry,
    IndexedContract,
)
from zap_indexer.app.infrastructure.decoders.zilswap.event_normalizer import ZilswapEventNormalizer


def raw_event(event_name, params, *, contract=EXCHANGE, tx_events=(), **kwargs) -> RawEvent:
    values = dict(
        block_height=100,
        block_timestamp=ts(1_600_000_000),
        tx_hash="0x" + "11" * 32,
        event_index=0,
        contract_address=contract,
        initiator_address=ALICE,
        event_name=event_name,
        params=params,
    )
    values.update(kwargs)
    return RawEvent(tx_events=tuple(tx_events), **values)


@pytest.fixture
def normalizer():
    return ZilswapEventNormalizer()


def swapped_params(input_denom: str, input_amount: str, output_amount: str) -> dict:
    return {
        "address": ALICE,
        "pool": POOL_A,
        "input": [{"params": [input_amount]}, {"name": f"Zilswap.{input_denom}"}],
        "output": [{"params": [output_amount]}, {"name": "Zilswap.Other"}],
    }


def test_legacy_mint_uses_transfer_and_tx_value(normalizer):
    raw = raw_event(
        "Mint",
        {"address": ALICE, "pool": POOL_A, "amount": "1000"},
        tx_events=[TxEvent(name="TransferFromSuccess", address=POOL_A, params={"amount": "500"})],
        tx_value="2000",
    )
    record = normalizer.normalize(raw, "legacy")

    assert isinstance(record, LiquidityChangeRecord)
    assert record.initiator_address == ALICE
    assert record.pool_address == POOL_A
    assert record.amounts == LegacyLiquidityAmounts(change_amount=1000, token_amount=500, zil_amount=2000)
    assert record.units == 1000


def test_legacy_burnt_is_negative(normalizer):
    raw = raw_event(
        "Burnt",
        {"address": ALICE, "pool": POOL_A, "amount": "1000"},
        tx_events=[TxEvent(name="TransferSuccess", address=POOL_A, params={"amount": "500"})],
        internal_transfers=({"value": "2000"},),
    )
    record = normalizer.normalize(raw, "legacy")

    assert record.amounts == LegacyLiquidityAmounts(change_amount=-1000, token_amount=500, zil_amount=2000)


def test_legacy_burnt_without_internal_transfer_fails(normalizer):
    raw = raw_event(
        "Burnt",
        {"address": ALICE, "pool": POOL_A, "amount": "1000"},
        tx_events=[TxEvent(name="TransferSuccess", address=POOL_A, params={"amount": "500"})],
    )
    with pytest.raises(NormalizationError):
        normalizer.normalize(raw, "legacy")


@pytest.mark.parametrize(
    "denom, expected",
    [
        ("Zil", LegacySwapAmounts(token_amount=7, zil_amount=3, is_sending_zil=True)),
        ("Token", LegacySwapAmounts(token_amount=3, zil_amount=7, is_sending_zil=False)),
    ],
)
def test_legacy_swapped_direction(normalizer, denom, expected):
    record = normalizer.normalize(raw_event("Swapped", swapped_params(denom, "3", "7")), "legacy")
    assert isinstance(record, SwapRecord)
    assert record.amounts == expected
    assert record.router_address is None


def test_legacy_swapped_unknown_denom(normalizer):
    with pytest.raises(NormalizationError):
        normalizer.normalize(raw_event("Swapped", swapped_params("Bogus", "3", "7")), "legacy")


def test_amm_swap(normalizer):
    params = {
        "initiator": ALICE,
        "pool": POOL_A,
        "to": ALICE,
        "amount0In": "10",
        "amount1In": "0",
        "amount0Out": "0",
        "amount1Out": "25",
    }
    record = normalizer.normalize(raw_event("Swap", params, contract=ROUTER), "amm")

    assert record.shape == "amm"
    assert record.router_address == ROUTER
    assert record.amounts == AmmSwapAmounts(
        amount_0_in=10, amount_1_in=0, amount_0_out=0, amount_1_out=25, to_address=ALICE
    )


def test_amm_burn_negates_liquidity_and_accepts_vname_lists(normalizer):
    params = [
        {"vname": "pool", "value": POOL_A},
        {"vname": "amount0", "value": "4"},
        {"vname": "amount1", "value": "9"},
        {"vname": "liquidity", "value": "6"},
    ]
    record = normalizer.normalize(raw_event("Burn", params, contract=ROUTER), "amm")

    # no initiator param: falls back to the tx sender
    assert record.initiator_address == ALICE
    assert record.amounts == AmmLiquidityAmounts(amount_0=4, amount_1=9, liquidity=-6)


def test_claimed(normalizer):
    params = {
        "epoch_number": "3",
        "data": [{"params": [ALICE, "123456"]}],
    }
    record = normalizer.normalize(raw_event("Claimed", params, contract=DISTRIBUTOR), "distributor")

    assert isinstance(record, ClaimRecord)
    assert record.distributor_address == DISTRIBUTOR
    assert record.epoch_number == 3
    assert record.initiator_address == ALICE
    assert record.amount == 123456


@pytest.mark.parametrize("amount", ["-5", "1.5", "abc", "", None, True])
def test_bad_amounts_fail(normalizer, amount):
    raw = raw_event(
        "Mint",
        {"address": ALICE, "pool": POOL_A, "amount": amount},
        tx_events=[TxEvent(name="TransferFromSuccess", address=POOL_A, params={"amount": "500"})],
    )
    with pytest.raises(NormalizationError):
        normalizer.normalize(raw, "legacy")


def test_missing_field_fails(normalizer):
    with pytest.raises(NormalizationError):
        normalizer.normalize(raw_event("Swap", {"pool": POOL_A}, contract=ROUTER), "amm")


def test_38_digit_amounts_are_exact(normalizer):
    big = "9" * 38
    params = {
        "pool": POOL_A,
        "amount0": big,
        "amount1": "1",
        "liquidity": big,
    }
    record = normalizer.normalize(raw_event("Mint", params, contract=ROUTER), "amm")
    assert record.amounts.amount_0 == int(big)


def test_unknown_event_is_skipped(normalizer):
    assert normalizer.normalize(raw_event("Sync", {}), "legacy") is None
    assert normalizer.normalize(raw_event("Swapped", {}), "distributor") is None


def test_registry_lists_one_worker_per_indexed_event():
    registry = ContractRegistry(
        [
            IndexedContract(address=EXCHANGE, shape="legacy"),
            IndexedContract(address=DISTRIBUTOR, shape="distributor"),
            IndexedContract(address=to_bech32_address(EXCHANGE), shape="legacy"),
        ]
    )

    assert sorted(registry.worker_pairs()) == sorted(
        [
            (EXCHANGE, "Mint", "legacy"),
            (EXCHANGE, "Burnt", "legacy"),
            (EXCHANGE, "Swapped", "legacy"),
            (DISTRIBUTOR, "Claimed", "distributor"),
        ]
    )


def test_registry_rejects_conflicting_shapes():
    with pytest.raises(ValueError):
        ContractRegistry(
            [
                IndexedContract(address=ROUTER, shape="amm"),
                IndexedContract(address=ROUTER, shape="legacy"),
            ]
        )
