from conftest import ALICE, BOB, DEV, POOL_A, POOL_B, ts
from zap_indexer.app.application.services.distribution.allocation import allocate, time_weighted_liquidity
from zap_indexer.app.application.services.distribution.epochs import EmissionSchedule, EpochInfo
from zap_indexer.app.domain.models import LiquidityEvent

SCHEDULE = EmissionSchedule(
    epoch_period=100,
    tokens_per_epoch=1_000,
    decimals=0,
    distribution_start_time=1_000,
    total_number_of_epochs=10,
    developer_token_ratio_bps=1_000,
)


def event(pool, address, at, units) -> LiquidityEvent:
    return LiquidityEvent(pool_address=pool, address=address, timestamp=ts(at), units=units)


def test_time_weighting():
    events = [
        event(POOL_A, ALICE, 900, 10),  # before the window: opening balance
        event(POOL_A, BOB, 1_050, 20),
        event(POOL_A, ALICE, 1_080, -10),
        event(POOL_A, BOB, 1_100, 500),  # at the end: ignored
    ]
    weighted = time_weighted_liquidity(events, start=ts(1_000), end=ts(1_100))

    assert weighted == {POOL_A: {ALICE: 10 * 80, BOB: 20 * 50}}


def test_negative_balance_counts_as_zero():
    events = [event(POOL_A, ALICE, 1_000, -5), event(POOL_A, ALICE, 1_050, 10)]
    weighted = time_weighted_liquidity(events, start=ts(1_000), end=ts(1_100))

    # -5 for 50s, then 5 for 50s
    assert weighted == {POOL_A: {ALICE: 250}}


def test_allocation_sums_to_budget():
    epoch = EpochInfo(SCHEDULE, 0)
    amounts = allocate(
        epoch=epoch,
        pool_weights={POOL_A: 2, POOL_B: 1},
        liquidity={POOL_A: {ALICE: 1, BOB: 2}, POOL_B: {BOB: 7}},
        volumes={},
        developer_address=DEV,
    )

    # 100 to the developer, 900 to LPs: pool A 600, pool B 300
    assert amounts[ALICE] == 200
    assert amounts[BOB] == 400 + 300
    assert amounts[DEV] == 100
    assert sum(amounts.values()) == epoch.tokens_for_epoch()


def test_rounding_remainder_goes_to_developer():
    epoch = EpochInfo(SCHEDULE, 0)
    amounts = allocate(
        epoch=epoch,
        pool_weights={POOL_A: 1},
        liquidity={POOL_A: {ALICE: 1, BOB: 1, DEV: 5}},
        volumes={},
        developer_address="0x" + "99" * 20,
    )

    # 900 * 1 // 7 = 128, 900 * 5 // 7 = 642: two tokens left over
    assert amounts[ALICE] == 128
    assert amounts[DEV] == 642
    assert amounts["0x" + "99" * 20] == 100 + 2
    assert sum(amounts.values()) == 1_000


def test_empty_pool_pot_goes_to_developer():
    epoch = EpochInfo(SCHEDULE, 0)
    amounts = allocate(
        epoch=epoch,
        pool_weights={POOL_A: 1, POOL_B: 1},
        liquidity={POOL_A: {ALICE: 5}},
        volumes={},
        developer_address=DEV,
    )

    assert amounts == {ALICE: 450, DEV: 550}


def test_redirected_addresses():
    epoch = EpochInfo(SCHEDULE, 0)
    amounts = allocate(
        epoch=epoch,
        pool_weights={POOL_A: 1},
        liquidity={POOL_A: {ALICE: 1, BOB: 1}},
        volumes={},
        developer_address=DEV,
        redirected_addresses=[BOB],
    )

    assert BOB not in amounts
    assert amounts == {ALICE: 450, DEV: 550}


def test_trader_share_uses_volume():
    schedule = EmissionSchedule(
        epoch_period=100,
        tokens_per_epoch=1_000,
        decimals=0,
        distribution_start_time=1_000,
        total_number_of_epochs=10,
        tokens_for_retroactive_distribution=1_000,
        developer_token_ratio_bps=1_000,
        initial_trader_token_ratio_bps=5_000,
    )
    epoch = EpochInfo(schedule, 0)
    amounts = allocate(
        epoch=epoch,
        pool_weights={POOL_A: 1},
        liquidity={POOL_A: {ALICE: 1}},
        volumes={BOB: 3, DEV: 1},
        developer_address=DEV,
    )

    # dev 100, traders 450 (bob 337, dev 112), LPs 450, remainder 1
    assert amounts == {ALICE: 450, BOB: 337, DEV: 100 + 112 + 1}
