from __future__ import annotations

import copy

import pytest

from lprewards.ledger import accumulator, pools
from lprewards.ledger.constants import SCALE, TOKEN
from lprewards.ledger.payouts import PayoutGuard
from lprewards.ledger.state import get_position, init_state
from lprewards.runtime.errors import INSUFFICIENT_BALANCE, INVARIANT_VIOLATION, NOT_WHITELISTED, RewardsError


def _state():
    st = init_state(
        owner="owner",
        minter="minter",
        vault="vault",
        reward_token="REWARD",
        treasury="rewards",
        genesis_ts=1000,
        epoch_length=100,
        decay_base=SCALE // 2,
        starting_rewards=1000 * TOKEN,
        amm_ratio_bps=4000,
        minter_ratio_bps=4000,
        vesting_ratio_bps=2000,
    )
    pools.add_pool(st, category="amm", address="LP1", alloc_points=100, now=1000)
    return st


def _guard(balance: int = 1_000_000 * TOKEN) -> PayoutGuard:
    return PayoutGuard(treasury="rewards", treasury_balance=balance)


def test_refresh_is_noop_at_or_before_checkpoint() -> None:
    st = _state()
    assert accumulator.refresh_pool(st, category="amm", pool_address="LP1", supply=TOKEN, now=1000) == 0
    assert accumulator.refresh_pool(st, category="amm", pool_address="LP1", supply=TOKEN, now=900) == 0
    assert st["pools"]["amm"]["by_address"]["LP1"]["last_reward_ts"] == 1000


def test_refresh_splits_by_ratio_and_weight() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="LP2", alloc_points=300, now=1000)
    events = []
    r = accumulator.refresh_pool(st, category="amm", pool_address="LP2", supply=50 * TOKEN, now=1050, events=events)

    # 250 emitted, 40% to amm = 100, LP2 holds 300 of 400 points.
    assert r == 75 * TOKEN
    assert st["pools"]["amm"]["by_address"]["LP2"]["acc_reward_per_share"] == 75 * SCALE // 50
    assert events[0]["event"] == "pool_refreshed"
    assert events[0]["acc_reward_per_share"] == 75 * SCALE // 50


def test_deposit_settles_pending_before_changing_amount() -> None:
    st = _state()
    g = _guard()
    accumulator.deposit(st, g, category="amm", pool_address="LP1", account="alice", amount=100 * TOKEN, supply_before=0, now=1000)
    r = accumulator.deposit(
        st, g, category="amm", pool_address="LP1", account="alice", amount=100 * TOKEN, supply_before=100 * TOKEN, now=1050
    )

    assert r["reward_paid"] == 100 * TOKEN
    assert r["position"] == 200 * TOKEN
    pos = get_position(st, "amm", "LP1", "alice")
    assert pos["reward_debt"] == 200 * TOKEN  # 200 staked * acc 1.0
    assert g.transfers[-1].to == "alice"
    assert g.transfers[-1].amount == 100 * TOKEN


def test_deposit_requires_whitelisted_pool() -> None:
    st = _state()
    with pytest.raises(RewardsError) as e:
        accumulator.deposit(st, _guard(), category="amm", pool_address="LPX", account="a", amount=1, supply_before=0, now=1000)
    assert e.value.code == NOT_WHITELISTED


def test_withdraw_more_than_position_is_rejected() -> None:
    st = _state()
    g = _guard()
    accumulator.deposit(st, g, category="amm", pool_address="LP1", account="alice", amount=10, supply_before=0, now=1000)
    with pytest.raises(RewardsError) as e:
        accumulator.withdraw(st, g, category="amm", pool_address="LP1", account="alice", amount=11, supply_before=10, now=1010)
    assert e.value.code == INSUFFICIENT_BALANCE
    assert e.value.reason == "withdraw_exceeds_position"


def test_claim_keeps_amount_and_resets_debt() -> None:
    st = _state()
    g = _guard()
    accumulator.deposit(st, g, category="amm", pool_address="LP1", account="alice", amount=100 * TOKEN, supply_before=0, now=1000)
    r = accumulator.claim(st, g, category="amm", pool_address="LP1", account="alice", supply=100 * TOKEN, now=1050)

    assert r["applied"] == "CLAIM"
    assert r["reward_paid"] == 100 * TOKEN
    assert r["position"] == 100 * TOKEN
    again = accumulator.claim(st, g, category="amm", pool_address="LP1", account="alice", supply=100 * TOKEN, now=1050)
    assert again["reward_paid"] == 0


def test_preview_pending_does_not_mutate() -> None:
    st = _state()
    accumulator.deposit(st, _guard(), category="amm", pool_address="LP1", account="alice", amount=100 * TOKEN, supply_before=0, now=1000)
    before = copy.deepcopy(st)
    p = accumulator.preview_pending(st, category="amm", pool_address="LP1", account="alice", supply=100 * TOKEN, now=1050)
    assert p == 100 * TOKEN
    assert st == before


def test_pending_for_detects_corrupted_debt() -> None:
    with pytest.raises(RewardsError) as e:
        accumulator.pending_for({"acc_reward_per_share": SCALE}, {"amount": 1, "reward_debt": 2})
    assert e.value.code == INVARIANT_VIOLATION
