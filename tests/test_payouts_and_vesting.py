from __future__ import annotations

import pytest

from lprewards.ledger import vesting
from lprewards.ledger.constants import SCALE, TOKEN
from lprewards.ledger.payouts import PayoutGuard, claimed_grand_total, claimed_total
from lprewards.ledger.state import init_state
from lprewards.runtime.errors import INSUFFICIENT_BALANCE, INVALID_CONFIG, TEMPORAL_VIOLATION, RewardsError


def _state(vault: str = "vault"):
    return init_state(
        owner="owner",
        minter="minter",
        vault=vault,
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


def test_guard_counts_queued_payouts_against_balance() -> None:
    st = _state()
    g = PayoutGuard(treasury="rewards", treasury_balance=10)
    assert g.pay(st, "alice", 6) == 6
    assert g.available() == 4
    with pytest.raises(RewardsError) as e:
        g.pay(st, "bob", 5)
    assert e.value.code == INSUFFICIENT_BALANCE
    assert e.value.reason == "treasury_underfunded"


def test_guard_tracks_claimed_totals_and_skips_zero() -> None:
    st = _state()
    g = PayoutGuard(treasury="rewards", treasury_balance=100)
    events = []
    g.pay(st, "alice", 3, events=events, reason="amm:LP1")
    g.pay(st, "alice", 4)
    assert g.pay(st, "bob", 0) == 0

    assert claimed_total(st, "alice") == 7
    assert claimed_total(st, "bob") == 0
    assert claimed_grand_total(st) == 7
    assert len(g.transfers) == 2
    assert events == [{"event": "reward_paid", "to": "alice", "amount": 3, "reason": "amm:LP1"}]


def test_vesting_entitlement_tracks_emission() -> None:
    st = _state()
    assert vesting.pending_vesting_reward(st, 900) == 0
    # 250 emitted by 1050, vesting gets 20%.
    assert vesting.pending_vesting_reward(st, 1050) == 50 * TOKEN


def test_release_pays_vault_and_advances_debt() -> None:
    st = _state()
    g = PayoutGuard(treasury="rewards", treasury_balance=1000 * TOKEN)
    events = []
    r = vesting.release(st, g, now=1050, events=events)

    assert r["amount"] == 50 * TOKEN
    assert st["vesting"] == {"last_release_ts": 1050, "cumulative_debt": 50 * TOKEN}
    assert g.transfers[0].to == "vault"
    assert [e["event"] for e in events] == ["reward_paid", "vesting_released"]

    # 500 emitted by 1100 -> 100 entitled, 50 already paid.
    r2 = vesting.release(st, g, now=1100)
    assert r2["amount"] == 50 * TOKEN


def test_release_requires_positive_interval() -> None:
    st = _state()
    g = PayoutGuard(treasury="rewards", treasury_balance=1000 * TOKEN)
    with pytest.raises(RewardsError) as e:
        vesting.release(st, g, now=1000)
    assert e.value.code == TEMPORAL_VIOLATION
    vesting.release(st, g, now=1020)
    with pytest.raises(RewardsError) as e:
        vesting.release(st, g, now=1020)
    assert e.value.reason == "non_positive_release_interval"


def test_release_requires_vault() -> None:
    st = _state(vault="")
    with pytest.raises(RewardsError) as e:
        vesting.release(st, PayoutGuard(treasury="rewards", treasury_balance=TOKEN), now=1050)
    assert e.value.code == INVALID_CONFIG
