from __future__ import annotations

import pytest

from lprewards.ledger import pools
from lprewards.ledger.accumulator import refresh_pool
from lprewards.ledger.constants import SCALE, TOKEN
from lprewards.ledger.state import RewardsView, init_state
from lprewards.runtime.errors import ALREADY_WHITELISTED, INVARIANT_VIOLATION, NOT_WHITELISTED, RewardsError


def _state(genesis: int = 1000):
    return init_state(
        owner="owner",
        minter="minter",
        vault="vault",
        reward_token="REWARD",
        treasury="rewards",
        genesis_ts=genesis,
        epoch_length=100,
        decay_base=SCALE // 2,
        starting_rewards=1000 * TOKEN,
        amm_ratio_bps=4000,
        minter_ratio_bps=4000,
        vesting_ratio_bps=2000,
    )


def test_add_pool_clamps_checkpoint_to_genesis() -> None:
    st = _state(genesis=1000)
    events = []
    r = pools.add_pool(st, category="amm", address="LP1", alloc_points=50, now=10, events=events)

    assert r["applied"] == "POOL_ADD"
    view = RewardsView.from_state(st)
    assert view.pool("amm", "LP1")["last_reward_ts"] == 1000
    assert view.pool("amm", "LP1")["acc_reward_per_share"] == 0
    assert view.total_alloc_points("amm") == 50
    assert [e["event"] for e in events] == ["pool_added"]

    pools.add_pool(st, category="amm", address="LP2", alloc_points=10, now=1500)
    assert RewardsView.from_state(st).pool("amm", "LP2")["last_reward_ts"] == 1500


def test_categories_are_independent() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="X", alloc_points=10, now=1000)
    pools.add_pool(st, category="minter", address="X", alloc_points=30, now=1000)
    assert pools.total_alloc_points(st, "amm") == 10
    assert pools.total_alloc_points(st, "minter") == 30


def test_add_pool_twice_is_rejected() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="LP1", alloc_points=1, now=1000)
    with pytest.raises(RewardsError) as e:
        pools.add_pool(st, category="amm", address="LP1", alloc_points=1, now=1000)
    assert e.value.code == ALREADY_WHITELISTED
    assert e.value.reason == "pool_already_whitelisted"


def test_removed_address_cannot_be_re_added() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="LP1", alloc_points=5, now=1000)
    pools.remove_pool(st, category="amm", address="LP1", now=1010, supply=0)
    with pytest.raises(RewardsError) as e:
        pools.add_pool(st, category="amm", address="LP1", alloc_points=5, now=1020)
    assert e.value.code == ALREADY_WHITELISTED
    assert e.value.reason == "pool_retired"


def test_membership_keeps_insertion_order_and_drops_removed() -> None:
    st = _state()
    for addr in ("A", "B", "C", "D"):
        pools.add_pool(st, category="amm", address=addr, alloc_points=10, now=1000)
    pools.remove_pool(st, category="amm", address="B", now=1000, supply=0)

    assert pools.whitelisted_pools(st, "amm") == ["A", "C", "D"]
    assert pools.is_whitelisted(st, "amm", "C")
    assert not pools.is_whitelisted(st, "amm", "B")
    assert pools.total_alloc_points(st, "amm") == 30


def test_remove_forces_final_refresh() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="LP1", alloc_points=10, now=1000)
    events = []
    pools.remove_pool(st, category="amm", address="LP1", now=1050, supply=100 * TOKEN, events=events)

    pool = RewardsView.from_state(st).pool("amm", "LP1")
    # 250 emitted in [1000, 1050); amm share 40% -> 100 tokens over 100 staked.
    assert pool["acc_reward_per_share"] == SCALE
    assert pool["last_reward_ts"] == 1050
    assert pool["whitelisted"] is False
    assert [e["event"] for e in events] == ["pool_refreshed", "pool_removed"]


def test_remove_and_set_points_require_whitelisted() -> None:
    st = _state()
    with pytest.raises(RewardsError) as e:
        pools.remove_pool(st, category="amm", address="nope", now=1000, supply=0)
    assert e.value.code == NOT_WHITELISTED
    with pytest.raises(RewardsError) as e:
        pools.set_alloc_points(st, category="minter", address="nope", alloc_points=1)
    assert e.value.code == NOT_WHITELISTED


def test_set_alloc_points_adjusts_total_by_delta() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="A", alloc_points=10, now=1000)
    pools.add_pool(st, category="amm", address="B", alloc_points=20, now=1000)
    pools.set_alloc_points(st, category="amm", address="A", alloc_points=45)
    assert pools.total_alloc_points(st, "amm") == 65
    assert RewardsView.from_state(st).pool("amm", "A")["alloc_points"] == 45


def test_zero_weight_pool_skips_accrual() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="A", alloc_points=0, now=1000)
    assert refresh_pool(st, category="amm", pool_address="A", supply=TOKEN, now=1050) == 0
    pool = RewardsView.from_state(st).pool("amm", "A")
    assert pool["acc_reward_per_share"] == 0
    assert pool["last_reward_ts"] == 1050


def test_zero_total_with_weighted_pool_is_an_invariant_violation() -> None:
    st = _state()
    pools.add_pool(st, category="amm", address="A", alloc_points=10, now=1000)
    st["pools"]["amm"]["total_alloc_points"] = 0
    with pytest.raises(RewardsError) as e:
        refresh_pool(st, category="amm", pool_address="A", supply=TOKEN, now=1050)
    assert e.value.code == INVARIANT_VIOLATION


def test_reset_checkpoints_moves_every_pool() -> None:
    st = _state(genesis=1000)
    pools.add_pool(st, category="amm", address="A", alloc_points=10, now=0)
    pools.add_pool(st, category="minter", address="B", alloc_points=10, now=0)
    st["params"]["genesis_ts"] = 4000
    assert pools.reset_checkpoints(st, now=500) == 2
    view = RewardsView.from_state(st)
    assert view.pool("amm", "A")["last_reward_ts"] == 4000
    assert view.pool("minter", "B")["last_reward_ts"] == 4000
