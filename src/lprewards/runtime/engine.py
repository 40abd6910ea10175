# src/lprewards/runtime/engine.py
from __future__ import annotations

"""RewardsEngine: the atomic host for ledger operations.

Every public operation runs as one unit:

  1. capability check (restricted operations only)
  2. read external supplies / treasury balance
  3. apply ledger transitions to a deep copy of state; payouts and principal
     movements are only queued
  4. commit the copy
  5. execute queued external transfers
  6. persist the snapshot (if a store is attached) and publish events

Any exception before step 4 discards the copy. If an external transfer fails
in step 5 the transfers already made are reversed in reverse order, the
previous state is restored and the error propagates. Internal
state is always final before the token ledger is called, so a ledger that
calls back into the engine sees settled positions.

Operations are assumed to be applied one at a time; the engine does no
locking of its own.
"""

import copy
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from lprewards.ledger import accumulator, pools, vesting
from lprewards.ledger.constants import BASIS_POINTS, CATEGORY_AMM, CATEGORY_MINTER
from lprewards.ledger.emission import schedule_from_state
from lprewards.ledger.fixed_point import require_uint
from lprewards.ledger.payouts import PayoutGuard, Transfer, claimed_grand_total, claimed_total
from lprewards.ledger.state import (
    ensure_vesting,
    get_position,
    init_state,
    params,
    require_address,
    require_category,
    require_pool,
    validate_split,
)
from lprewards.runtime.collaborators import MinterSystem, TokenLedger
from lprewards.runtime.config import RewardsConfig, validate_rewards_config
from lprewards.runtime.errors import (
    INSUFFICIENT_BALANCE,
    INVALID_CONFIG,
    INVARIANT_VIOLATION,
    TEMPORAL_VIOLATION,
    TRANSFER_FAILED,
    RewardsError,
)
from lprewards.runtime.gates import OPERATION_CAPABILITIES, CapabilityGate, SingleAddressGate
from lprewards.runtime.sqlite_db import SqliteRewardsStore, canon_json

Json = Dict[str, Any]
Op = Callable[[Json, PayoutGuard, List[Json]], Json]

REWARD = "reward"

# In-process event history; the store keeps the full log.
RECENT_EVENTS = 1024


class RewardsEngine:
    def __init__(
        self,
        *,
        state: Json,
        reward_token: TokenLedger,
        lp_tokens: Mapping[str, TokenLedger],
        minter_system: MinterSystem,
        gate: Optional[CapabilityGate] = None,
        store: Optional[SqliteRewardsStore] = None,
        recent_events: int = RECENT_EVENTS,
    ) -> None:
        self._state: Json = state
        self._reward_token = reward_token
        self._lp_tokens = lp_tokens
        self._minter_system = minter_system
        self._gate: CapabilityGate = gate or SingleAddressGate()
        self._store = store
        self._log = logging.getLogger("lprewards.engine")
        self._event_log = logging.getLogger("lprewards.events")
        self.events: Deque[Json] = deque(maxlen=max(1, int(recent_events)))

    @classmethod
    def from_config(
        cls,
        cfg: RewardsConfig,
        *,
        now: int,
        reward_token: TokenLedger,
        lp_tokens: Mapping[str, TokenLedger],
        minter_system: MinterSystem,
        gate: Optional[CapabilityGate] = None,
        store: Optional[SqliteRewardsStore] = None,
    ) -> "RewardsEngine":
        """Build a fresh engine; configured pools are whitelisted at `now`."""
        validate_rewards_config(cfg)
        genesis = int(cfg.genesis_ts) if int(cfg.genesis_ts) > 0 else int(now)
        state = init_state(
            owner=cfg.owner,
            minter=cfg.minter,
            vault=cfg.vault,
            reward_token=cfg.reward_token,
            treasury=cfg.treasury,
            genesis_ts=genesis,
            epoch_length=cfg.epoch_length,
            decay_base=cfg.decay_base,
            starting_rewards=cfg.starting_rewards,
            amm_ratio_bps=cfg.amm_ratio_bps,
            minter_ratio_bps=cfg.minter_ratio_bps,
            vesting_ratio_bps=cfg.vesting_ratio_bps,
        )
        events: List[Json] = []
        for addr, pts in cfg.amm_pools:
            pools.add_pool(state, category=CATEGORY_AMM, address=addr, alloc_points=pts, now=now, events=events)
        for addr, pts in cfg.minter_pools:
            pools.add_pool(state, category=CATEGORY_MINTER, address=addr, alloc_points=pts, now=now, events=events)

        engine = cls(
            state=state,
            reward_token=reward_token,
            lp_tokens=lp_tokens,
            minter_system=minter_system,
            gate=gate,
            store=store,
        )
        if store is not None:
            store.write(state, events)
        engine._publish(events)
        return engine

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def treasury(self) -> str:
        return str(params(self._state).get("treasury") or "")

    def read_state(self) -> Json:
        return copy.deepcopy(self._state)

    def _lp(self, pool_address: str) -> TokenLedger:
        lp = self._lp_tokens.get(pool_address)
        if lp is None:
            raise RewardsError(INVALID_CONFIG, "unknown_lp_token", {"pool": pool_address})
        return lp

    def _ledger_for(self, token: str) -> TokenLedger:
        return self._reward_token if token == REWARD else self._lp(token)

    def _supply(self, category: str, pool_address: str) -> int:
        if category == CATEGORY_AMM:
            return int(self._lp(pool_address).balance_of(self.treasury))
        return int(self._minter_system.total_collateral(pool_address))

    def _require(self, operation: str, caller: str) -> None:
        self._gate.require(self._state, caller, OPERATION_CAPABILITIES[operation])

    def _preflight(self, transfers: List[Transfer]) -> None:
        """Reject pulls the sender cannot cover before anything is committed."""
        needed: Dict[tuple, int] = {}
        for t in transfers:
            if t.pull:
                key = (t.token, t.sender)
                needed[key] = needed.get(key, 0) + int(t.amount)
        for (token, sender), amt in needed.items():
            have = int(self._ledger_for(token).balance_of(sender))
            if have < amt:
                raise RewardsError(
                    INSUFFICIENT_BALANCE,
                    "principal_balance_too_low",
                    {"token": token, "account": sender, "required": amt, "balance": have},
                )

    def _move(self, t: Transfer, *, reverse: bool = False) -> bool:
        ledger = self._ledger_for(t.token)
        pull = t.pull != reverse
        sender, to = (t.to, t.sender) if reverse else (t.sender, t.to)
        if pull:
            return bool(ledger.transfer_from(sender, to, t.amount))
        return bool(ledger.transfer(sender, to, t.amount))

    def _execute(self, transfers: List[Transfer]) -> None:
        # Pulls into custody first: a failing pull must not follow a payout.
        ordered = [t for t in transfers if t.pull] + [t for t in transfers if not t.pull]
        done: List[Transfer] = []
        for t in ordered:
            try:
                ok = self._move(t)
            except Exception:
                self._unwind(done)
                raise
            if ok:
                done.append(t)
                continue
            self._unwind(done)
            raise RewardsError(
                TRANSFER_FAILED,
                "ledger_rejected_transfer",
                {"token": t.token, "from": t.sender, "to": t.to, "amount": t.amount},
            )

    def _unwind(self, done: List[Transfer]) -> None:
        """Send completed transfers back, newest first."""
        for t in reversed(done):
            if not self._move(t, reverse=True):
                raise RewardsError(
                    INVARIANT_VIOLATION,
                    "transfer_unwind_failed",
                    {"token": t.token, "from": t.to, "to": t.sender, "amount": t.amount},
                )

    def _emit(self, logger: logging.Logger, event: str, fields: Json) -> None:
        payload: Json = {"ts_ms": int(time.time() * 1000), **fields, "event": event}
        logger.info(canon_json(payload))

    def _publish(self, events: List[Json]) -> None:
        for ev in events:
            self.events.append(ev)
            self._emit(self._event_log, str(ev.get("event", "")), ev)

    def _run(self, name: str, op: Op) -> Json:
        working = copy.deepcopy(self._state)
        treasury = self.treasury
        guard = PayoutGuard(treasury=treasury, treasury_balance=int(self._reward_token.balance_of(treasury)))
        events: List[Json] = []

        try:
            receipt = op(working, guard, events)
            self._preflight(guard.transfers)
        except RewardsError as e:
            self._emit(self._log, "op_rejected", {"op": name, "code": e.code, "reason": e.reason})
            raise

        previous = self._state
        self._state = working
        try:
            self._execute(guard.transfers)
        except Exception:
            self._state = previous
            self._log.exception("transfer failed during %s; state restored", name)
            raise

        if self._store is not None:
            self._store.write(working, events)
        self._publish(events)
        return receipt

    # ------------------------------------------------------------------
    # Pool registry (owner)
    # ------------------------------------------------------------------

    def add_pool(self, caller: str, *, category: str, address: str, alloc_points: int, now: int) -> Json:
        self._require("add_pool", caller)
        return self._run(
            "add_pool",
            lambda st, guard, ev: pools.add_pool(
                st, category=category, address=address, alloc_points=alloc_points, now=now, events=ev
            ),
        )

    def remove_pool(self, caller: str, *, category: str, address: str, now: int) -> Json:
        self._require("remove_pool", caller)
        cat = require_category(category)
        require_pool(self._state, cat, address)
        supply = self._supply(cat, address)
        return self._run(
            "remove_pool",
            lambda st, guard, ev: pools.remove_pool(st, category=cat, address=address, now=now, supply=supply, events=ev),
        )

    def set_alloc_points(self, caller: str, *, category: str, address: str, alloc_points: int) -> Json:
        self._require("set_alloc_points", caller)
        return self._run(
            "set_alloc_points",
            lambda st, guard, ev: pools.set_alloc_points(
                st, category=category, address=address, alloc_points=alloc_points, events=ev
            ),
        )

    def refresh_all(self, *, category: str, now: int) -> Json:
        """Refresh every whitelisted pool of a category. Open to any caller."""
        cat = require_category(category)
        supplies = {addr: self._supply(cat, addr) for addr in pools.whitelisted_pools(self._state, cat)}

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            rewards = {
                addr: accumulator.refresh_pool(st, category=cat, pool_address=addr, supply=s, now=now, events=ev)
                for addr, s in supplies.items()
            }
            return {"applied": "REFRESH_ALL", "category": cat, "rewards": rewards}

        return self._run("refresh_all", _op)

    # ------------------------------------------------------------------
    # Configuration (owner)
    # ------------------------------------------------------------------

    def set_minter_ratio(self, caller: str, *, ratio_bps: int) -> Json:
        """Change the minter split. Applies from each pool's next refresh."""
        self._require("set_minter_ratio", caller)
        bps = int(ratio_bps)

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            p = params(st)
            require_uint(bps)
            if bps > BASIS_POINTS:
                raise RewardsError(INVALID_CONFIG, "ratio_out_of_range", {"ratio_bps": bps})
            validate_split(int(p["amm_ratio_bps"]), bps, int(p["vesting_ratio_bps"]))
            old = int(p["minter_ratio_bps"])
            p["minter_ratio_bps"] = bps
            ev.append({"event": "ratio_set", "category": CATEGORY_MINTER, "old": old, "new": bps})
            return {"applied": "MINTER_RATIO_SET", "ratio_bps": bps}

        return self._run("set_minter_ratio", _op)

    def _set_address(self, operation: str, caller: str, key: str, address: str) -> Json:
        self._require(operation, caller)
        addr = require_address(address, field_name=key)

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            p = params(st)
            old = str(p.get(key) or "")
            p[key] = addr
            ev.append({"event": "address_set", "role": key, "old": old, "new": addr})
            return {"applied": f"{key.upper()}_ADDRESS_SET", key: addr}

        return self._run(operation, _op)

    def set_minter_address(self, caller: str, *, address: str) -> Json:
        return self._set_address("set_minter_address", caller, "minter", address)

    def set_vault_address(self, caller: str, *, address: str) -> Json:
        return self._set_address("set_vault_address", caller, "vault", address)

    def set_genesis_timestamp(self, caller: str, *, genesis_ts: int, now: int) -> Json:
        """Move genesis. Only before the current genesis, and only into the future."""
        self._require("set_genesis_timestamp", caller)
        new_genesis = int(genesis_ts)
        now_i = int(now)

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            p = params(st)
            current = int(p["genesis_ts"])
            if now_i >= current:
                raise RewardsError(TEMPORAL_VIOLATION, "genesis_already_passed", {"now": now_i, "genesis_ts": current})
            if new_genesis <= now_i:
                raise RewardsError(TEMPORAL_VIOLATION, "genesis_not_in_future", {"now": now_i, "genesis_ts": new_genesis})
            p["genesis_ts"] = new_genesis
            n = pools.reset_checkpoints(st, now=now_i)
            ensure_vesting(st)["last_release_ts"] = new_genesis
            ev.append({"event": "genesis_set", "old": current, "new": new_genesis, "pools": n})
            return {"applied": "GENESIS_SET", "genesis_ts": new_genesis}

        return self._run("set_genesis_timestamp", _op)

    # ------------------------------------------------------------------
    # Vesting (owner)
    # ------------------------------------------------------------------

    def release_vested_rewards(self, caller: str, *, now: int) -> Json:
        self._require("release_vested_rewards", caller)
        return self._run("release_vested_rewards", lambda st, guard, ev: vesting.release(st, guard, now=now, events=ev))

    # ------------------------------------------------------------------
    # AMM LP (any account, acting for itself)
    # ------------------------------------------------------------------

    def deposit_amm(self, account: str, *, pool: str, amount: int, now: int) -> Json:
        acct = require_address(account, field_name="account")
        supply = self._supply(CATEGORY_AMM, pool) if pool in self._lp_tokens else 0

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            receipt = accumulator.deposit(
                st,
                guard,
                category=CATEGORY_AMM,
                pool_address=pool,
                account=acct,
                amount=amount,
                supply_before=supply,
                now=now,
                events=ev,
            )
            guard.move_principal(token=pool, sender=acct, to=guard.treasury, amount=amount, pull=True)
            return receipt

        return self._run("deposit_amm", _op)

    def withdraw_amm(self, account: str, *, pool: str, amount: int, now: int) -> Json:
        acct = require_address(account, field_name="account")
        supply = self._supply(CATEGORY_AMM, pool) if pool in self._lp_tokens else 0

        def _op(st: Json, guard: PayoutGuard, ev: List[Json]) -> Json:
            receipt = accumulator.withdraw(
                st,
                guard,
                category=CATEGORY_AMM,
                pool_address=pool,
                account=acct,
                amount=amount,
                supply_before=supply,
                now=now,
                events=ev,
            )
            guard.move_principal(token=pool, sender=guard.treasury, to=acct, amount=amount)
            return receipt

        return self._run("withdraw_amm", _op)

    def claim_amm(self, account: str, *, pool: str, now: int) -> Json:
        acct = require_address(account, field_name="account")
        supply = self._supply(CATEGORY_AMM, pool) if pool in self._lp_tokens else 0
        return self._run(
            "claim_amm",
            lambda st, guard, ev: accumulator.claim(
                st, guard, category=CATEGORY_AMM, pool_address=pool, account=acct, supply=supply, now=now, events=ev
            ),
        )

    # ------------------------------------------------------------------
    # Minter collateral (minter only; reported after the minter moved collateral)
    # ------------------------------------------------------------------

    def deposit_minter(self, caller: str, *, collateral: str, account: str, amount: int, now: int) -> Json:
        self._require("deposit_minter", caller)
        acct = require_address(account, field_name="account")
        amt = int(amount)
        require_uint(amt)
        total = self._supply(CATEGORY_MINTER, collateral)
        if total < amt:
            raise RewardsError(
                INVARIANT_VIOLATION,
                "collateral_total_below_deposit",
                {"collateral": collateral, "total": total, "amount": amt},
            )
        supply_before = total - amt
        return self._run(
            "deposit_minter",
            lambda st, guard, ev: accumulator.deposit(
                st,
                guard,
                category=CATEGORY_MINTER,
                pool_address=collateral,
                account=acct,
                amount=amt,
                supply_before=supply_before,
                now=now,
                events=ev,
            ),
        )

    def withdraw_minter(self, caller: str, *, collateral: str, account: str, amount: int, now: int) -> Json:
        self._require("withdraw_minter", caller)
        acct = require_address(account, field_name="account")
        amt = int(amount)
        require_uint(amt)
        supply_before = self._supply(CATEGORY_MINTER, collateral) + amt
        return self._run(
            "withdraw_minter",
            lambda st, guard, ev: accumulator.withdraw(
                st,
                guard,
                category=CATEGORY_MINTER,
                pool_address=collateral,
                account=acct,
                amount=amt,
                supply_before=supply_before,
                now=now,
                events=ev,
            ),
        )

    def claim_minter(self, caller: str, *, collateral: str, account: str, now: int) -> Json:
        self._require("claim_minter", caller)
        acct = require_address(account, field_name="account")
        supply = self._supply(CATEGORY_MINTER, collateral)
        return self._run(
            "claim_minter",
            lambda st, guard, ev: accumulator.claim(
                st, guard, category=CATEGORY_MINTER, pool_address=collateral, account=acct, supply=supply, now=now, events=ev
            ),
        )

    # ------------------------------------------------------------------
    # Queries (never mutate)
    # ------------------------------------------------------------------

    def pending_amm_rewards(self, account: str, *, pool: str, now: int) -> int:
        return accumulator.preview_pending(
            self._state,
            category=CATEGORY_AMM,
            pool_address=pool,
            account=account,
            supply=self._supply(CATEGORY_AMM, pool),
            now=now,
        )

    def pending_minter_rewards(self, account: str, *, collateral: str, now: int) -> int:
        return accumulator.preview_pending(
            self._state,
            category=CATEGORY_MINTER,
            pool_address=collateral,
            account=account,
            supply=self._supply(CATEGORY_MINTER, collateral),
            now=now,
        )

    def pending_vesting_rewards(self, *, now: int) -> int:
        return vesting.pending_vesting_reward(copy.deepcopy(self._state), now)

    def whitelisted_pools(self, category: str) -> List[str]:
        return pools.whitelisted_pools(self._state, category)

    def is_whitelisted(self, category: str, address: str) -> bool:
        return pools.is_whitelisted(self._state, category, address)

    def total_allocation_points(self, category: str) -> int:
        return pools.total_alloc_points(self._state, category)

    def pool_info(self, category: str, address: str) -> Json:
        return copy.deepcopy(require_pool(self._state, require_category(category), address))

    def position(self, category: str, pool: str, account: str) -> Json:
        return get_position(self._state, require_category(category), pool, account)

    def claimed_total(self, account: str) -> int:
        return claimed_total(self._state, account)

    def claimed_grand_total(self) -> int:
        return claimed_grand_total(self._state)

    def cumulative_emission(self, at: int) -> int:
        return schedule_from_state(self._state).cumulative_emission(at)

    def accrued_between(self, start: int, end: int) -> int:
        return schedule_from_state(self._state).accrued_between(start, end)
