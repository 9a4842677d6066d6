"""
registry.py - Stateful Protection Registry

The ProtectionRegistry is the central state manager of a coverage pool.
It is the only class that mutates pool state, so every change is controlled
and recorded.

Key responsibilities:
    - Implements the PoolView protocol for read-only access by pure functions
    - Runs the protection lifecycle: purchase -> claim | sweep, plus transfer
    - Runs the provider lifecycle: provide -> initiate_withdraw -> withdraw
    - Executes every operation atomically (snapshot, apply, restore on error)
    - Orders every operation checks -> effects -> asset interaction
    - Keeps an append-only record log as the audit trail
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import copy

from .core import (
    # Types
    PoolState, PoolPolicy, PoolRecord, Protection, ProtectionStatus,
    ProviderAccount, PremiumSplit, AssetCollaborator,
    # Constants
    BASE, MAX_CONCEPTS, ZERO_ADDRESS,
    RECORD_INITIALIZE, RECORD_PURCHASE, RECORD_PROVIDE, RECORD_WITHDRAW_INITIATED,
    RECORD_WITHDRAW, RECORD_CLAIM, RECORD_PREMIUM_CLAIM, RECORD_SWEEP,
    RECORD_FEE_WITHDRAWAL, RECORD_TRANSFER, RECORD_APPROVAL, RECORD_SETTLEMENT,
    RECORD_ARBITER_ACCEPTED, RECORD_ARBITER_ABDICATED,
    # Exceptions
    Uninitialized, AlreadyInitialized, TooManyConcepts, FeeCapExceeded,
    Unauthorized, ArbiterInactive, DeadlineExpired, InvalidConceptIndex,
    Overutilized, PriceOutOfBounds, NotActive, NoSettlement, SettlementExists,
    StillLocked, WithdrawWindowExpired, InsufficientLiquidity, InvalidRecipient,
    AssetTransferFailed, ReentrantCall,
    # Helpers
    checked_u32, require_amount, is_zero_identity,
)
from .rate_curve import RateCurve
from .settlement_schedule import SettlementSchedule
from . import accrual, premiums, pricing, reserve


RecordListener = Callable[[PoolRecord], None]


class ProtectionRegistry:
    """
    A single coverage pool: reserves, protections and settlement schedule.

    Implements the PoolView protocol, so the registry can be handed to pure
    functions (e.g. lifecycle.find_sweepable) that only read from it.

    Design Principles:
        - Atomic: an operation either completes or leaves no trace. State
          and record log are restored when any exception escapes.
        - Checks-effects-interactions: the asset collaborator is called at
          most once per operation, last, after all internal state is final.
          Views called from inside the collaborator see that final state;
          mutating operations called from inside it raise ReentrantCall.
        - One clock: `now` is read once per operation from current_time,
          which only advance_time() can move, and only forward.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own registry.

    Performance:
        Rollback snapshots deep-copy the whole PoolState, protections
        included, so every mutating operation (and pending_premiums) costs
        O(number of protections).

    Example:
        pool = ProtectionRegistry("pool", initial_time=1_700_000_000, verbose=False)
        asset = InMemoryAsset("USDC", pool_account="pool")
        pool.initialize(asset, (0, 100), 0, 0, 0, 0, ["exploit"], "demo",
                        creator="dao", arbiter="dao")
        pool.provide("lp", 1_000 * BASE)
        pid = pool.purchase("buyer", 0, 100 * BASE, 86_400, max_pay=BASE,
                            deadline=1_700_000_100)
    """

    def __init__(
        self,
        name: str,
        initial_time: int = 0,
        policy: Optional[PoolPolicy] = None,
        verbose: bool = True,
    ):
        """
        Create an uninitialized pool.

        Args:
            name: Pool identifier; also the pool's account at the asset
            initial_time: Starting logical time in seconds (default: 0)
            policy: Timing and capacity policy (default: PoolPolicy())
            verbose: Print each record as it is published (default: True)
        """
        if not name or not name.strip():
            raise ValueError("name cannot be empty")
        self.name = name
        self.address = name
        self._current_time: int = checked_u32(initial_time, "initial_time")
        self._policy = policy or PoolPolicy()
        self.verbose = verbose
        self.state = PoolState(last_updated_tps=self._current_time)
        self.record_log: List[PoolRecord] = []
        self._listeners: List[RecordListener] = []
        self._interacting = False

    # ========================================================================
    # PoolView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current logical time of the pool."""
        return self._current_time

    @property
    def policy(self) -> PoolPolicy:
        return self._policy

    def get_protection(self, pid: int) -> Protection:
        """Return a copy of protection pid."""
        return replace(self._protection(pid))

    def protection_count(self) -> int:
        return len(self.state.protections)

    def get_provider(self, provider_id: str) -> ProviderAccount:
        """Return a copy of the provider's account (an empty one if unknown)."""
        account = self.state.providers.get(provider_id)
        return replace(account) if account is not None else ProviderAccount()

    def has_settlement(self, concept_index: int, start: int, expiry: int) -> bool:
        state = self._require_initialized()
        self._require_concept(concept_index)
        return state.schedule.has_settlement(concept_index, start, expiry)

    # ========================================================================
    # OTHER VIEWS
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self.state.initialized

    @property
    def utilized(self) -> int:
        return self.state.utilized

    @property
    def reserves(self) -> int:
        return self.state.reserves

    @property
    def total_shares(self) -> int:
        return self.state.total_shares

    @property
    def premiums_accum(self) -> int:
        return self.state.premiums_accum

    @property
    def total_protection_seconds(self) -> int:
        return self.state.total_protection_seconds

    @property
    def concepts(self) -> tuple:
        return self.state.concepts

    @property
    def description(self) -> str:
        return self.state.description

    @property
    def creator(self) -> str:
        return self.state.creator

    @property
    def arbiter(self) -> str:
        return self.state.arbiter

    @property
    def arbiter_accepted(self) -> bool:
        return self.state.arbiter_accepted

    @property
    def arbiter_abdicated(self) -> bool:
        return self.state.arbiter_abdicated

    def coefficients(self) -> tuple:
        """The rate curve weights, trimmed."""
        return self._require_initialized().curve.coefficients()

    def settlement_times(self, concept_index: int) -> tuple:
        state = self._require_initialized()
        self._require_concept(concept_index)
        return state.schedule.times(concept_index)

    def protections_of(self, holder: str) -> List[int]:
        """pids currently held by holder, in purchase order."""
        return [pid for pid, p in enumerate(self.state.protections) if p.holder == holder]

    def is_approved_for_all(self, holder: str, operator: str) -> bool:
        return operator in self.state.operator_approvals.get(holder, ())

    def utilization(self) -> int:
        """utilized / reserves as a fraction of BASE (0 for an empty pool)."""
        if self.state.reserves == 0:
            return 0
        return self.state.utilized * BASE // self.state.reserves

    def quote(self, concept_index: int, coverage_amount: int, duration: int) -> int:
        """Premium purchase() would charge right now. Does not change state."""
        state = self._require_initialized()
        self._require_concept(concept_index)
        require_amount(coverage_amount, "coverage_amount")
        return pricing.price(
            state.curve, coverage_amount, duration,
            state.utilized, state.reserves, self._policy.max_coverage_duration,
        )

    def underlying_balance(self, provider_id: str) -> int:
        """Reserves the provider's shares would redeem for right now."""
        return reserve.underlying_of(self.state, provider_id)

    def pending_premiums(self, provider_id: str) -> int:
        """
        Premium the provider would receive from claim_premiums() right now.

        Accrual is projected on a snapshot, so the live state is untouched.
        """
        if provider_id not in self.state.providers:
            return 0
        preview = self.snapshot()
        accrual.accrue_provider(preview, provider_id, self._current_time)
        return premiums.claimable(preview, provider_id)

    def pending_fees(self) -> Dict[str, int]:
        return {
            'arbiter': self.state.arbiter_fees_pending,
            'creator': self.state.creator_fees_pending,
        }

    def records(self, kind: Optional[str] = None) -> List[PoolRecord]:
        """Records in log order, optionally filtered by kind."""
        if kind is None:
            return list(self.record_log)
        return [r for r in self.record_log if r.kind == kind]

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the pool's accounting invariants.

        Verifies:
        - reserves >= utilized
        - the sum of provider shares equals total_shares
        - utilized equals the coverage of all ACTIVE protections

        Returns:
            Dict with keys 'valid' (bool) and 'discrepancies' (list of dicts)

        Example:
            result = pool.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        state = self.state
        discrepancies = []

        if state.reserves < state.utilized:
            discrepancies.append({
                'invariant': 'reserves >= utilized',
                'reserves': state.reserves,
                'utilized': state.utilized,
            })

        share_sum = sum(a.shares for _, a in sorted(state.providers.items()))
        if share_sum != state.total_shares:
            discrepancies.append({
                'invariant': 'sum(shares) == total_shares',
                'sum': share_sum,
                'total_shares': state.total_shares,
            })

        active = sum(p.coverage_amount for p in state.protections if p.is_active)
        if active != state.utilized:
            discrepancies.append({
                'invariant': 'utilized == active coverage',
                'active_coverage': active,
                'utilized': state.utilized,
            })

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: int) -> None:
        """
        Advance the pool's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
            CastOverflow: If new_time does not fit in uint32
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = checked_u32(new_time, "time")

    # ========================================================================
    # LISTENERS
    # ========================================================================

    def subscribe(self, listener: RecordListener) -> None:
        """Call listener with every record published by a completed operation."""
        self._listeners.append(listener)

    # ========================================================================
    # INITIALIZATION (Mutating)
    # ========================================================================

    def initialize(
        self,
        asset: AssetCollaborator,
        coefficients: Union[Sequence[int], int],
        creator_fee: int,
        arbiter_fee: int,
        rollover: int,
        min_pay: int,
        concepts: Sequence[str],
        description: str,
        creator: str,
        arbiter: str,
        accepts_native: bool = False,
    ) -> None:
        """
        One-time pool setup.

        Args:
            asset: Pay-asset collaborator bound to this pool's address
            coefficients: Rate curve weights, as a sequence or packed word
            creator_fee: Creator's fraction of swept premiums (of BASE)
            arbiter_fee: Arbiter's fraction of swept premiums (of BASE)
            rollover: Fraction of swept premiums added to reserves (of BASE)
            min_pay: Smallest premium the pool accepts
            concepts: Names of the covered risk concepts (at most 15)
            description: Free-form pool description
            creator: Creator identity (receives creator fees)
            arbiter: Arbiter identity (records settlements, receives fees)
            accepts_native: Whether buyers and providers may pay in native
                            currency wrapped by the asset

        Raises:
            AlreadyInitialized: If called twice
            InvalidCoefficients: If the curve is malformed
            TooManyConcepts: If more than MAX_CONCEPTS concepts are given
            FeeCapExceeded: If creator_fee + arbiter_fee + rollover > BASE
            ValueError: For malformed identities, fractions or an empty concept list
        """
        with self._atomic():
            state = self.state
            if state.initialized:
                raise AlreadyInitialized(f"pool {self.name} is already initialized")

            if not isinstance(asset, AssetCollaborator):
                raise ValueError(f"asset does not implement AssetCollaborator: {asset!r}")
            bound_to = getattr(asset, 'pool_account', self.address)
            if bound_to != self.address:
                raise ValueError(f"asset is bound to {bound_to}, not {self.address}")

            if isinstance(coefficients, int):
                curve = RateCurve.from_packed(coefficients)
            else:
                curve = RateCurve(tuple(coefficients))

            concepts = tuple(concepts)
            if not concepts:
                raise ValueError("at least one concept is required")
            if len(concepts) > MAX_CONCEPTS:
                raise TooManyConcepts(f"{len(concepts)} concepts exceeds maximum {MAX_CONCEPTS}")

            for label, fraction in (('creator_fee', creator_fee),
                                    ('arbiter_fee', arbiter_fee),
                                    ('rollover', rollover)):
                if fraction < 0:
                    raise ValueError(f"{label} must be non-negative, got {fraction}")
            if creator_fee + arbiter_fee + rollover > BASE:
                raise FeeCapExceeded(
                    f"creator_fee + arbiter_fee + rollover = "
                    f"{creator_fee + arbiter_fee + rollover} exceeds BASE"
                )
            if min_pay < 0:
                raise ValueError(f"min_pay must be non-negative, got {min_pay}")
            if is_zero_identity(creator):
                raise ValueError("creator cannot be the zero identity")
            if is_zero_identity(arbiter):
                raise ValueError("arbiter cannot be the zero identity")

            state.asset = asset
            state.curve = curve
            state.creator_fee = creator_fee
            state.arbiter_fee = arbiter_fee
            state.rollover = rollover
            state.min_pay = min_pay
            state.concepts = concepts
            state.description = description
            state.creator = creator
            state.arbiter = arbiter
            state.accepts_native = accepts_native
            state.schedule = SettlementSchedule(len(concepts))
            state.last_updated_tps = self._current_time
            state.arbiter_accepted = creator == arbiter
            state.initialized = True

            self._emit(
                RECORD_INITIALIZE,
                coefficients=curve.coefficients(),
                concepts=concepts,
                creator=creator,
                arbiter=arbiter,
                arbiter_accepted=state.arbiter_accepted,
            )

    # ========================================================================
    # PROVIDER OPERATIONS (Mutating)
    # ========================================================================

    def provide(self, caller: str, amount: int, pay_native: bool = False) -> int:
        """
        Deposit amount into the reserves and mint shares.

        Any premium owed to the provider is settled in the same operation:
        netted against the deposit, or reinvested as part of it when paying
        in native currency. The asset moves at most once.

        Returns:
            Shares minted.

        Raises:
            ValueError: If amount is not positive or too small to mint a share
            AssetTransferFailed: If the deposit cannot be collected
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            require_amount(amount, "amount")
            self._require_native_allowed(pay_native)

            accrual.accrue_provider(state, caller, now)
            owed = premiums.claim(state, caller)
            # Native deposits cannot be netted against an asset payout.
            deposited = amount + owed if pay_native else amount
            minted = reserve.enter(state, caller, deposited, now)
            if minted == 0:
                raise ValueError(f"deposit of {amount} is too small to mint a share")

            self._emit(RECORD_PROVIDE, provider=caller, amount=deposited, shares=minted)
            if owed:
                self._emit(RECORD_PREMIUM_CLAIM, provider=caller, amount=owed,
                           reinvested=pay_native)

            if pay_native:
                self._collect(caller, amount, pay_native=True)
            elif amount >= owed:
                self._collect(caller, amount - owed)
            else:
                self._pay(caller, owed - amount)
            return minted

    def initiate_withdraw(self, caller: str) -> None:
        """
        Start the withdrawal timer for the caller's shares.

        Withdrawals open withdraw_delay seconds later and stay open for
        withdraw_window seconds.
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            account = state.providers.get(caller)
            if account is None or account.shares == 0:
                raise InsufficientLiquidity(f"{caller} has no shares to withdraw")
            account.withdraw_initiated = now
            self._emit(RECORD_WITHDRAW_INITIATED, provider=caller)

    def withdraw(self, caller: str, shares: int) -> int:
        """
        Burn shares and pay out the matching reserves plus any owed premium.

        Returns:
            Underlying amount released from reserves.

        Raises:
            StillLocked: If the withdraw delay has not elapsed
            WithdrawWindowExpired: If the withdraw window has closed
            InsufficientLiquidity: If the caller lacks the shares, or the
                withdrawal would leave reserves below utilized coverage
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            require_amount(shares, "shares")

            account = state.providers.get(caller)
            held = account.shares if account is not None else 0
            if shares > held:
                raise InsufficientLiquidity(f"{caller} holds {held} shares, cannot withdraw {shares}")
            self._check_withdraw_window(account, now)

            accrual.accrue_provider(state, caller, now)
            underlying = reserve.exit(state, caller, shares)
            if state.reserves < state.utilized:
                raise InsufficientLiquidity(
                    f"withdrawal leaves reserves {state.reserves} below utilized {state.utilized}"
                )
            owed = premiums.claim(state, caller)

            self._emit(RECORD_WITHDRAW, provider=caller, shares=shares, amount=underlying)
            if owed:
                self._emit(RECORD_PREMIUM_CLAIM, provider=caller, amount=owed)

            self._pay(caller, underlying + owed)
            return underlying

    def claim_premiums(self, caller: str) -> int:
        """Pay the caller's accrued premium share. Returns the amount paid."""
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            if caller not in state.providers:
                return 0

            accrual.accrue_provider(state, caller, now)
            owed = premiums.claim(state, caller)
            if owed == 0:
                return 0

            self._emit(RECORD_PREMIUM_CLAIM, provider=caller, amount=owed)
            self._pay(caller, owed)
            return owed

    # ========================================================================
    # PROTECTION OPERATIONS (Mutating)
    # ========================================================================

    def purchase(
        self,
        caller: str,
        concept_index: int,
        coverage_amount: int,
        duration: int,
        max_pay: int,
        deadline: int,
        pay_native: bool = False,
    ) -> int:
        """
        Buy coverage against one concept, starting now.

        Args:
            caller: Buyer; becomes the protection's holder
            concept_index: Covered concept
            coverage_amount: Payout if a settlement falls inside the window
            duration: Coverage length in seconds
            max_pay: Most the buyer is willing to pay
            deadline: Latest time at which the purchase may execute
            pay_native: Pay with native currency wrapped by the asset

        Returns:
            pid of the new protection.

        Raises:
            DeadlineExpired, InvalidConceptIndex, ArbiterInactive,
            DurationExceeded, CastOverflow, Overutilized, PriceOutOfBounds,
            AssetTransferFailed
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            if now > deadline:
                raise DeadlineExpired(f"deadline {deadline} passed at {now}")
            self._require_concept(concept_index)
            if not state.arbiter_accepted or state.arbiter_abdicated:
                raise ArbiterInactive("pool has no active arbiter")
            require_amount(coverage_amount, "coverage_amount")
            if duration <= 0:
                raise ValueError(f"duration must be positive, got {duration}")
            self._require_native_allowed(pay_native)

            premium = pricing.price(
                state.curve, coverage_amount, duration,
                state.utilized, state.reserves, self._policy.max_coverage_duration,
            )

            new_utilized = state.utilized + coverage_amount
            capacity = state.reserves * self._policy.max_utilization // BASE
            if new_utilized > capacity:
                raise Overutilized(
                    f"utilized {new_utilized} would exceed capacity {capacity}"
                )
            if premium < state.min_pay or premium > max_pay:
                raise PriceOutOfBounds(
                    f"premium {premium} outside [{state.min_pay}, {max_pay}]"
                )
            expiry = checked_u32(now + duration, "expiry")

            pid = len(state.protections)
            state.protections.append(Protection(
                coverage_amount=coverage_amount,
                paid=premium,
                holder=caller,
                start=now,
                expiry=expiry,
                concept_index=concept_index,
            ))
            state.utilized = new_utilized

            self._emit(
                RECORD_PURCHASE,
                pid=pid,
                holder=caller,
                concept_index=concept_index,
                coverage_amount=coverage_amount,
                paid=premium,
                start=now,
                expiry=expiry,
            )

            self._collect(caller, premium, pay_native)
            return pid

    def claim(self, caller: str, pid: int) -> int:
        """
        Pay out a protection whose window contains a settlement.

        The holder receives coverage_amount plus the premium paid.

        Returns:
            Amount paid to the holder.

        Raises:
            Unauthorized: Caller is neither holder nor approved operator
            NotActive: Protection already claimed or swept
            NoSettlement: No settlement inside [start, expiry]
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            protection = self._protection(pid)
            accrual.accrue_global(state, now)

            if not self._is_holder_or_operator(protection.holder, caller):
                raise Unauthorized(f"{caller} may not claim protection {pid}")
            if not protection.is_active:
                raise NotActive(f"protection {pid} is {protection.status.value}")
            if not state.schedule.has_settlement(
                protection.concept_index, protection.start, protection.expiry
            ):
                raise NoSettlement(
                    f"no settlement for concept {protection.concept_index} in "
                    f"[{protection.start}, {protection.expiry}]"
                )

            protection.status = ProtectionStatus.CLAIMED
            state.utilized -= protection.coverage_amount
            state.reserves -= protection.coverage_amount
            payout = protection.coverage_amount + protection.paid

            self._emit(
                RECORD_CLAIM,
                pid=pid,
                holder=protection.holder,
                coverage_amount=protection.coverage_amount,
                paid=protection.paid,
                amount=payout,
            )

            self._pay(protection.holder, payout)
            return payout

    def sweep(self, caller: str, pid: int) -> PremiumSplit:
        """
        Retire an expired, unclaimed protection and distribute its premium.

        Returns:
            How the premium was split.

        Raises:
            NotActive: Protection already claimed or swept
            StillLocked: Cooldown after expiry has not elapsed
            SettlementExists: A settlement qualifies; use claim() instead
        """
        with self._atomic():
            now = self._current_time
            self._require_initialized()
            return self._sweep_one(caller, pid, now)

    def sweep_many(self, caller: str, pids: Iterable[int]) -> List[PremiumSplit]:
        """Sweep several protections atomically: all succeed or none do."""
        with self._atomic():
            now = self._current_time
            self._require_initialized()
            return [self._sweep_one(caller, pid, now) for pid in pids]

    def transfer(self, caller: str, pid: int, to: str) -> None:
        """
        Reassign an active, unexpired protection to a new holder.

        Raises:
            NotActive: Protection is not ACTIVE or has expired
            Unauthorized: Caller is neither holder nor approved operator
            InvalidRecipient: to is the zero identity
        """
        with self._atomic():
            now = self._current_time
            self._require_initialized()
            protection = self._protection(pid)

            if not protection.is_active:
                raise NotActive(f"protection {pid} is {protection.status.value}")
            if now >= protection.expiry:
                raise NotActive(f"protection {pid} expired at {protection.expiry}")
            if not self._is_holder_or_operator(protection.holder, caller):
                raise Unauthorized(f"{caller} may not transfer protection {pid}")
            if is_zero_identity(to):
                raise InvalidRecipient(f"cannot transfer protection {pid} to {to!r}")

            previous = protection.holder
            protection.holder = to
            self._emit(RECORD_TRANSFER, pid=pid, source=previous, dest=to, operator=caller)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        """Allow (or stop allowing) operator to claim and transfer caller's protections."""
        with self._atomic():
            self._require_initialized()
            if operator == caller:
                raise ValueError("cannot set approval for self")
            if is_zero_identity(operator):
                raise InvalidRecipient("operator cannot be the zero identity")

            approvals = self.state.operator_approvals.setdefault(caller, set())
            if approved:
                approvals.add(operator)
            else:
                approvals.discard(operator)
            self._emit(RECORD_APPROVAL, holder=caller, operator=operator, approved=approved)

    # ========================================================================
    # ARBITER AND CREATOR OPERATIONS (Mutating)
    # ========================================================================

    def accept_arbiter(self, caller: str) -> None:
        """The named arbiter takes up the role. Purchases need an accepted arbiter."""
        with self._atomic():
            state = self._require_initialized()
            self._require_arbiter(caller)
            if state.arbiter_abdicated:
                raise ArbiterInactive("arbiter has abdicated")
            if state.arbiter_accepted:
                raise AlreadyInitialized("arbiter role already accepted")
            state.arbiter_accepted = True
            self._emit(RECORD_ARBITER_ACCEPTED, arbiter=caller)

    def abdicate_arbiter(self, caller: str) -> None:
        """Permanently give up the arbiter role. Disables purchases and settlements."""
        with self._atomic():
            state = self._require_initialized()
            self._require_arbiter(caller)
            if state.arbiter_abdicated:
                raise ArbiterInactive("arbiter has already abdicated")
            state.arbiter_abdicated = True
            self._emit(RECORD_ARBITER_ABDICATED, arbiter=caller)

    def add_settlement(
        self,
        caller: str,
        concept_index: int,
        time: int,
        allow_resort: bool = False,
    ) -> None:
        """
        Attest that a concept's risk was realized at time.

        Raises:
            Unauthorized: Caller is not the arbiter
            ArbiterInactive: Arbiter has not accepted or has abdicated
            InvalidConceptIndex: Unknown concept
            OutOfOrderSettlement: time not after the latest settlement
                                  and allow_resort is False
            ValueError: time lies in the future
        """
        with self._atomic():
            now = self._current_time
            state = self._require_initialized()
            self._require_arbiter(caller)
            if not state.arbiter_accepted or state.arbiter_abdicated:
                raise ArbiterInactive("pool has no active arbiter")
            self._require_concept(concept_index)
            if time > now:
                raise ValueError(f"settlement time {time} is in the future (now={now})")

            state.schedule.add_settlement(concept_index, time, allow_resort)
            self._emit(
                RECORD_SETTLEMENT,
                concept_index=concept_index,
                time=time,
                resorted=allow_resort,
            )

    def withdraw_arbiter_fees(self, caller: str) -> int:
        """Pay out the arbiter's accrued fees. Returns the amount paid."""
        with self._atomic():
            state = self._require_initialized()
            self._require_arbiter(caller)
            amount = state.arbiter_fees_pending
            if amount == 0:
                return 0
            state.arbiter_fees_pending = 0
            self._emit(RECORD_FEE_WITHDRAWAL, role="arbiter", recipient=caller, amount=amount)
            self._pay(caller, amount)
            return amount

    def withdraw_creator_fees(self, caller: str) -> int:
        """Pay out the creator's accrued fees. Returns the amount paid."""
        with self._atomic():
            state = self._require_initialized()
            if caller != state.creator:
                raise Unauthorized(f"{caller} is not the creator")
            amount = state.creator_fees_pending
            if amount == 0:
                return 0
            state.creator_fees_pending = 0
            self._emit(RECORD_FEE_WITHDRAWAL, role="creator", recipient=caller, amount=amount)
            self._pay(caller, amount)
            return amount

    # ========================================================================
    # CLONING
    # ========================================================================

    def snapshot(self) -> PoolState:
        """
        Deep copy of the pool state. The asset collaborator is shared, not copied.
        """
        return copy.deepcopy(self.state, {id(self.state.asset): self.state.asset})

    def clone(self) -> ProtectionRegistry:
        """
        Create a fully independent copy of this registry, asset included.

        Listeners are not carried over. Useful for what-if simulations.
        """
        cloned = ProtectionRegistry.__new__(ProtectionRegistry)
        cloned.name = self.name
        cloned.address = self.address
        cloned._current_time = self._current_time
        cloned._policy = self._policy
        cloned.verbose = self.verbose
        cloned.state = copy.deepcopy(self.state)
        cloned.record_log = list(self.record_log)
        cloned._listeners = []
        cloned._interacting = False
        return cloned

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @contextmanager
    def _atomic(self):
        """
        Run an operation all-or-nothing.

        The state and the record log length are captured on entry and put back
        if an exception escapes. Records are published to listeners only once
        the operation completes, so a rolled back operation is never observed.

        Raises:
            ReentrantCall: If entered while the asset collaborator is running
        """
        if self._interacting:
            raise ReentrantCall("mutating operation called during an asset transfer")
        saved_state = self.snapshot()
        log_length = len(self.record_log)
        try:
            yield
        except Exception:
            self.state = saved_state
            del self.record_log[log_length:]
            raise
        self._publish(log_length)

    @contextmanager
    def _interaction(self):
        """Mark the asset collaborator as running for the enclosed call."""
        self._interacting = True
        try:
            yield
        finally:
            self._interacting = False

    def _publish(self, start: int) -> None:
        for record in self.record_log[start:]:
            if self.verbose:
                print(repr(record))
            for listener in self._listeners:
                listener(record)

    def _emit(self, kind: str, **fields: Any) -> PoolRecord:
        record = PoolRecord(
            kind=kind,
            timestamp=self._current_time,
            sequence_number=len(self.record_log),
            fields=tuple(fields.items()),
        )
        self.record_log.append(record)
        return record

    def _require_initialized(self) -> PoolState:
        if not self.state.initialized:
            raise Uninitialized(f"pool {self.name} is not initialized")
        return self.state

    def _require_concept(self, concept_index: int) -> None:
        if not 0 <= concept_index < len(self.state.concepts):
            raise InvalidConceptIndex(
                f"concept {concept_index} out of range 0..{len(self.state.concepts) - 1}"
            )

    def _require_arbiter(self, caller: str) -> None:
        if caller != self.state.arbiter:
            raise Unauthorized(f"{caller} is not the arbiter")

    def _require_native_allowed(self, pay_native: bool) -> None:
        if pay_native and not self.state.accepts_native:
            raise ValueError(f"pool {self.name} does not accept native currency")

    def _protection(self, pid: int) -> Protection:
        if not 0 <= pid < len(self.state.protections):
            raise ValueError(f"protection {pid} does not exist")
        return self.state.protections[pid]

    def _is_holder_or_operator(self, holder: str, caller: str) -> bool:
        return caller == holder or self.is_approved_for_all(holder, caller)

    def _check_withdraw_window(self, account: ProviderAccount, now: int) -> None:
        delay = self._policy.withdraw_delay
        if account.withdraw_initiated is None:
            raise StillLocked("withdrawal has not been initiated")
        opens = max(account.withdraw_initiated, account.last_provide) + delay
        if now < opens:
            raise StillLocked(f"withdrawal opens at {opens} (now={now})")
        closes = account.withdraw_initiated + delay + self._policy.withdraw_window
        if now > closes:
            raise WithdrawWindowExpired(f"withdrawal window closed at {closes} (now={now})")

    def _sweep_one(self, caller: str, pid: int, now: int) -> PremiumSplit:
        state = self.state
        protection = self._protection(pid)
        accrual.accrue_global(state, now)

        if not protection.is_active:
            raise NotActive(f"protection {pid} is {protection.status.value}")
        unlocks = protection.expiry + self._policy.cooldown_period
        if now <= unlocks:
            raise StillLocked(f"protection {pid} can be swept after {unlocks} (now={now})")
        if state.schedule.has_settlement(
            protection.concept_index, protection.start, protection.expiry
        ):
            raise SettlementExists(f"protection {pid} has a settlement; claim it instead")

        protection.status = ProtectionStatus.SWEPT
        state.utilized -= protection.coverage_amount
        split = premiums.settle_sweep_or_claim(state, protection.paid)

        self._emit(
            RECORD_SWEEP,
            pid=pid,
            sweeper=caller,
            coverage_amount=protection.coverage_amount,
            paid=protection.paid,
            arbiter_fees=split.arbiter_fees,
            creator_fees=split.creator_fees,
            rollover=split.rollover,
            to_providers=split.to_providers,
        )
        return split

    def _collect(self, payer: str, amount: int, pay_native: bool = False) -> None:
        """Pull amount from payer into the pool. Always an operation's last step."""
        if amount == 0:
            return
        asset = self.state.asset
        with self._interaction():
            if pay_native:
                ok = asset.deposit_native_as_asset(payer, amount)
            else:
                ok = asset.transfer_from(payer, self.address, amount)
        if not ok:
            raise AssetTransferFailed(f"could not collect {amount} from {payer}")

    def _pay(self, recipient: str, amount: int) -> None:
        """Send amount from the pool to recipient. Always an operation's last step."""
        if amount == 0:
            return
        with self._interaction():
            ok = self.state.asset.transfer(recipient, amount)
        if not ok:
            raise AssetTransferFailed(f"could not pay {amount} to {recipient}")

    def __repr__(self) -> str:
        return (
            f"ProtectionRegistry({self.name}, reserves={self.state.reserves}, "
            f"utilized={self.state.utilized}, protections={len(self.state.protections)})"
        )
