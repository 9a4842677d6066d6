"""
Core types and pure helpers for the coverage pool.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point BASE, word bounds, record kinds
2. Exceptions: CoverPoolError and the domain-specific error kinds
3. Mutable state: ProviderAccount, Protection, PoolState
4. Immutable data structures: PoolPolicy, PoolRecord, PremiumSplit
5. Protocols: PoolView for read-only access, AssetCollaborator for transfers
6. Checked casts: bounded-width conversions that never wrap

All arithmetic is integer arithmetic. Fractions are expressed as multiples of
BASE (10**18 == 1.0) and every division floors.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Dict, List, Set, Optional, Any, Protocol, Tuple, runtime_checkable, TYPE_CHECKING
)

if TYPE_CHECKING:
    from .rate_curve import RateCurve
    from .settlement_schedule import SettlementSchedule


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scaling factor: BASE represents 1.0.
BASE = 10 ** 18

SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Rate curve shape limits.
MAX_COEFFICIENTS = 8
MAX_COEFFICIENT = 255
COEFFICIENT_SUM = 100

# A pool covers at most this many named concepts.
MAX_CONCEPTS = 15

# Bounded-integer domains. Timestamps are 32-bit, amounts 128-bit.
MAX_UINT32 = 2 ** 32 - 1
MAX_UINT128 = 2 ** 128 - 1

# The null identity. Protections can never be assigned to it.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Default policy values (see PoolPolicy).
DEFAULT_MAX_COVERAGE_DURATION = SECONDS_PER_YEAR
DEFAULT_COOLDOWN_PERIOD = SECONDS_PER_DAY
DEFAULT_WITHDRAW_DELAY = 7 * SECONDS_PER_DAY
DEFAULT_WITHDRAW_WINDOW = 2 * SECONDS_PER_DAY

# Record kinds. Plain strings so observers can filter without importing an enum.
RECORD_INITIALIZE = "initialize"
RECORD_PURCHASE = "purchase"
RECORD_PROVIDE = "provide"
RECORD_WITHDRAW_INITIATED = "withdraw_initiated"
RECORD_WITHDRAW = "withdraw"
RECORD_CLAIM = "claim"
RECORD_PREMIUM_CLAIM = "premium_claim"
RECORD_SWEEP = "sweep"
RECORD_FEE_WITHDRAWAL = "fee_withdrawal"
RECORD_TRANSFER = "transfer"
RECORD_APPROVAL = "approval"
RECORD_SETTLEMENT = "settlement"
RECORD_ARBITER_ACCEPTED = "arbiter_accepted"
RECORD_ARBITER_ABDICATED = "arbiter_abdicated"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class CoverPoolError(Exception):
    """Base exception for all coverage pool errors."""
    pass


class Uninitialized(CoverPoolError):
    """Raised when an operation runs before the pool has been initialized."""
    pass


class AlreadyInitialized(CoverPoolError):
    """Raised when a one-time setup step is attempted a second time."""
    pass


class InvalidCoefficients(CoverPoolError):
    """Raised when rate curve weights are out of range or do not sum to 100."""
    pass


class TooManyConcepts(CoverPoolError):
    """Raised when a pool is initialized with more than MAX_CONCEPTS concepts."""
    pass


class FeeCapExceeded(CoverPoolError):
    """Raised when the fee and rollover fractions together exceed BASE."""
    pass


class Unauthorized(CoverPoolError):
    """Raised when the caller does not hold the role an operation requires."""
    pass


class ArbiterInactive(CoverPoolError):
    """Raised when the arbiter has not accepted its role or has abdicated."""
    pass


class DeadlineExpired(CoverPoolError):
    """Raised when a purchase is submitted after its deadline."""
    pass


class InvalidConceptIndex(CoverPoolError):
    """Raised when a concept index does not name a covered concept."""
    pass


class Overutilized(CoverPoolError):
    """Raised when a purchase would sell more coverage than the cap allows."""
    pass


class PriceOutOfBounds(CoverPoolError):
    """Raised when a premium is below the pool minimum or above the buyer's maximum."""
    pass


class DurationExceeded(CoverPoolError):
    """Raised when requested coverage is longer than the policy maximum."""
    pass


class CastOverflow(CoverPoolError):
    """Raised when a value does not fit its bounded-width integer domain."""
    pass


class NotActive(CoverPoolError):
    """Raised when a protection is not (or no longer) in the ACTIVE state."""
    pass


class NoSettlement(CoverPoolError):
    """Raised when a claim has no settlement inside its coverage window."""
    pass


class SettlementExists(CoverPoolError):
    """Raised when sweeping a protection that has a qualifying settlement."""
    pass


class OutOfOrderSettlement(CoverPoolError):
    """Raised when a settlement time is not after the last recorded one."""
    pass


class StillLocked(CoverPoolError):
    """Raised when a time lock (cooldown, withdraw delay) has not yet elapsed."""
    pass


class WithdrawWindowExpired(CoverPoolError):
    """Raised when a withdrawal is attempted after its window has closed."""
    pass


class InsufficientLiquidity(CoverPoolError):
    """Raised when a withdrawal would leave reserves below utilized coverage."""
    pass


class InvalidRecipient(CoverPoolError):
    """Raised when a protection is transferred to the zero identity."""
    pass


class AssetTransferFailed(CoverPoolError):
    """Raised when the asset collaborator rejects a transfer."""
    pass


class ReentrantCall(CoverPoolError):
    """Raised when the asset collaborator calls a mutating operation mid-transfer."""
    pass


# ============================================================================
# CHECKED CASTS
# ============================================================================

def checked_u32(value: int, name: str = "value") -> int:
    """Return value unchanged if it fits an unsigned 32-bit word."""
    if value < 0 or value > MAX_UINT32:
        raise CastOverflow(f"{name}={value} does not fit in uint32")
    return value


def checked_u128(value: int, name: str = "value") -> int:
    """Return value unchanged if it fits an unsigned 128-bit word."""
    if value < 0 or value > MAX_UINT128:
        raise CastOverflow(f"{name}={value} does not fit in uint128")
    return value


def require_amount(value: Any, name: str = "amount") -> int:
    """
    Validate a caller-supplied amount.

    Amounts are plain ints (bool excluded), strictly positive and u128-bounded.

    Raises:
        ValueError: If value is not a positive int
        CastOverflow: If value exceeds the uint128 domain
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return checked_u128(value, name)


def is_zero_identity(identity: Optional[str]) -> bool:
    """True for the empty identity and ZERO_ADDRESS."""
    return not identity or not identity.strip() or identity == ZERO_ADDRESS


# ============================================================================
# ENUMS
# ============================================================================

class ProtectionStatus(Enum):
    """
    Lifecycle status of a protection.

    ACTIVE: Initial state. Coverage is live and counted in utilized.
    CLAIMED: Terminal. A settlement fell inside the window and the holder was paid.
    SWEPT: Terminal. Coverage expired unclaimed and the premium became pool income.
    """
    ACTIVE = "active"
    CLAIMED = "claimed"
    SWEPT = "swept"


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolPolicy:
    """
    Timing and capacity policy for a pool. Fixed for the pool's lifetime.

    Attributes:
        max_coverage_duration: Longest protection a buyer may purchase (seconds).
        cooldown_period: Grace window after expiry during which the arbiter may
            still record a late settlement, so sweeps are refused.
        withdraw_delay: Time between initiate_withdraw (or the last deposit)
            and the opening of the withdrawal window.
        withdraw_window: How long the withdrawal window stays open.
        max_utilization: Cap on utilized / reserves for new purchases, as a
            fraction of BASE. BASE means coverage may use all reserves.
    """
    max_coverage_duration: int = DEFAULT_MAX_COVERAGE_DURATION
    cooldown_period: int = DEFAULT_COOLDOWN_PERIOD
    withdraw_delay: int = DEFAULT_WITHDRAW_DELAY
    withdraw_window: int = DEFAULT_WITHDRAW_WINDOW
    max_utilization: int = BASE

    def __post_init__(self):
        if self.max_coverage_duration <= 0:
            raise ValueError(
                f"max_coverage_duration must be positive, got {self.max_coverage_duration}"
            )
        checked_u32(self.max_coverage_duration, "max_coverage_duration")
        if self.cooldown_period < 0:
            raise ValueError(f"cooldown_period must be non-negative, got {self.cooldown_period}")
        if self.withdraw_delay < 0:
            raise ValueError(f"withdraw_delay must be non-negative, got {self.withdraw_delay}")
        if self.withdraw_window <= 0:
            raise ValueError(f"withdraw_window must be positive, got {self.withdraw_window}")
        if not 0 < self.max_utilization <= BASE:
            raise ValueError(
                f"max_utilization must be in (0, BASE], got {self.max_utilization}"
            )


# ============================================================================
# MUTABLE POOL STATE
# ============================================================================

@dataclass(slots=True)
class ProviderAccount:
    """
    Per-provider accounting. Created lazily on first deposit, never deleted.

    Attributes:
        shares: Claim on pool reserves.
        total_token_seconds_provided: Integral of shares over time.
        premium_index: Snapshot of premiums_accum at the last premium claim.
        last_update: Timestamp of the last provider accrual.
        last_provide: Timestamp of the last deposit.
        withdraw_initiated: Timestamp of the last initiate_withdraw (None = never).
    """
    shares: int = 0
    total_token_seconds_provided: int = 0
    premium_index: int = 0
    last_update: int = 0
    last_provide: int = 0
    withdraw_initiated: Optional[int] = None


@dataclass(slots=True)
class Protection:
    """
    One purchased protection. Append-only; identified by its index (pid).

    Only status (once, out of ACTIVE) and holder (while ACTIVE) ever change.
    """
    coverage_amount: int
    paid: int
    holder: str
    start: int
    expiry: int
    concept_index: int
    status: ProtectionStatus = ProtectionStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is ProtectionStatus.ACTIVE


@dataclass
class PoolState:
    """
    The single aggregate holding everything a pool owns.

    Component functions (reserve, accrual, premiums) receive this object and
    mutate it in place. Only ProtectionRegistry hands it out, and it restores
    a snapshot whenever an operation fails.
    """
    # Ledger totals
    utilized: int = 0
    reserves: int = 0
    total_shares: int = 0
    min_pay: int = 0

    # Fee policy (fractions of BASE), fixed at initialization
    arbiter_fee: int = 0
    creator_fee: int = 0
    rollover: int = 0

    # Premium distribution accumulators
    premiums_accum: int = 0
    total_protection_seconds: int = 0
    last_updated_tps: int = 0

    # Pending fee balances owed to the roles
    arbiter_fees_pending: int = 0
    creator_fees_pending: int = 0

    # Collections
    providers: Dict[str, ProviderAccount] = field(default_factory=dict)
    protections: List[Protection] = field(default_factory=list)
    schedule: Optional[SettlementSchedule] = None
    operator_approvals: Dict[str, Set[str]] = field(default_factory=dict)

    # Identity and description
    initialized: bool = False
    curve: Optional[RateCurve] = None
    asset: Optional[AssetCollaborator] = None
    accepts_native: bool = False
    concepts: Tuple[str, ...] = ()
    description: str = ""
    creator: str = ""
    arbiter: str = ""
    arbiter_accepted: bool = False
    arbiter_abdicated: bool = False

    def provider(self, provider_id: str) -> ProviderAccount:
        """Return the provider's account, creating an empty one on first use."""
        account = self.providers.get(provider_id)
        if account is None:
            account = ProviderAccount()
            self.providers[provider_id] = account
        return account


# ============================================================================
# IMMUTABLE RESULTS AND RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PremiumSplit:
    """How a swept premium was divided between fees, reserves and providers."""
    arbiter_fees: int
    creator_fees: int
    rollover: int
    to_providers: int

    @property
    def total(self) -> int:
        return self.arbiter_fees + self.creator_fees + self.rollover + self.to_providers


@dataclass(frozen=True, slots=True)
class PoolRecord:
    """
    Immutable record emitted for off-system observers.

    Attributes:
        kind: Record kind (RECORD_* constant)
        timestamp: Pool time when the operation ran
        sequence_number: Monotonic position in the pool's record log
        fields: Record-specific values as a frozen tuple of (key, value) pairs
    """
    kind: str
    timestamp: int
    sequence_number: int
    fields: Tuple[Tuple[str, Any], ...] = ()

    @property
    def fields_dict(self) -> Dict[str, Any]:
        """Get fields as a dictionary for convenience."""
        return dict(self.fields)

    def __getitem__(self, key: str) -> Any:
        return self.fields_dict[key]

    def __repr__(self) -> str:
        w = 72

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        bar = "─" * w
        lines = [
            f"┌{bar}┐",
            f"│{pad(f' #{self.sequence_number} {self.kind} @ {self.timestamp}')}│",
            f"├{bar}┤",
        ]
        for key, value in self.fields:
            lines.append(f"│{pad(f'   {key:<16}: {value!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetCollaborator(Protocol):
    """
    The pay asset as seen by a pool.

    The collaborator acts on behalf of one pool account: transfer() debits
    that account, transfer_from() and deposit_native_as_asset() credit it.
    Implementations return False (or raise AssetTransferFailed) on failure.
    They may call back into the pool.
    """

    def transfer_from(self, source: str, dest: str, amount: int) -> bool:
        ...

    def transfer(self, dest: str, amount: int) -> bool:
        ...

    def deposit_native_as_asset(self, payer: str, amount: int) -> bool:
        ...


@runtime_checkable
class PoolView(Protocol):
    """
    Read-only interface to pool state.

    Functions accepting a PoolView declare their read-only intent. The
    ProtectionRegistry implements this protocol; tests may substitute a
    lightweight fake.
    """

    @property
    def current_time(self) -> int:
        """Return the pool's logical time."""
        ...

    @property
    def policy(self) -> PoolPolicy:
        ...

    def get_protection(self, pid: int) -> Protection:
        """Return a copy of protection pid."""
        ...

    def protection_count(self) -> int:
        ...

    def get_provider(self, provider_id: str) -> ProviderAccount:
        """Return a copy of the provider's account (empty if unknown)."""
        ...

    def has_settlement(self, concept_index: int, start: int, expiry: int) -> bool:
        ...
