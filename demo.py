#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Coverage Pool Step by Step

A walk through one pool's life, from setup to the last provider leaving.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Initializing a pool, the arbiter handshake, providing capital
  4-6:  Coverage     - Quoting, purchasing, rejected purchases and atomicity
  7-8:  Settlement   - Recording a realized risk, claiming a payout
  9-10: Expiry       - The SweepEngine, premium distribution to providers
  11-12: Exit        - Fee withdrawal, the provider withdrawal window
  13:   Audit        - Invariants and the record log

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from coverpool import (
    # Core classes
    ProtectionRegistry, InMemoryAsset, SweepEngine,
    # Constants
    BASE, SECONDS_PER_DAY,
    # Records
    RECORD_PURCHASE, RECORD_SWEEP,
    # Errors
    CoverPoolError, Overutilized, StillLocked,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Timing
    start_time: int = 1_735_722_000          # 2025-01-01 09:00 UTC
    day: int = SECONDS_PER_DAY

    # Pool setup
    curve: tuple = (0, 20, 80)               # 20% linear + 80% quadratic, per year
    creator_fee: int = BASE // 20            # 5%
    arbiter_fee: int = BASE // 10            # 10%
    rollover: int = BASE // 5                # 20%
    concepts: tuple = ("exploit", "oracle")

    # Capital
    alice_deposit: int = 600 * BASE
    bob_deposit: int = 400 * BASE
    wallet_funds: int = 10_000 * BASE

    # Coverage
    carol_coverage: int = 300 * BASE
    carol_days: int = 7
    dave_coverage: int = 200 * BASE
    dave_days: int = 3


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fmt(amount: int) -> str:
    """Render a BASE-scaled amount with four decimals."""
    return f"{amount / BASE:,.4f}"


def day_of(pool: ProtectionRegistry) -> str:
    return f"day {(pool.current_time - CONFIG.start_time) / CONFIG.day:g}"


def show_pool(pool: ProtectionRegistry, asset: InMemoryAsset):
    print(f"Clock:          {day_of(pool)}")
    print(f"Reserves:       {fmt(pool.reserves)}")
    print(f"Utilized:       {fmt(pool.utilized)}")
    print(f"Utilization:    {pool.utilization() * 100 / BASE:.2f}%")
    print(f"Total shares:   {fmt(pool.total_shares)}")
    print(f"Pool balance:   {fmt(asset.balance_of(pool.address))}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_initialize():
    """Create and initialize a pool."""
    step_header(1, "Initializing a Pool",
        "A pool is configured exactly once: curve, fees, concepts, roles.")

    print("""
    A pool covers a fixed list of risk CONCEPTS. It is priced by a RATE CURVE:
    polynomial weights in utilization, in percent per year. Swept premiums are
    split between the CREATOR, the ARBITER, a ROLLOVER into reserves, and the
    providers. verbose=True prints every record the pool commits.
    """)

    wait_for_enter()

    asset = InMemoryAsset("USDC", pool_account="pool")
    for wallet in ("alice", "bob", "carol", "dave"):
        asset.mint(wallet, CONFIG.wallet_funds)

    print(">>> pool = ProtectionRegistry('pool', initial_time=t0, verbose=True)")
    pool = ProtectionRegistry("pool", initial_time=CONFIG.start_time, verbose=True)

    print(">>> pool.initialize(asset, curve, ...)")
    pool.initialize(
        asset, CONFIG.curve,
        creator_fee=CONFIG.creator_fee,
        arbiter_fee=CONFIG.arbiter_fee,
        rollover=CONFIG.rollover,
        min_pay=0,
        concepts=list(CONFIG.concepts),
        description="Demo lending protocol cover",
        creator="dao",
        arbiter="judge",
    )

    section_header("Pool Configuration")
    print(f"Concepts:       {pool.concepts}")
    print(f"Coefficients:   {pool.coefficients()}")
    print(f"Creator:        {pool.creator}")
    print(f"Arbiter:        {pool.arbiter} (accepted={pool.arbiter_accepted})")

    return pool, asset


def step_02_arbiter_handshake(pool: ProtectionRegistry):
    """The arbiter accepts the role."""
    step_header(2, "The Arbiter Handshake",
        "No coverage is sold until the arbiter has accepted the role.")

    print("""
    The arbiter is the only identity that can record settlements. Because the
    arbiter decides every payout, buyers are protected from a pool whose
    arbiter never agreed to serve: purchases fail until accept_arbiter().
    """)

    wait_for_enter()

    print(">>> pool.accept_arbiter('judge')")
    pool.accept_arbiter("judge")
    print(f"\nArbiter accepted: {pool.arbiter_accepted}")

    return pool


def step_03_provide(pool: ProtectionRegistry, asset: InMemoryAsset):
    """Providers deposit capital for shares."""
    step_header(3, "Providing Capital",
        "Deposits mint shares at the current share price.")

    wait_for_enter()

    print(">>> pool.provide('alice', 600)")
    alice_shares = pool.provide("alice", CONFIG.alice_deposit)
    print(">>> pool.provide('bob', 400)")
    bob_shares = pool.provide("bob", CONFIG.bob_deposit)

    section_header("Shares")
    print(f"alice: {fmt(alice_shares)} shares")
    print(f"bob:   {fmt(bob_shares)} shares")
    show_pool(pool, asset)

    return pool


# ============================================================================
# PHASE 2: COVERAGE (Steps 4-6)
# ============================================================================

def step_04_quote(pool: ProtectionRegistry):
    """Quote premiums across utilization levels."""
    step_header(4, "Quoting Coverage",
        "Premiums grow with coverage, duration and post-trade utilization.")

    wait_for_enter()

    section_header("Quotes for 7 days of exploit cover")
    for coverage in (50, 150, 300, 600, 900):
        premium = pool.quote(0, coverage * BASE, 7 * CONFIG.day)
        print(f"coverage {coverage:>4}: premium {fmt(premium):>10}")

    print("""
    The curve is evaluated at utilization AFTER the purchase, so larger
    policies pay a higher rate on every unit of coverage.
    """)

    return pool


def step_05_purchase(pool: ProtectionRegistry, asset: InMemoryAsset):
    """Buyers purchase protections."""
    step_header(5, "Purchasing Protections",
        "A purchase locks coverage, collects the premium and mints a protection.")

    wait_for_enter()

    now = pool.current_time
    carol_premium = pool.quote(0, CONFIG.carol_coverage, CONFIG.carol_days * CONFIG.day)
    print(">>> pool.purchase('carol', exploit, 300, 7 days, ...)")
    carol_pid = pool.purchase(
        "carol", 0, CONFIG.carol_coverage, CONFIG.carol_days * CONFIG.day,
        max_pay=carol_premium, deadline=now,
    )

    dave_premium = pool.quote(1, CONFIG.dave_coverage, CONFIG.dave_days * CONFIG.day)
    print(">>> pool.purchase('dave', oracle, 200, 3 days, ...)")
    dave_pid = pool.purchase(
        "dave", 1, CONFIG.dave_coverage, CONFIG.dave_days * CONFIG.day,
        max_pay=dave_premium, deadline=now,
    )

    section_header("Protections")
    for pid in (carol_pid, dave_pid):
        p = pool.get_protection(pid)
        print(f"#{pid} holder={p.holder:<6} concept={pool.concepts[p.concept_index]:<8} "
              f"coverage={fmt(p.coverage_amount)} paid={fmt(p.paid)} status={p.status.value}")
    show_pool(pool, asset)

    return pool, carol_pid, dave_pid


def step_06_rejection(pool: ProtectionRegistry, asset: InMemoryAsset):
    """An oversized purchase is rejected without side effects."""
    step_header(6, "Rejection and Atomicity",
        "A rejected operation leaves state, balances and records untouched.")

    wait_for_enter()

    records_before = len(pool.records())
    balance_before = asset.balance_of("dave")
    utilized_before = pool.utilized

    print(">>> pool.purchase('dave', exploit, 900, 1 day, ...)")
    try:
        pool.purchase("dave", 0, 900 * BASE, CONFIG.day,
                      max_pay=CONFIG.wallet_funds, deadline=pool.current_time)
    except Overutilized as exc:
        print(f"Rejected: {type(exc).__name__}: {exc}")

    section_header("Nothing Changed")
    print(f"Records:        {records_before} -> {len(pool.records())}")
    print(f"dave balance:   {fmt(balance_before)} -> {fmt(asset.balance_of('dave'))}")
    print(f"Utilized:       {fmt(utilized_before)} -> {fmt(pool.utilized)}")

    return pool


# ============================================================================
# PHASE 3: SETTLEMENT (Steps 7-8)
# ============================================================================

def step_07_settlement(pool: ProtectionRegistry):
    """The arbiter records a realized exploit."""
    step_header(7, "Recording a Settlement",
        "A settlement marks the moment a concept's risk was realized.")

    wait_for_enter()

    incident = CONFIG.start_time + 2 * CONFIG.day
    pool.advance_time(incident)
    print(f">>> pool.add_settlement('judge', exploit, {day_of(pool)})")
    pool.add_settlement("judge", 0, incident)

    print(f"\nExploit settlements: {pool.settlement_times(0)}")
    print(f"Oracle settlements:  {pool.settlement_times(1)}")

    return pool


def step_08_claim(pool: ProtectionRegistry, asset: InMemoryAsset, carol_pid: int):
    """Carol claims her payout."""
    step_header(8, "Claiming a Payout",
        "Protections whose window contains a settlement pay their full coverage.")

    wait_for_enter()

    before = asset.balance_of("carol")
    print(f">>> pool.claim('carol', {carol_pid})")
    paid = pool.claim("carol", carol_pid)

    section_header("After the Claim")
    print(f"Paid to carol:  {fmt(paid)}")
    print(f"carol balance:  {fmt(before)} -> {fmt(asset.balance_of('carol'))}")
    print(f"Status:         {pool.get_protection(carol_pid).status.value}")
    show_pool(pool, asset)

    print("""
    The payout comes out of reserves: every provider's shares are now worth
    less. That is the risk providers are paid premiums to bear.
    """)

    return pool


# ============================================================================
# PHASE 4: EXPIRY (Steps 9-10)
# ============================================================================

def step_09_sweep_engine(pool: ProtectionRegistry, dave_pid: int):
    """The SweepEngine retires expired protections."""
    step_header(9, "The SweepEngine",
        "Expired protections are swept after a cooldown, releasing coverage.")

    wait_for_enter()

    print(">>> pool.sweep('keeper', dave_pid)   # too early")
    try:
        pool.sweep("keeper", dave_pid)
    except StillLocked as exc:
        print(f"Rejected: {exc}")

    engine = SweepEngine(pool, keeper="keeper")
    schedule = [CONFIG.start_time + d * CONFIG.day for d in (3, 4, 5)]
    print("\n>>> engine.run([day 3, day 4, day 5])")
    swept = engine.run(schedule)

    section_header("Swept")
    print(f"pids swept:     {swept}")
    for record in pool.records(RECORD_SWEEP):
        print(f"#{record['pid']} to providers={fmt(record['to_providers'])} "
              f"rollover={fmt(record['rollover'])}")

    return pool


def step_10_premiums(pool: ProtectionRegistry):
    """Providers collect their share of swept premiums."""
    step_header(10, "Premium Distribution",
        "Swept premiums flow to providers pro rata to share-seconds.")

    wait_for_enter()

    for provider in ("alice", "bob"):
        pending = pool.pending_premiums(provider)
        print(f">>> pool.claim_premiums('{provider}')   # pending {fmt(pending)}")
        pool.claim_premiums(provider)

    print(f"\nPremiums accumulated: {fmt(pool.premiums_accum)}")

    return pool


# ============================================================================
# PHASE 5: EXIT (Steps 11-12)
# ============================================================================

def step_11_fees(pool: ProtectionRegistry):
    """Creator and arbiter collect their fees."""
    step_header(11, "Fee Withdrawal", "Accrued fees are withdrawn by their owners.")

    wait_for_enter()

    print(f"Pending fees: {pool.pending_fees()}")
    print(f"arbiter receives {fmt(pool.withdraw_arbiter_fees('judge'))}")
    print(f"creator receives {fmt(pool.withdraw_creator_fees('dao'))}")

    return pool


def step_12_withdraw(pool: ProtectionRegistry, asset: InMemoryAsset):
    """Alice leaves the pool through the withdrawal window."""
    step_header(12, "The Withdrawal Window",
        "Withdrawals are announced, delayed, then open for a limited window.")

    wait_for_enter()

    print(">>> pool.initiate_withdraw('alice')")
    pool.initiate_withdraw("alice")
    shares = pool.get_provider("alice").shares

    print(">>> pool.withdraw('alice', shares)   # immediately")
    try:
        pool.withdraw("alice", shares)
    except StillLocked as exc:
        print(f"Rejected: {exc}")

    pool.advance_time(pool.current_time + pool.policy.withdraw_delay)
    print(f"\n{day_of(pool)}: >>> pool.withdraw('alice', shares)")
    received = pool.withdraw("alice", shares)

    section_header("Alice's Result")
    print(f"Deposited:      {fmt(CONFIG.alice_deposit)}")
    print(f"Received:       {fmt(received)} + premiums claimed earlier")
    show_pool(pool, asset)

    return pool


# ============================================================================
# PHASE 6: AUDIT (Step 13)
# ============================================================================

def step_13_audit(pool: ProtectionRegistry):
    """Verify the pool's accounting invariants."""
    step_header(13, "Audit", "Invariants hold and every change left a record.")

    result = pool.verify_invariants()
    print(f"Invariants valid: {result['valid']}")
    for discrepancy in result['discrepancies']:
        print(f"  {discrepancy}")

    section_header("Record Log")
    counts = {}
    for record in pool.records():
        counts[record.kind] = counts.get(record.kind, 0) + 1
    for kind, count in counts.items():
        print(f"{kind:<22} {count}")
    print(f"\nPurchases on file: {len(pool.records(RECORD_PURCHASE))}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       COVERPOOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    try:
        pool, asset = step_01_initialize()
        wait_for_enter()
        step_02_arbiter_handshake(pool)
        wait_for_enter()
        step_03_provide(pool, asset)
        wait_for_enter()

        step_04_quote(pool)
        wait_for_enter()
        pool, carol_pid, dave_pid = step_05_purchase(pool, asset)
        wait_for_enter()
        step_06_rejection(pool, asset)
        wait_for_enter()

        step_07_settlement(pool)
        wait_for_enter()
        step_08_claim(pool, asset, carol_pid)
        wait_for_enter()

        step_09_sweep_engine(pool, dave_pid)
        wait_for_enter()
        step_10_premiums(pool)
        wait_for_enter()

        step_11_fees(pool)
        wait_for_enter()
        step_12_withdraw(pool, asset)
        wait_for_enter()

        step_13_audit(pool)
    except CoverPoolError as exc:
        print(f"\nTutorial stopped: {type(exc).__name__}: {exc}")
        sys.exit(1)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - Change DemoConfig and rerun to see how prices and payouts move
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
