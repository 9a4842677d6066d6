"""
Shared hypothesis strategies and an operation driver for pool sequences.

An operation is a tuple whose first element names a registry call. The
driver applies it and reports whether the pool accepted it; rejected
operations are expected to raise CoverPoolError or ValueError and leave no
trace.
"""

from hypothesis import strategies as st

from coverpool import CoverPoolError

from tests.helpers import DAY, UNIT


PROVIDERS = ["lp1", "lp2", "pauper"]
BUYERS = ["b1", "b2", "pauper"]
CALLERS = ["b1", "b2", "lp1", "dao", "broker"]


@st.composite
def curve_weights(draw):
    """Up to eight weights summing to exactly 100."""
    n = draw(st.integers(min_value=1, max_value=8))
    cuts = sorted(draw(st.lists(st.integers(0, 100), min_size=n - 1, max_size=n - 1)))
    bounds = [0] + cuts + [100]
    return tuple(bounds[i + 1] - bounds[i] for i in range(n))


operation = st.one_of(
    st.tuples(st.just("provide"), st.sampled_from(PROVIDERS), st.integers(1, 2_000)),
    st.tuples(st.just("buy"), st.sampled_from(BUYERS), st.integers(1, 1_500),
              st.integers(1, 30), st.integers(0, 1)),
    st.tuples(st.just("advance"), st.integers(0, 10 * DAY)),
    st.tuples(st.just("settle"), st.integers(0, 1)),
    st.tuples(st.just("claim"), st.integers(0, 5), st.sampled_from(CALLERS)),
    st.tuples(st.just("sweep"), st.integers(0, 5)),
    st.tuples(st.just("initiate"), st.sampled_from(PROVIDERS)),
    st.tuples(st.just("withdraw"), st.sampled_from(PROVIDERS), st.integers(1, 100)),
    st.tuples(st.just("claim_premiums"), st.sampled_from(PROVIDERS)),
    st.tuples(st.just("transfer"), st.integers(0, 5), st.sampled_from(CALLERS),
              st.sampled_from(["b1", "b2", ""])),
    st.tuples(st.just("approve"), st.sampled_from(CALLERS), st.sampled_from(CALLERS)),
)


def apply(pool, op) -> bool:
    """
    Apply op to pool.

    Returns:
        True if the pool accepted the operation, False if it was rejected.
    """
    kind = op[0]
    try:
        if kind == "provide":
            pool.provide(op[1], op[2] * UNIT)
        elif kind == "buy":
            _, buyer, coverage, days, concept = op
            pool.purchase(buyer, concept, coverage * UNIT, days * DAY,
                          max_pay=10 ** 40, deadline=pool.current_time)
        elif kind == "advance":
            pool.advance_time(pool.current_time + op[1])
        elif kind == "settle":
            pool.add_settlement("dao", op[1], pool.current_time)
        elif kind == "claim":
            pool.claim(op[2], op[1])
        elif kind == "sweep":
            pool.sweep("keeper", op[1])
        elif kind == "initiate":
            pool.initiate_withdraw(op[1])
        elif kind == "withdraw":
            shares = pool.get_provider(op[1]).shares * op[2] // 100
            pool.withdraw(op[1], max(shares, 1))
        elif kind == "claim_premiums":
            pool.claim_premiums(op[1])
        elif kind == "transfer":
            pool.transfer(op[2], op[1], op[3])
        elif kind == "approve":
            pool.set_approval_for_all(op[1], op[2], True)
        else:
            raise AssertionError(f"unknown operation {kind}")
    except (CoverPoolError, ValueError):
        return False
    return True
