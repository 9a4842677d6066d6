"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of a coverage pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. share_conservation.py - Shares sum to total_shares; exits never gain
2. atomicity.py - Operations are all-or-nothing, re-entrant calls included
3. monotonicity.py - Curve, premiums and accumulators never decrease
4. settlement_search.py - Window search agrees with a linear scan
5. state_machine.py - A protection leaves ACTIVE at most once

These tests use hypothesis for property-based testing.
"""
